"""llm-adapter: OpenAI-compatible provider adapter with unified responses.

Usage:
    from llm_adapter import LLMClient, AdapterConfig

    llm = LLMClient()  # reads LLM_* env vars
    resp = await llm.chat([{"role": "user", "content": "Hello"}])
"""

from __future__ import annotations

from llm_adapter.client import LLMClient
from llm_adapter.config import AdapterConfig, CustomProviderConfig
from llm_adapter.exceptions import (
    AdapterError,
    ProviderAPIError,
    ProviderError,
    ProviderInitError,
    ProviderNotFoundError,
    ProviderRequestError,
    RequestFormatError,
    ResponseDecodeError,
    UnsupportedOperationError,
)
from llm_adapter.providers.base import Provider
from llm_adapter.providers.openai import OpenAIProvider
from llm_adapter.registry import build_provider, list_providers, register_provider
from llm_adapter.streaming.channel import EventStream
from llm_adapter.types import (
    ContentBlock,
    ErrorKind,
    Message,
    ModelParameters,
    Operation,
    SpeechInput,
    StreamEvent,
    Tool,
    ToolCall,
    TranscriptionInput,
    UnifiedError,
    UnifiedResponse,
    Usage,
)

__all__ = [
    # Core
    "LLMClient",
    "AdapterConfig",
    "CustomProviderConfig",
    # Types
    "ContentBlock",
    "Message",
    "ModelParameters",
    "Operation",
    "SpeechInput",
    "Tool",
    "ToolCall",
    "TranscriptionInput",
    "UnifiedResponse",
    "Usage",
    "StreamEvent",
    "EventStream",
    "ErrorKind",
    "UnifiedError",
    # Provider
    "Provider",
    "OpenAIProvider",
    "register_provider",
    "build_provider",
    "list_providers",
    # Exceptions
    "AdapterError",
    "ProviderNotFoundError",
    "ProviderInitError",
    "ProviderError",
    "UnsupportedOperationError",
    "RequestFormatError",
    "ProviderRequestError",
    "ProviderAPIError",
    "ResponseDecodeError",
]
