"""Provider protocol, the contract every provider adapter must satisfy."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from llm_adapter.config import CustomProviderConfig
from llm_adapter.exceptions import UnsupportedOperationError
from llm_adapter.streaming.channel import EventStream
from llm_adapter.streaming.runner import PostHook
from llm_adapter.types import (
    EmbeddingInput,
    Message,
    ModelParameters,
    Operation,
    SpeechInput,
    TranscriptionInput,
    UnifiedResponse,
)
from llm_adapter.wire.errors import unsupported_operation_error

ChatMessages = Sequence[Message | Mapping[str, Any]]


@runtime_checkable
class Provider(Protocol):
    """Protocol that all provider adapters implement.

    Synchronous operations return a :class:`UnifiedResponse` or raise a
    :class:`~llm_adapter.exceptions.ProviderError`. Streaming operations
    raise the same errors before the stream starts; once it has started,
    failures arrive as terminal error events on the returned
    :class:`EventStream`.
    """

    @property
    def provider_name(self) -> str:
        """Identifier stamped on every response, e.g. ``"openai"``."""
        ...

    async def text_completion(
        self, model: str, text: str, params: ModelParameters | None = None
    ) -> UnifiedResponse: ...

    async def chat_completion(
        self, model: str, messages: ChatMessages, params: ModelParameters | None = None
    ) -> UnifiedResponse: ...

    async def chat_completion_stream(
        self,
        model: str,
        messages: ChatMessages,
        params: ModelParameters | None = None,
        *,
        post_hook: PostHook | None = None,
    ) -> EventStream: ...

    async def embedding(
        self, model: str, input: EmbeddingInput, params: ModelParameters | None = None
    ) -> UnifiedResponse: ...

    async def speech(
        self, model: str, input: SpeechInput, params: ModelParameters | None = None
    ) -> UnifiedResponse: ...

    async def speech_stream(
        self,
        model: str,
        input: SpeechInput,
        params: ModelParameters | None = None,
        *,
        post_hook: PostHook | None = None,
    ) -> EventStream: ...

    async def transcription(
        self, model: str, input: TranscriptionInput, params: ModelParameters | None = None
    ) -> UnifiedResponse: ...

    async def transcription_stream(
        self,
        model: str,
        input: TranscriptionInput,
        params: ModelParameters | None = None,
        *,
        post_hook: PostHook | None = None,
    ) -> EventStream: ...

    async def close(self) -> None:
        """Clean up provider resources (HTTP clients, etc.)."""
        ...


def resolve_provider_name(default: str, custom: CustomProviderConfig | None) -> str:
    """A custom provider reports under its own name."""
    if custom is not None and custom.name:
        return custom.name
    return default


def check_operation_allowed(
    operation: Operation,
    provider: str,
    custom: CustomProviderConfig | None,
) -> None:
    """Fail fast when a custom provider config disables *operation*.

    Raises:
        UnsupportedOperationError: If the operation is not allowed.
    """
    if custom is None or custom.is_operation_allowed(operation):
        return
    raise UnsupportedOperationError(provider, unsupported_operation_error(operation, provider))
