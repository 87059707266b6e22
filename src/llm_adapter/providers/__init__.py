"""Provider adapters."""

from llm_adapter.providers.base import Provider, check_operation_allowed
from llm_adapter.providers.openai import OpenAIProvider

__all__ = ["OpenAIProvider", "Provider", "check_operation_allowed"]
