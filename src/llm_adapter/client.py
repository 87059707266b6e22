"""LLMClient: the single class consumers import and use."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from llm_adapter.config import AdapterConfig
from llm_adapter.exceptions import ProviderRequestError
from llm_adapter.observability.logging import configure_logging
from llm_adapter.observability.tracing import configure_tracing, traced_operation
from llm_adapter.providers.base import ChatMessages, Provider
from llm_adapter.registry import build_provider
from llm_adapter.streaming.channel import EventStream
from llm_adapter.streaming.runner import PostHook
from llm_adapter.types import (
    EmbeddingInput,
    ModelParameters,
    Operation,
    SpeechInput,
    TranscriptionInput,
    UnifiedResponse,
)

logger = logging.getLogger(__name__)


class LLMClient:
    """Config-driven facade over a single provider.

    Provider selection happens via ``LLM_*`` environment variables. Each
    call applies the configured default model, runs inside a tracing span,
    and, for buffered operations, is retried on transport failures.
    Vendor errors and decode errors are never retried.

    Usage:
        # Reads LLM_* env vars automatically
        llm = LLMClient()

        # Or with explicit config
        llm = LLMClient(config=AdapterConfig(base_url="http://localhost:8000"))

        # Or with injected provider (for testing)
        llm = LLMClient(provider_instance=FakeProvider())

        resp = await llm.chat([{"role": "user", "content": "Hello"}])
        print(resp.choices[0].message.content)

        async with await llm.chat_stream(messages) as events:
            async for event in events:
                ...
    """

    def __init__(
        self,
        config: AdapterConfig | None = None,
        provider_instance: Provider | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        self._config = config or AdapterConfig()
        self._provider = provider_instance or build_provider(self._config)
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)
        self._closed = False

        # Auto-configure observability
        configure_logging(
            level=self._config.log_level,
            fmt=self._config.log_format,
        )
        if self._config.trace_enabled:
            configure_tracing(
                exporter=self._config.trace_exporter,
                endpoint=self._config.trace_endpoint,
                service_name=self._config.trace_service_name,
            )

    @property
    def provider(self) -> Provider:
        return self._provider

    # ── Internals ───────────────────────────────────────────────

    async def _call(
        self,
        operation: Operation,
        model: str,
        call: Callable[[], Awaitable[UnifiedResponse]],
    ) -> UnifiedResponse:
        provider_name = self._provider.provider_name
        async with traced_operation(model, provider_name, operation.value) as span_data:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(ProviderRequestError),
                stop=stop_after_attempt(self._config.max_retries + 1),
                wait=self._retry_wait,
                reraise=True,
            ):
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            "retrying_llm_call | operation=%s attempt=%d",
                            operation.value,
                            attempt.retry_state.attempt_number,
                        )
                    response = await call()
            span_data["response"] = response

        usage = response.usage
        logger.info(
            "LLM call completed",
            extra={
                "operation": operation.value,
                "provider": response.extra_fields.provider,
                "model": response.model or model,
                "input_tokens": usage.prompt_tokens if usage else None,
                "output_tokens": usage.completion_tokens if usage else None,
                "latency_ms": round(response.extra_fields.latency_ms, 1),
            },
        )
        return response

    async def _open(
        self,
        operation: Operation,
        model: str,
        start: Callable[[], Awaitable[EventStream]],
    ) -> EventStream:
        # Only the stream setup is traced; events are consumed by the caller.
        async with traced_operation(model, self._provider.provider_name, operation.value):
            stream = await start()
        logger.info(
            "LLM stream started",
            extra={"operation": operation.value, "provider": self._provider.provider_name},
        )
        return stream

    # ── Operations ──────────────────────────────────────────────

    async def complete_text(
        self,
        text: str,
        model: str | None = None,
        params: ModelParameters | None = None,
    ) -> UnifiedResponse:
        effective_model = model or self._config.model
        return await self._call(
            Operation.TEXT_COMPLETION,
            effective_model,
            lambda: self._provider.text_completion(effective_model, text, params),
        )

    async def chat(
        self,
        messages: ChatMessages,
        model: str | None = None,
        params: ModelParameters | None = None,
    ) -> UnifiedResponse:
        """Run a chat completion and return the full response.

        Args:
            messages: Conversation messages, as ``Message`` models or dicts.
            model: Override the default model from config.
            params: Sampling parameters, tools and vendor extras.

        Raises:
            ProviderError: A subclass matching the failure kind.
        """
        effective_model = model or self._config.model
        return await self._call(
            Operation.CHAT_COMPLETION,
            effective_model,
            lambda: self._provider.chat_completion(effective_model, messages, params),
        )

    async def chat_stream(
        self,
        messages: ChatMessages,
        model: str | None = None,
        params: ModelParameters | None = None,
        post_hook: PostHook | None = None,
    ) -> EventStream:
        """Start a streamed chat completion; see :class:`EventStream`."""
        effective_model = model or self._config.model
        return await self._open(
            Operation.CHAT_COMPLETION_STREAM,
            effective_model,
            lambda: self._provider.chat_completion_stream(
                effective_model, messages, params, post_hook=post_hook
            ),
        )

    async def embed(
        self,
        input: EmbeddingInput,
        model: str | None = None,
        params: ModelParameters | None = None,
    ) -> UnifiedResponse:
        effective_model = model or self._config.model
        return await self._call(
            Operation.EMBEDDING,
            effective_model,
            lambda: self._provider.embedding(effective_model, input, params),
        )

    async def speak(
        self,
        input: SpeechInput,
        model: str | None = None,
        params: ModelParameters | None = None,
    ) -> UnifiedResponse:
        effective_model = model or self._config.model
        return await self._call(
            Operation.SPEECH,
            effective_model,
            lambda: self._provider.speech(effective_model, input, params),
        )

    async def speak_stream(
        self,
        input: SpeechInput,
        model: str | None = None,
        params: ModelParameters | None = None,
        post_hook: PostHook | None = None,
    ) -> EventStream:
        effective_model = model or self._config.model
        return await self._open(
            Operation.SPEECH_STREAM,
            effective_model,
            lambda: self._provider.speech_stream(
                effective_model, input, params, post_hook=post_hook
            ),
        )

    async def transcribe(
        self,
        input: TranscriptionInput,
        model: str | None = None,
        params: ModelParameters | None = None,
    ) -> UnifiedResponse:
        effective_model = model or self._config.model
        return await self._call(
            Operation.TRANSCRIPTION,
            effective_model,
            lambda: self._provider.transcription(effective_model, input, params),
        )

    async def transcribe_stream(
        self,
        input: TranscriptionInput,
        model: str | None = None,
        params: ModelParameters | None = None,
        post_hook: PostHook | None = None,
    ) -> EventStream:
        effective_model = model or self._config.model
        return await self._open(
            Operation.TRANSCRIPTION_STREAM,
            effective_model,
            lambda: self._provider.transcription_stream(
                effective_model, input, params, post_hook=post_hook
            ),
        )

    async def close(self) -> None:
        """Clean up provider resources."""
        if not self._closed:
            await self._provider.close()
            self._closed = True

    async def __aenter__(self) -> LLMClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
