"""OpenAI provider: chat, embeddings, speech and transcription over REST + SSE."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Literal

import httpx

from llm_adapter.config import DEFAULT_STREAM_BUFFER_SIZE, AdapterConfig, CustomProviderConfig
from llm_adapter.exceptions import ProviderError, UnsupportedOperationError
from llm_adapter.providers.base import (
    ChatMessages,
    check_operation_allowed,
    resolve_provider_name,
)
from llm_adapter.streaming.accumulator import AudioStreamAccumulator, ChatStreamAccumulator
from llm_adapter.streaming.channel import EventChannel, EventStream, start_stream
from llm_adapter.streaming.runner import PostHook, run_audio_stream, run_chat_stream
from llm_adapter.types import (
    EmbeddingInput,
    ModelParameters,
    Operation,
    SpeechInput,
    TranscriptionInput,
    UnifiedResponse,
)
from llm_adapter.wire.errors import classify_error_response, unsupported_operation_error
from llm_adapter.wire.formatter import (
    EncodedBody,
    ImageURLSanitizer,
    build_chat_payload,
    build_embedding_payload,
    build_speech_payload,
    build_transcription_form,
    coerce_messages,
    encode_json,
    sanitize_image_url,
)
from llm_adapter.wire.normalizer import (
    normalize_chat_response,
    normalize_embedding_response,
    normalize_speech_response,
    normalize_transcription_response,
)
from llm_adapter.wire.transport import HTTPTransport

logger = logging.getLogger(__name__)

CHAT_PATH = "/v1/chat/completions"
EMBEDDINGS_PATH = "/v1/embeddings"
SPEECH_PATH = "/v1/audio/speech"
TRANSCRIPTIONS_PATH = "/v1/audio/transcriptions"


class OpenAIProvider:
    """Provider adapter for the OpenAI REST API and OpenAI-compatible servers."""

    DEFAULT_BASE_URL = "https://api.openai.com"
    PROVIDER_KEY = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        extra_headers: dict[str, str] | None = None,
        timeout_seconds: int = 120,
        send_back_raw_response: bool = False,
        custom_provider: CustomProviderConfig | None = None,
        stream_buffer_size: int = DEFAULT_STREAM_BUFFER_SIZE,
        client: httpx.AsyncClient | None = None,
        image_url_sanitizer: ImageURLSanitizer = sanitize_image_url,
    ) -> None:
        self._custom = custom_provider
        self._name = resolve_provider_name(self.PROVIDER_KEY, custom_provider)
        self._send_back_raw = send_back_raw_response
        self._stream_buffer_size = stream_buffer_size
        self._sanitize = image_url_sanitizer
        self._transport = HTTPTransport(
            base_url=base_url or self.DEFAULT_BASE_URL,
            api_key=api_key,
            provider=self._name,
            extra_headers=extra_headers,
            timeout_seconds=timeout_seconds,
            client=client,
        )

    @classmethod
    def from_config(cls, config: AdapterConfig) -> OpenAIProvider:
        """Factory method for the provider registry."""
        return cls(
            api_key=config.get_api_key(),
            base_url=config.base_url,
            extra_headers=config.extra_headers,
            timeout_seconds=config.timeout_seconds,
            send_back_raw_response=config.send_back_raw_response,
            custom_provider=config.custom_provider(),
            stream_buffer_size=config.stream_buffer_size,
        )

    @property
    def provider_name(self) -> str:
        return self._name

    # ── Shared plumbing ─────────────────────────────────────────

    def _check(self, operation: Operation) -> None:
        check_operation_allowed(operation, self._name, self._custom)

    def _raise_for_status(self, status_code: int, body: bytes) -> None:
        if 200 <= status_code < 300:
            return
        logger.debug("error from %s provider: %s", self._name, body[:2000])
        error = classify_error_response(status_code, body, self._name)
        raise ProviderError.from_unified(self._name, error)

    async def _post(self, path: str, body: EncodedBody) -> tuple[bytes, float]:
        start = time.monotonic()
        response = await self._transport.post(path, body)
        latency_ms = (time.monotonic() - start) * 1000
        self._raise_for_status(response.status_code, response.content)
        return response.content, latency_ms

    async def _stream(
        self,
        path: str,
        body: EncodedBody,
        producer: Callable[[httpx.Response, EventChannel], Awaitable[None]],
    ) -> EventStream:
        response = await self._transport.open_stream(path, body)
        if not 200 <= response.status_code < 300:
            try:
                error_body = await response.aread()
            finally:
                await response.aclose()
            self._raise_for_status(response.status_code, error_body)

        async def _produce(channel: EventChannel) -> None:
            await producer(response, channel)

        return start_stream(
            _produce,
            buffer_size=self._stream_buffer_size,
            cleanup=response.aclose,
        )

    # ── Text completion ─────────────────────────────────────────

    async def text_completion(
        self, model: str, text: str, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        """Not offered by this vendor."""
        raise UnsupportedOperationError(
            self._name,
            unsupported_operation_error(Operation.TEXT_COMPLETION, self._name),
        )

    # ── Chat ────────────────────────────────────────────────────

    async def chat_completion(
        self, model: str, messages: ChatMessages, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        """Run a buffered chat completion."""
        self._check(Operation.CHAT_COMPLETION)
        payload = build_chat_payload(
            model, coerce_messages(messages, self._name), params, sanitize=self._sanitize
        )
        content, latency_ms = await self._post(CHAT_PATH, encode_json(payload, self._name))

        response = normalize_chat_response(
            content, self._name, params, send_back_raw_response=self._send_back_raw
        )
        response.extra_fields.latency_ms = latency_ms
        return response

    async def chat_completion_stream(
        self,
        model: str,
        messages: ChatMessages,
        params: ModelParameters | None = None,
        *,
        post_hook: PostHook | None = None,
    ) -> EventStream:
        """Start a streamed chat completion.

        Usage is requested via ``stream_options.include_usage`` and reported
        once, on the terminal event, together with the finish reason.
        """
        self._check(Operation.CHAT_COMPLETION_STREAM)
        payload = build_chat_payload(
            model,
            coerce_messages(messages, self._name),
            params,
            stream=True,
            sanitize=self._sanitize,
        )
        body = encode_json(payload, self._name)
        accumulator = ChatStreamAccumulator(provider=self._name, model=model, params=params)

        async def _produce(response: httpx.Response, channel: EventChannel) -> None:
            await run_chat_stream(response.aiter_lines(), channel, accumulator, post_hook)

        return await self._stream(CHAT_PATH, body, _produce)

    # ── Embedding ───────────────────────────────────────────────

    async def embedding(
        self, model: str, input: EmbeddingInput, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        """Embed a string, a batch of strings, or token ids."""
        self._check(Operation.EMBEDDING)
        payload = build_embedding_payload(model, input, params)
        content, latency_ms = await self._post(EMBEDDINGS_PATH, encode_json(payload, self._name))

        response = normalize_embedding_response(
            content, self._name, params, send_back_raw_response=self._send_back_raw
        )
        response.extra_fields.latency_ms = latency_ms
        return response

    # ── Speech ──────────────────────────────────────────────────

    async def speech(
        self, model: str, input: SpeechInput, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        """Synthesize speech; the response body is the audio itself."""
        self._check(Operation.SPEECH)
        payload = build_speech_payload(model, input, params)
        audio, latency_ms = await self._post(SPEECH_PATH, encode_json(payload, self._name))

        response = normalize_speech_response(audio, model, self._name, params)
        response.extra_fields.latency_ms = latency_ms
        return response

    async def speech_stream(
        self,
        model: str,
        input: SpeechInput,
        params: ModelParameters | None = None,
        *,
        post_hook: PostHook | None = None,
    ) -> EventStream:
        self._check(Operation.SPEECH_STREAM)
        payload = build_speech_payload(model, input, params, stream=True)
        body = encode_json(payload, self._name)
        return await self._audio_stream(SPEECH_PATH, body, "speech", model, params, post_hook)

    # ── Transcription ───────────────────────────────────────────

    async def transcription(
        self, model: str, input: TranscriptionInput, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        self._check(Operation.TRANSCRIPTION)
        body = build_transcription_form(model, input, params, self._name)
        content, latency_ms = await self._post(TRANSCRIPTIONS_PATH, body)

        response = normalize_transcription_response(
            content, model, self._name, params, send_back_raw_response=self._send_back_raw
        )
        response.extra_fields.latency_ms = latency_ms
        return response

    async def transcription_stream(
        self,
        model: str,
        input: TranscriptionInput,
        params: ModelParameters | None = None,
        *,
        post_hook: PostHook | None = None,
    ) -> EventStream:
        self._check(Operation.TRANSCRIPTION_STREAM)
        body = build_transcription_form(model, input, params, self._name, stream=True)
        return await self._audio_stream(
            TRANSCRIPTIONS_PATH, body, "transcription", model, params, post_hook
        )

    async def _audio_stream(
        self,
        path: str,
        body: EncodedBody,
        kind: Literal["speech", "transcription"],
        model: str,
        params: ModelParameters | None,
        post_hook: PostHook | None,
    ) -> EventStream:
        accumulator = AudioStreamAccumulator(
            provider=self._name, kind=kind, model=model, params=params
        )

        async def _produce(response: httpx.Response, channel: EventChannel) -> None:
            await run_audio_stream(response.aiter_lines(), channel, accumulator, post_hook)

        return await self._stream(path, body, _produce)

    async def close(self) -> None:
        """Close the underlying HTTP client if this provider created it."""
        await self._transport.aclose()
