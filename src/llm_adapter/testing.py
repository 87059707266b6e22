"""Testing utilities shipped with llm-adapter.

Provides ``FakeProvider`` for consumers to use in their test suites
without reimplementing the ``Provider`` protocol.

Usage::

    from llm_adapter import LLMClient, Operation, UnifiedResponse
    from llm_adapter.testing import FakeProvider

    fake = FakeProvider()
    fake.set_response(Operation.CHAT_COMPLETION, UnifiedResponse(id="r1"))

    async with LLMClient(provider_instance=fake) as client:
        resp = await client.chat([{"role": "user", "content": "hi"}])
        assert resp.id == "r1"
        assert fake.call_count == 1
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from llm_adapter.config import DEFAULT_STREAM_BUFFER_SIZE, CustomProviderConfig
from llm_adapter.exceptions import ProviderError, UnsupportedOperationError
from llm_adapter.providers.base import ChatMessages, check_operation_allowed
from llm_adapter.streaming.channel import EventChannel, EventStream, start_stream
from llm_adapter.streaming.runner import PostHook, emit
from llm_adapter.types import (
    EmbeddingInput,
    ModelParameters,
    Operation,
    SpeechInput,
    StreamEvent,
    TranscriptionInput,
    UnifiedResponse,
)
from llm_adapter.wire.errors import unsupported_operation_error

if TYPE_CHECKING:
    from llm_adapter.config import AdapterConfig


@dataclass
class FakeCall:
    """Record of a single ``FakeProvider`` invocation."""

    operation: Operation
    model: str
    input: Any
    params: ModelParameters | None


class FakeProvider:
    """Fake provider for tests. Implements the ``Provider`` protocol.

    Buffered operations return the response configured with
    :meth:`set_response` or raise the error configured with
    :meth:`set_error`. Streaming operations replay the events configured
    with :meth:`set_stream` through a real worker task and channel, so
    ordering, post hooks and cancellation behave as with a live provider.
    Operations with nothing configured raise ``UnsupportedOperationError``.
    """

    def __init__(
        self,
        name: str = "fake",
        custom_provider: CustomProviderConfig | None = None,
        stream_buffer_size: int = DEFAULT_STREAM_BUFFER_SIZE,
    ) -> None:
        self._name = name
        self._custom = custom_provider
        self._stream_buffer_size = stream_buffer_size
        self._responses: dict[Operation, UnifiedResponse] = {}
        self._errors: dict[Operation, list[ProviderError]] = {}
        self._streams: dict[Operation, list[StreamEvent]] = {}
        self.calls: list[FakeCall] = []
        self.closed = False

    # ── Configuration ───────────────────────────────────────────

    def set_response(self, operation: Operation, response: UnifiedResponse) -> None:
        self._responses[operation] = response

    def set_error(self, operation: Operation, *errors: ProviderError) -> None:
        """Raise *errors* on successive calls, then fall back to the response."""
        self._errors[operation] = list(errors)

    def set_stream(self, operation: Operation, events: Sequence[StreamEvent]) -> None:
        self._streams[operation] = list(events)

    @property
    def provider_name(self) -> str:
        return self._name

    @property
    def call_count(self) -> int:
        return len(self.calls)

    # ── Internals ───────────────────────────────────────────────

    def _record(
        self, operation: Operation, model: str, input: Any, params: ModelParameters | None
    ) -> None:
        check_operation_allowed(operation, self._name, self._custom)
        self.calls.append(FakeCall(operation=operation, model=model, input=input, params=params))

    def _unsupported(self, operation: Operation) -> UnsupportedOperationError:
        return UnsupportedOperationError(
            self._name, unsupported_operation_error(operation, self._name)
        )

    def _respond(
        self, operation: Operation, model: str, input: Any, params: ModelParameters | None
    ) -> UnifiedResponse:
        self._record(operation, model, input, params)
        pending = self._errors.get(operation)
        if pending:
            raise pending.pop(0)
        response = self._responses.get(operation)
        if response is None:
            raise self._unsupported(operation)
        response = response.model_copy(deep=True)
        response.extra_fields.provider = self._name
        response.extra_fields.params = params
        return response

    def _replay(
        self,
        operation: Operation,
        model: str,
        input: Any,
        params: ModelParameters | None,
        post_hook: PostHook | None,
    ) -> EventStream:
        self._record(operation, model, input, params)
        events = self._streams.get(operation)
        if events is None:
            raise self._unsupported(operation)

        async def _produce(channel: EventChannel) -> None:
            for event in events:
                await emit(channel, event, post_hook)

        return start_stream(_produce, buffer_size=self._stream_buffer_size)

    # ── Provider protocol ───────────────────────────────────────

    async def text_completion(
        self, model: str, text: str, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        return self._respond(Operation.TEXT_COMPLETION, model, text, params)

    async def chat_completion(
        self, model: str, messages: ChatMessages, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        return self._respond(Operation.CHAT_COMPLETION, model, messages, params)

    async def chat_completion_stream(
        self,
        model: str,
        messages: ChatMessages,
        params: ModelParameters | None = None,
        *,
        post_hook: PostHook | None = None,
    ) -> EventStream:
        return self._replay(Operation.CHAT_COMPLETION_STREAM, model, messages, params, post_hook)

    async def embedding(
        self, model: str, input: EmbeddingInput, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        return self._respond(Operation.EMBEDDING, model, input, params)

    async def speech(
        self, model: str, input: SpeechInput, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        return self._respond(Operation.SPEECH, model, input, params)

    async def speech_stream(
        self,
        model: str,
        input: SpeechInput,
        params: ModelParameters | None = None,
        *,
        post_hook: PostHook | None = None,
    ) -> EventStream:
        return self._replay(Operation.SPEECH_STREAM, model, input, params, post_hook)

    async def transcription(
        self, model: str, input: TranscriptionInput, params: ModelParameters | None = None
    ) -> UnifiedResponse:
        return self._respond(Operation.TRANSCRIPTION, model, input, params)

    async def transcription_stream(
        self,
        model: str,
        input: TranscriptionInput,
        params: ModelParameters | None = None,
        *,
        post_hook: PostHook | None = None,
    ) -> EventStream:
        return self._replay(Operation.TRANSCRIPTION_STREAM, model, input, params, post_hook)

    async def close(self) -> None:
        self.closed = True

    @classmethod
    def from_config(cls, config: AdapterConfig) -> FakeProvider:
        """Factory for the provider registry."""
        custom = config.custom_provider()
        return cls(
            name=custom.name if custom is not None else "fake",
            custom_provider=custom,
            stream_buffer_size=config.stream_buffer_size,
        )
