"""Cross-chunk stream state.

Each accumulator belongs to exactly one stream worker. It turns decoded
SSE payloads into the :class:`UnifiedResponse` increments that get
forwarded, and builds the terminal response where the path has one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from llm_adapter.types import (
    ExtraFields,
    ModelParameters,
    ResponseChoice,
    Speech,
    StreamDelta,
    Transcription,
    UnifiedResponse,
    Usage,
)


@dataclass
class ChatStreamAccumulator:
    """State for one chat completion stream.

    Usage is folded into running maxima and reported once, on the terminal
    chunk. The finish reason is deferred to the terminal chunk as well.
    Only chunks carrying content or tool-call deltas are forwarded, and only
    they consume a chunk index.
    """

    provider: str
    model: str = ""
    params: ModelParameters | None = None
    usage: Usage = field(default_factory=Usage)
    finish_reason: str | None = None
    chunk_index: int = -1
    response_id: str = ""

    def add(self, raw: dict[str, Any]) -> UnifiedResponse | None:
        """Decode one chunk and return it if it should be forwarded.

        Raises:
            pydantic.ValidationError: If *raw* is not a chat chunk.
        """
        chunk = UnifiedResponse.model_validate(raw)

        if chunk.usage is not None:
            self._fold_usage(chunk.usage)
            chunk.usage = None

        if chunk.id and not self.response_id:
            self.response_id = chunk.id

        if not chunk.choices:
            return None

        choice = chunk.choices[0]
        if choice.finish_reason:
            self.finish_reason = choice.finish_reason
            choice.finish_reason = None

        delta = choice.delta
        if delta is None or (delta.content is None and not delta.tool_calls):
            return None

        self.chunk_index += 1
        chunk.extra_fields.provider = self.provider
        chunk.extra_fields.chunk_index = self.chunk_index
        return chunk

    def _fold_usage(self, reported: Usage) -> None:
        # Vendors repeat or split usage across chunks; keep the largest seen.
        self.usage.prompt_tokens = max(self.usage.prompt_tokens, reported.prompt_tokens)
        self.usage.completion_tokens = max(
            self.usage.completion_tokens, reported.completion_tokens
        )
        self.usage.total_tokens = max(self.usage.total_tokens, reported.total_tokens)
        self.usage.total_tokens = max(
            self.usage.total_tokens,
            self.usage.prompt_tokens + self.usage.completion_tokens,
        )

    def finish(self) -> UnifiedResponse:
        """Build the synthetic terminal chunk."""
        return UnifiedResponse(
            id=self.response_id,
            object="chat.completion.chunk",
            model=self.model,
            usage=self.usage.model_copy(),
            choices=[
                ResponseChoice(
                    index=0,
                    finish_reason=self.finish_reason,
                    delta=StreamDelta(),
                )
            ],
            extra_fields=ExtraFields(
                provider=self.provider,
                params=self.params,
                chunk_index=self.chunk_index + 1,
            ),
        )


@dataclass
class AudioStreamAccumulator:
    """State for one speech or transcription stream.

    Every chunk is forwarded. A chunk with usage is the last one: these
    streams carry no ``[DONE]`` sentinel.
    """

    provider: str
    kind: Literal["speech", "transcription"]
    model: str = ""
    params: ModelParameters | None = None
    chunk_index: int = -1

    def add(self, raw: dict[str, Any]) -> tuple[UnifiedResponse, bool]:
        """Decode one chunk; return it and whether it ends the stream.

        Raises:
            pydantic.ValidationError: If *raw* does not match the chunk shape.
        """
        if self.kind == "speech":
            speech = Speech.model_validate(raw)
            response = UnifiedResponse(object="audio.speech.chunk", model=self.model, speech=speech)
            terminal = speech.usage is not None
        else:
            transcription = Transcription.model_validate(raw)
            response = UnifiedResponse(
                object="audio.transcription.chunk",
                model=self.model,
                transcription=transcription,
            )
            terminal = transcription.usage is not None

        self.chunk_index += 1
        response.extra_fields = ExtraFields(provider=self.provider, chunk_index=self.chunk_index)
        if terminal:
            response.extra_fields.params = self.params
        return response, terminal
