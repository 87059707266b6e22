"""Core data types for llm-adapter.

Everything that crosses the wire is a pydantic model so the strict decode
step can be expressed as ``Model.model_validate``. Adapter-internal records
(errors, stream events) are plain dataclasses.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

Role = Literal["system", "user", "assistant", "tool"]


class Operation(str, Enum):
    """Operations a provider may expose, each individually gateable."""

    TEXT_COMPLETION = "text_completion"
    CHAT_COMPLETION = "chat_completion"
    CHAT_COMPLETION_STREAM = "chat_completion_stream"
    EMBEDDING = "embedding"
    SPEECH = "speech"
    SPEECH_STREAM = "speech_stream"
    TRANSCRIPTION = "transcription"
    TRANSCRIPTION_STREAM = "transcription_stream"


class _WireModel(BaseModel):
    """Base for models decoded from vendor JSON. Unknown vendor keys are dropped."""

    model_config = ConfigDict(extra="ignore")


# ── Request side ────────────────────────────────────────────────


class ImageURL(_WireModel):
    url: str
    detail: str | None = None


class ContentBlock(_WireModel):
    """A single typed block of message content."""

    type: Literal["text", "image_url"]
    text: str | None = None
    image_url: ImageURL | None = None


class FunctionCall(_WireModel):
    name: str | None = None
    arguments: str = ""


class ToolCall(_WireModel):
    """A tool invocation. ``index`` is only set on streamed deltas."""

    index: int | None = None
    id: str | None = None
    type: str | None = "function"
    function: FunctionCall = Field(default_factory=FunctionCall)


class FunctionDefinition(_WireModel):
    name: str
    description: str | None = None
    parameters: dict[str, Any] | None = None


class Tool(_WireModel):
    type: str = "function"
    function: FunctionDefinition


class Message(BaseModel):
    """A single message in the conversation.

    ``content`` is either a plain string or an ordered list of content
    blocks, never both. It may only be omitted on an assistant message that
    carries tool calls.
    """

    model_config = ConfigDict(extra="forbid")

    role: Role
    content: str | list[ContentBlock] | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None

    @model_validator(mode="after")
    def _check_content(self) -> Message:
        if self.content is None and not (self.role == "assistant" and self.tool_calls):
            msg = f"{self.role} message requires content"
            raise ValueError(msg)
        return self


class ModelParameters(BaseModel):
    """Optional request parameters.

    Named fields cover the common knobs; ``extra_params`` is merged verbatim
    into the outgoing payload and always wins on key collision.
    """

    model_config = ConfigDict(extra="forbid")

    temperature: float | None = None
    top_p: float | None = None
    max_tokens: int | None = None
    stop_sequences: list[str] | None = None
    presence_penalty: float | None = None
    frequency_penalty: float | None = None
    tools: list[Tool] | None = None
    tool_choice: str | dict[str, Any] | None = None
    parallel_tool_calls: bool | None = None
    encoding_format: str | None = None
    dimensions: int | None = None
    user: str | None = None
    extra_params: dict[str, Any] = Field(default_factory=dict)


EmbeddingInput = Union[str, list[str], list[int], list[list[int]]]


class SpeechInput(BaseModel):
    input: str
    voice: str
    instructions: str = ""
    response_format: str = ""


class TranscriptionInput(BaseModel):
    file: bytes
    language: str | None = None
    prompt: str | None = None
    response_format: str | None = None


# ── Response side ───────────────────────────────────────────────


class Usage(_WireModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ResponseMessage(_WireModel):
    role: str | None = None
    content: str | list[ContentBlock] | None = None
    thought: str | None = None
    refusal: str | None = None
    tool_calls: list[ToolCall] | None = None


class StreamDelta(_WireModel):
    role: str | None = None
    content: str | None = None
    thought: str | None = None
    refusal: str | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)


class ResponseChoice(_WireModel):
    """One choice; ``message`` on buffered responses, ``delta`` on streamed ones."""

    index: int = 0
    finish_reason: str | None = None
    message: ResponseMessage | None = None
    delta: StreamDelta | None = None
    logprobs: dict[str, Any] | None = None


class EmbeddingData(_WireModel):
    index: int = 0
    object: str = "embedding"
    embedding: list[float] | str = Field(default_factory=list)


class AudioUsage(_WireModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class Speech(_WireModel):
    """Synthesized audio. Streamed chunks carry base64 audio, decoded here."""

    model_config = ConfigDict(extra="ignore", ser_json_bytes="base64")

    type: str | None = None
    audio: bytes = b""
    usage: AudioUsage | None = None

    @field_validator("audio", mode="before")
    @classmethod
    def _decode_audio(cls, value: Any) -> Any:
        if value is None:
            return b""
        if isinstance(value, str):
            return base64.b64decode(value)
        return value


class TranscriptionUsage(_WireModel):
    type: str | None = None
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    seconds: float | None = None


class Transcription(_WireModel):
    text: str = ""
    type: str | None = None
    delta: str | None = None
    task: str | None = None
    language: str | None = None
    duration: float | None = None
    words: list[dict[str, Any]] | None = None
    segments: list[dict[str, Any]] | None = None
    logprobs: list[dict[str, Any]] | None = None
    usage: TranscriptionUsage | None = None


class ExtraFields(BaseModel):
    """Adapter-stamped metadata that never comes from the vendor payload."""

    provider: str = ""
    params: ModelParameters | None = None
    raw_response: Any = None
    chunk_index: int = 0
    latency_ms: float = 0.0


class UnifiedResponse(_WireModel):
    """Standardized response for every operation, buffered or streamed."""

    id: str = ""
    object: str = ""
    created: int | None = None
    model: str = ""
    choices: list[ResponseChoice] = Field(default_factory=list)
    data: list[EmbeddingData] | None = None
    speech: Speech | None = None
    transcription: Transcription | None = None
    usage: Usage | None = None
    system_fingerprint: str | None = None
    service_tier: str | None = None
    extra_fields: ExtraFields = Field(default_factory=ExtraFields)


# ── Errors and stream events ────────────────────────────────────


class ErrorKind(str, Enum):
    """Where a failure came from."""

    UNSUPPORTED_OPERATION = "unsupported_operation"
    REQUEST_FORMAT = "request_format"
    TRANSPORT = "transport"
    PROVIDER_API = "provider_api"
    RESPONSE_DECODE = "response_decode"


@dataclass
class ErrorField:
    message: str = ""
    type: str | None = None
    code: str | None = None
    param: Any = None
    event_id: str | None = None
    error: BaseException | None = None


@dataclass
class UnifiedError:
    """Uniform error representation.

    ``is_adapter_error`` is True for failures raised on this side of the
    wire (formatting, transport, decoding) and False for errors the vendor
    reported itself.
    """

    kind: ErrorKind
    error: ErrorField = field(default_factory=ErrorField)
    is_adapter_error: bool = False
    status_code: int | None = None
    event_id: str | None = None
    provider: str = ""


@dataclass
class StreamEvent:
    """One event delivered to a stream consumer: a response increment or an error.

    ``stream_end`` marks the terminal event of a request; nothing follows it.
    """

    response: UnifiedResponse | None = None
    error: UnifiedError | None = None
    stream_end: bool = False
