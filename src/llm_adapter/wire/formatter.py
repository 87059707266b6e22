"""Request formatting: unified messages and parameters to vendor wire payloads.

JSON payloads are plain dicts until :func:`encode_json` serializes them.
Transcription requests are multipart forms, encoded by
:func:`build_transcription_form`.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError
from urllib3 import encode_multipart_formdata

from llm_adapter.exceptions import RequestFormatError
from llm_adapter.types import (
    ContentBlock,
    EmbeddingInput,
    ErrorKind,
    Message,
    ModelParameters,
    SpeechInput,
    TranscriptionInput,
)
from llm_adapter.wire.errors import ERR_JSON_MARSHALING, operation_error

logger = logging.getLogger(__name__)

DEFAULT_SPEECH_FORMAT = "mp3"
# The vendor requires a filename on the file part; the content decides the codec.
TRANSCRIPTION_FILENAME = "audio.mp3"

# Named parameters whose wire key differs from the field name.
_PARAM_RENAMES: dict[str, str] = {"stop_sequences": "stop"}

# Leading bytes -> media type, for bare base64 images.
_IMAGE_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"RIFF", "image/webp"),
)

ImageURLSanitizer = Callable[[str], str]


@dataclass(frozen=True)
class EncodedBody:
    """A serialized request body and the Content-Type it must be sent with."""

    content: bytes
    content_type: str


# ── Helpers ─────────────────────────────────────────────────────


def merge_config(base: Mapping[str, Any], overrides: Mapping[str, Any] | None) -> dict[str, Any]:
    """Return a new dict of *base* updated with *overrides* (overrides win)."""
    merged = dict(base)
    if overrides:
        merged.update(overrides)
    return merged


def sanitize_image_url(url: str) -> str:
    """Normalize an image reference into something the vendor accepts.

    http(s) URLs and well-formed data URLs pass through (whitespace
    trimmed). Bare base64 data is wrapped into a data URL with a media type
    sniffed from its leading bytes.

    Raises:
        ValueError: If *url* is empty, a malformed data URL, or neither a
            URL nor base64 data.
    """
    cleaned = url.strip()
    if not cleaned:
        raise ValueError("empty image URL")

    lowered = cleaned.lower()
    if lowered.startswith(("http://", "https://")):
        return cleaned

    if lowered.startswith("data:"):
        header, sep, data = cleaned.partition(",")
        if not sep or not data or "/" not in header:
            raise ValueError("malformed data URL")
        return cleaned

    try:
        raw = base64.b64decode(cleaned, validate=True)
    except binascii.Error as exc:
        raise ValueError("image reference is neither a URL nor base64 data") from exc

    media_type = "image/jpeg"
    for signature, candidate in _IMAGE_SIGNATURES:
        if raw.startswith(signature):
            media_type = candidate
            break
    return f"data:{media_type};base64,{cleaned}"


def coerce_messages(
    messages: Sequence[Message | Mapping[str, Any]],
    provider: str,
) -> list[Message]:
    """Accept messages as models or plain dicts; validate the dicts."""
    try:
        return [
            m if isinstance(m, Message) else Message.model_validate(m)
            for m in messages
        ]
    except ValidationError as exc:
        raise RequestFormatError(
            provider,
            operation_error(f"invalid message: {exc}", exc, provider, ErrorKind.REQUEST_FORMAT),
        ) from exc


def encode_json(payload: Mapping[str, Any], provider: str) -> EncodedBody:
    """Serialize a JSON payload.

    Raises:
        RequestFormatError: If a value (typically an extra parameter) is not
            JSON-serializable.
    """
    try:
        content = json.dumps(payload, allow_nan=False).encode()
    except (TypeError, ValueError) as exc:
        raise RequestFormatError(
            provider,
            operation_error(ERR_JSON_MARSHALING, exc, provider, ErrorKind.REQUEST_FORMAT),
        ) from exc
    return EncodedBody(content=content, content_type="application/json")


# ── Chat ────────────────────────────────────────────────────────


def _format_block(block: ContentBlock, sanitize: ImageURLSanitizer) -> dict[str, Any]:
    formatted = block.model_dump(exclude_none=True)
    if block.type == "image_url" and block.image_url is not None:
        try:
            formatted["image_url"]["url"] = sanitize(block.image_url.url)
        except ValueError as exc:
            logger.debug("image_url_sanitize_failed | %s", exc)
    return formatted


def format_chat_messages(
    messages: Sequence[Message],
    sanitize: ImageURLSanitizer = sanitize_image_url,
) -> list[dict[str, Any]]:
    """Map unified messages onto the vendor's chat message shape.

    Assistant messages keep their content verbatim and carry tool calls.
    Other roles carry either string content or a block list (image URLs
    sanitized), and tool messages carry their ``tool_call_id``.
    """
    formatted: list[dict[str, Any]] = []
    for msg in messages:
        if msg.role == "assistant":
            content: Any = msg.content
            if isinstance(content, list):
                content = [b.model_dump(exclude_none=True) for b in content]
            entry: dict[str, Any] = {"role": msg.role, "content": content}
            if msg.tool_calls is not None:
                entry["tool_calls"] = [tc.model_dump(exclude_none=True) for tc in msg.tool_calls]
        else:
            entry = {"role": msg.role}
            if isinstance(msg.content, str):
                entry["content"] = msg.content
            elif msg.content is not None:
                entry["content"] = [_format_block(b, sanitize) for b in msg.content]
            if msg.tool_call_id is not None:
                entry["tool_call_id"] = msg.tool_call_id
        formatted.append(entry)
    return formatted


def prepare_params(params: ModelParameters | None) -> dict[str, Any]:
    """Flatten named parameters to wire keys, then merge extras over them."""
    if params is None:
        return {}
    prepared = params.model_dump(exclude_none=True, exclude={"extra_params"})
    for source, target in _PARAM_RENAMES.items():
        if source in prepared:
            prepared[target] = prepared.pop(source)
    return merge_config(prepared, params.extra_params)


def build_chat_payload(
    model: str,
    messages: Sequence[Message],
    params: ModelParameters | None = None,
    *,
    stream: bool = False,
    sanitize: ImageURLSanitizer = sanitize_image_url,
) -> dict[str, Any]:
    """Build a chat completion payload.

    Prepared parameters are merged over the whole base payload, so an extra
    parameter can override even ``model`` or ``stream_options``.
    """
    base: dict[str, Any] = {
        "model": model,
        "messages": format_chat_messages(messages, sanitize),
    }
    if stream:
        base["stream"] = True
        base["stream_options"] = {"include_usage": True}
    return merge_config(base, prepare_params(params))


# ── Embedding ───────────────────────────────────────────────────


def build_embedding_payload(
    model: str,
    input: EmbeddingInput,
    params: ModelParameters | None = None,
) -> dict[str, Any]:
    """Build an embedding payload.

    Extras are merged after the named fields; ``model`` is set last and is
    never overridden by an extra parameter.
    """
    payload: dict[str, Any] = {"input": input}
    if params is not None:
        if params.encoding_format is not None:
            payload["encoding_format"] = params.encoding_format
        if params.dimensions is not None:
            payload["dimensions"] = params.dimensions
        if params.user is not None:
            payload["user"] = params.user
        payload = merge_config(payload, params.extra_params)
    payload["model"] = model
    return payload


# ── Speech ──────────────────────────────────────────────────────


def build_speech_payload(
    model: str,
    input: SpeechInput,
    params: ModelParameters | None = None,
    *,
    stream: bool = False,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "input": input.input,
        "model": model,
        "voice": input.voice,
        "instructions": input.instructions,
        "response_format": input.response_format or DEFAULT_SPEECH_FORMAT,
    }
    if stream:
        payload["stream_format"] = "sse"
    if params is not None:
        payload = merge_config(payload, params.extra_params)
    return payload


# ── Transcription ───────────────────────────────────────────────


def _form_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value)


def build_transcription_form(
    model: str,
    input: TranscriptionInput,
    params: ModelParameters | None,
    provider: str,
    *,
    stream: bool = False,
) -> EncodedBody:
    """Encode a transcription request as ``multipart/form-data``.

    Sequence-valued extra parameters become repeated ``key[]`` fields (e.g.
    ``timestamp_granularities[]``); scalars become plain fields.

    Raises:
        RequestFormatError: If any field cannot be written. No field is
            ever dropped silently.
    """
    fields: list[tuple[str, Any]] = []
    if stream:
        fields.append(("stream", "true"))
    fields.append(("file", (TRANSCRIPTION_FILENAME, input.file, "application/octet-stream")))
    fields.append(("model", model))
    if input.language is not None:
        fields.append(("language", input.language))
    if input.prompt is not None:
        fields.append(("prompt", input.prompt))
    if input.response_format is not None:
        fields.append(("response_format", input.response_format))

    try:
        if params is not None:
            for key, value in params.extra_params.items():
                if isinstance(value, (list, tuple)):
                    fields.extend((f"{key}[]", _form_value(item)) for item in value)
                else:
                    fields.append((key, _form_value(value)))
        content, content_type = encode_multipart_formdata(fields)
    except (TypeError, ValueError) as exc:
        raise RequestFormatError(
            provider,
            operation_error(
                f"failed to build transcription form: {exc}",
                exc,
                provider,
                ErrorKind.REQUEST_FORMAT,
            ),
        ) from exc

    return EncodedBody(content=content, content_type=content_type)
