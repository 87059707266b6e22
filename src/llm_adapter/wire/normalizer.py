"""Buffered response normalization into :class:`UnifiedResponse`.

Bodies are decoded twice: first into a generic mapping so vendor aliases
can be resolved, then strictly into the unified model.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from llm_adapter.exceptions import ResponseDecodeError
from llm_adapter.types import (
    ErrorKind,
    ModelParameters,
    Speech,
    Transcription,
    UnifiedResponse,
)
from llm_adapter.wire.aliasing import alias_choices
from llm_adapter.wire.errors import ERR_DECODE_RAW, ERR_RESPONSE_UNMARSHAL, operation_error


def _decode_error(message: str, exc: Exception, provider: str) -> ResponseDecodeError:
    return ResponseDecodeError(
        provider,
        operation_error(message, exc, provider, ErrorKind.RESPONSE_DECODE),
    )


def _load_mapping(body: bytes, provider: str) -> dict[str, Any]:
    try:
        raw = json.loads(body)
    except ValueError as exc:
        raise _decode_error(ERR_RESPONSE_UNMARSHAL, exc, provider) from exc
    if not isinstance(raw, dict):
        exc = ValueError(f"expected a JSON object, got {type(raw).__name__}")
        raise _decode_error(ERR_RESPONSE_UNMARSHAL, exc, provider)
    return raw


def _stamp(
    response: UnifiedResponse,
    provider: str,
    params: ModelParameters | None,
    raw: Any = None,
) -> UnifiedResponse:
    response.extra_fields.provider = provider
    if params is not None:
        response.extra_fields.params = params
    if raw is not None:
        response.extra_fields.raw_response = raw
    return response


def normalize_chat_response(
    body: bytes,
    provider: str,
    params: ModelParameters | None = None,
    *,
    send_back_raw_response: bool = False,
) -> UnifiedResponse:
    """Decode a chat completion body, renaming reasoning fields to ``thought``."""
    raw = alias_choices(_load_mapping(body, provider), "message")
    try:
        response = UnifiedResponse.model_validate(raw)
    except ValidationError as exc:
        raise _decode_error(ERR_RESPONSE_UNMARSHAL, exc, provider) from exc
    return _stamp(response, provider, params, raw if send_back_raw_response else None)


def normalize_embedding_response(
    body: bytes,
    provider: str,
    params: ModelParameters | None = None,
    *,
    send_back_raw_response: bool = False,
) -> UnifiedResponse:
    try:
        response = UnifiedResponse.model_validate_json(body)
    except ValidationError as exc:
        raise _decode_error(ERR_RESPONSE_UNMARSHAL, exc, provider) from exc

    raw: Any = None
    if send_back_raw_response:
        try:
            raw = json.loads(body)
        except ValueError as exc:
            raise _decode_error(ERR_DECODE_RAW, exc, provider) from exc
    return _stamp(response, provider, params, raw)


def normalize_speech_response(
    audio: bytes,
    model: str,
    provider: str,
    params: ModelParameters | None = None,
) -> UnifiedResponse:
    """Wrap a binary audio body. There is nothing to decode."""
    response = UnifiedResponse(
        object="audio.speech",
        model=model,
        speech=Speech(audio=audio),
    )
    return _stamp(response, provider, params)


def normalize_transcription_response(
    body: bytes,
    model: str,
    provider: str,
    params: ModelParameters | None = None,
    *,
    send_back_raw_response: bool = False,
) -> UnifiedResponse:
    try:
        transcription = Transcription.model_validate_json(body)
    except ValidationError as exc:
        raise _decode_error(ERR_RESPONSE_UNMARSHAL, exc, provider) from exc

    try:
        raw = json.loads(body)
    except ValueError as exc:
        raise _decode_error(ERR_DECODE_RAW, exc, provider) from exc

    response = UnifiedResponse(
        object="audio.transcription",
        model=model,
        transcription=transcription,
    )
    return _stamp(response, provider, params, raw if send_back_raw_response else None)
