"""Error classification: vendor envelopes and local failures to UnifiedError."""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ValidationError

from llm_adapter.types import ErrorField, ErrorKind, Operation, UnifiedError

# Messages used for adapter-side failures.
ERR_JSON_MARSHALING = "failed to marshal request body to JSON"
ERR_REQUEST = "failed to make HTTP request to provider API"
ERR_RESPONSE_UNMARSHAL = "failed to unmarshal response from provider API"
ERR_DECODE_RAW = "failed to decode raw response from provider API"
ERR_STREAM_READ = "failed to read stream from provider API"


class _ErrorBody(BaseModel):
    type: str | None = None
    code: str | int | None = None
    message: str = ""
    param: Any = None
    event_id: str | None = None


class ErrorEnvelope(BaseModel):
    """``{"error": {...}, "event_id": ...}`` as sent by the vendor."""

    error: _ErrorBody
    event_id: str | None = None


def _from_envelope(
    envelope: ErrorEnvelope,
    provider: str,
    status_code: int | None = None,
) -> UnifiedError:
    body = envelope.error
    return UnifiedError(
        kind=ErrorKind.PROVIDER_API,
        is_adapter_error=False,
        status_code=status_code,
        event_id=envelope.event_id,
        provider=provider,
        error=ErrorField(
            type=body.type,
            code=str(body.code) if body.code is not None else None,
            message=body.message,
            param=body.param,
            event_id=body.event_id,
        ),
    )


def classify_error_response(
    status_code: int,
    body: bytes | str,
    provider: str,
) -> UnifiedError:
    """Classify a non-success response.

    A body that does not decode as an error envelope yields a
    ``RESPONSE_DECODE`` error carrying the status code instead.
    """
    try:
        envelope = ErrorEnvelope.model_validate_json(body)
    except ValidationError as exc:
        return UnifiedError(
            kind=ErrorKind.RESPONSE_DECODE,
            is_adapter_error=True,
            status_code=status_code,
            provider=provider,
            error=ErrorField(message=ERR_RESPONSE_UNMARSHAL, error=exc),
        )
    return _from_envelope(envelope, provider, status_code)


def classify_stream_error(payload: str | dict[str, Any], provider: str) -> UnifiedError:
    """Classify an error envelope found mid-stream.

    Raises:
        ValueError: If the envelope itself does not decode (pydantic's
            ``ValidationError`` included). Stream readers log this and keep
            reading.
    """
    if isinstance(payload, str):
        envelope = ErrorEnvelope.model_validate(json.loads(payload))
    else:
        envelope = ErrorEnvelope.model_validate(payload)
    return _from_envelope(envelope, provider)


def operation_error(
    message: str,
    exc: BaseException | None,
    provider: str,
    kind: ErrorKind,
    status_code: int | None = None,
) -> UnifiedError:
    """Describe a failure that happened on this side of the wire."""
    return UnifiedError(
        kind=kind,
        is_adapter_error=True,
        status_code=status_code,
        provider=provider,
        error=ErrorField(message=message, error=exc),
    )


def transport_error(exc: BaseException, provider: str) -> UnifiedError:
    return operation_error(ERR_REQUEST, exc, provider, ErrorKind.TRANSPORT)


def stream_read_error(exc: BaseException, provider: str) -> UnifiedError:
    """Describe a read failure on an already-open stream."""
    message = str(exc) or ERR_STREAM_READ
    return operation_error(message, exc, provider, ErrorKind.TRANSPORT)


def unsupported_operation_error(operation: Operation | str, provider: str) -> UnifiedError:
    name = operation.value if isinstance(operation, Operation) else operation
    return UnifiedError(
        kind=ErrorKind.UNSUPPORTED_OPERATION,
        is_adapter_error=False,
        provider=provider,
        error=ErrorField(
            type="unsupported_operation",
            code="unsupported_operation",
            message=f"{name} is not supported by {provider} provider",
        ),
    )
