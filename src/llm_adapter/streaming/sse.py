"""Incremental SSE decoding.

Turns the text lines of an ``text/event-stream`` body into JSON payloads.
Parsing stops at the ``data: [DONE]`` sentinel or at the first error
envelope, which is yielded as a :class:`UnifiedError`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Sequence
from typing import Any

from llm_adapter.types import UnifiedError
from llm_adapter.wire.aliasing import alias_choices
from llm_adapter.wire.errors import classify_stream_error

logger = logging.getLogger(__name__)

DONE_SENTINEL = "data: [DONE]"
DATA_PREFIX = "data: "


def extract_payload(line: str) -> str | None:
    """Return the JSON candidate carried by *line*, or None if it carries nothing.

    Lines without the ``data: `` prefix are returned whole: vendors sometimes
    write a bare error object into the stream.
    """
    if not line or line.startswith(":"):
        return None
    data = line[len(DATA_PREFIX):] if line.startswith(DATA_PREFIX) else line
    if not data.strip():
        return None
    return data


async def iter_stream_payloads(
    lines: AsyncIterable[str],
    provider: str,
    *,
    aliases: Sequence[tuple[str, str]] | None = None,
) -> AsyncIterator[dict[str, Any] | UnifiedError]:
    """Yield one generically decoded mapping per SSE data line.

    When *aliases* is given, it is applied to ``choices[*].delta`` before
    the mapping is yielded. Lines that are not JSON objects are logged and
    skipped. An ``error`` key ends the stream: the classified error is
    yielded and nothing further is read. An error envelope that fails to
    decode is dropped with a warning and reading continues.
    """
    async for line in lines:
        if line == DONE_SENTINEL:
            return

        data = extract_payload(line)
        if data is None:
            continue

        try:
            raw = json.loads(data)
        except ValueError as exc:
            logger.warning("stream_json_decode_failed | provider=%s: %s", provider, exc)
            continue
        if not isinstance(raw, dict):
            logger.warning(
                "stream_unexpected_payload | provider=%s type=%s",
                provider,
                type(raw).__name__,
            )
            continue

        if raw.get("error") is not None:
            try:
                error = classify_stream_error(raw, provider)
            except ValueError as exc:
                logger.warning("stream_error_decode_failed | provider=%s: %s", provider, exc)
                continue
            yield error
            return

        if aliases:
            alias_choices(raw, "delta", aliases)
        yield raw
