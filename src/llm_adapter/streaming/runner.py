"""Stream producers: read SSE lines, accumulate, and emit events in wire order."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable, Awaitable, Callable

import httpx
from pydantic import ValidationError

from llm_adapter.streaming.accumulator import AudioStreamAccumulator, ChatStreamAccumulator
from llm_adapter.streaming.channel import EventChannel
from llm_adapter.streaming.sse import iter_stream_payloads
from llm_adapter.types import StreamEvent, UnifiedError
from llm_adapter.wire.aliasing import REASONING_ALIASES
from llm_adapter.wire.errors import stream_read_error

logger = logging.getLogger(__name__)

# Receives every event before it is queued and may replace it.
PostHook = Callable[[StreamEvent], Awaitable[StreamEvent]]


async def emit(
    channel: EventChannel,
    event: StreamEvent,
    post_hook: PostHook | None = None,
) -> None:
    if post_hook is not None:
        event = await post_hook(event)
    await channel.send(event)


async def run_chat_stream(
    lines: AsyncIterable[str],
    channel: EventChannel,
    accumulator: ChatStreamAccumulator,
    post_hook: PostHook | None = None,
) -> None:
    """Drive one chat completion stream to its terminal event.

    Normal end (sentinel or upstream close) emits the synthetic terminal
    chunk. A vendor error or a read failure emits one terminal error instead.
    """
    provider = accumulator.provider
    try:
        async for item in iter_stream_payloads(lines, provider, aliases=REASONING_ALIASES):
            if isinstance(item, UnifiedError):
                await emit(channel, StreamEvent(error=item, stream_end=True), post_hook)
                return
            try:
                chunk = accumulator.add(item)
            except ValidationError as exc:
                logger.warning("stream_chunk_decode_failed | provider=%s: %s", provider, exc)
                continue
            if chunk is not None:
                await emit(channel, StreamEvent(response=chunk), post_hook)
    except httpx.HTTPError as exc:
        logger.warning("stream_read_failed | provider=%s: %s", provider, exc)
        error = stream_read_error(exc, provider)
        await emit(channel, StreamEvent(error=error, stream_end=True), post_hook)
        return

    await emit(channel, StreamEvent(response=accumulator.finish(), stream_end=True), post_hook)


async def run_audio_stream(
    lines: AsyncIterable[str],
    channel: EventChannel,
    accumulator: AudioStreamAccumulator,
    post_hook: PostHook | None = None,
) -> None:
    """Drive one speech or transcription stream.

    The chunk that carries usage is forwarded as the terminal event and the
    stream is abandoned right after it.
    """
    provider = accumulator.provider
    try:
        async for item in iter_stream_payloads(lines, provider):
            if isinstance(item, UnifiedError):
                await emit(channel, StreamEvent(error=item, stream_end=True), post_hook)
                return
            try:
                response, terminal = accumulator.add(item)
            except ValidationError as exc:
                logger.warning("stream_chunk_decode_failed | provider=%s: %s", provider, exc)
                continue
            await emit(channel, StreamEvent(response=response, stream_end=terminal), post_hook)
            if terminal:
                return
    except httpx.HTTPError as exc:
        logger.warning("stream_read_failed | provider=%s: %s", provider, exc)
        error = stream_read_error(exc, provider)
        await emit(channel, StreamEvent(error=error, stream_end=True), post_hook)
