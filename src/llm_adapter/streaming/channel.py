"""Bounded event channel between a stream worker task and its consumer."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from llm_adapter.types import StreamEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


class ChannelClosedError(RuntimeError):
    """Raised when sending on a channel that was already closed."""


class EventChannel:
    """Single-producer, single-consumer queue of stream events.

    ``send`` blocks while the channel is full. ``close`` is idempotent and
    never blocks; a consumer drains whatever was queued before it sees the
    end of the stream.
    """

    def __init__(self, maxsize: int) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, event: StreamEvent) -> None:
        if self._closed:
            raise ChannelClosedError("send on closed event channel")
        await self._queue.put(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # The consumer checks the closed flag once the queue drains.
            pass

    async def receive(self) -> StreamEvent | None:
        """Return the next event, or None once the channel is closed and drained."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return cast(StreamEvent, item)


class EventStream:
    """Caller-side handle for one streaming request.

    Iterate it to receive events in wire order. Leaving the ``async with``
    block or calling :meth:`aclose` cancels the worker, which closes the
    underlying response without emitting a terminal event.

    Usage::

        async with await provider.chat_completion_stream(model, messages) as events:
            async for event in events:
                ...
    """

    def __init__(
        self,
        channel: EventChannel,
        task: asyncio.Task[None],
        cleanup: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._channel = channel
        self._task = task
        self._cleanup = cleanup
        self._cancelled = False

    def __aiter__(self) -> EventStream:
        return self

    async def __anext__(self) -> StreamEvent:
        event = await self._channel.receive()
        if event is not None:
            return event
        if not self._cancelled:
            # Surface an unexpected worker failure instead of a silent end.
            await self._task
        raise StopAsyncIteration

    async def aclose(self) -> None:
        """Cancel the worker if it is still running and wait for it to exit."""
        if self._task.done():
            return
        self._cancelled = True
        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        if self._channel.closed:
            return
        # Cancelled before its first step, the worker never ran its finally block.
        try:
            if self._cleanup is not None:
                await self._cleanup()
        finally:
            self._channel.close()

    async def collect(self) -> list[StreamEvent]:
        """Drain the stream into a list."""
        return [event async for event in self]

    @property
    def done(self) -> bool:
        return self._task.done()

    async def __aenter__(self) -> EventStream:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()


def start_stream(
    producer: Callable[[EventChannel], Awaitable[None]],
    *,
    buffer_size: int,
    cleanup: Callable[[], Awaitable[None]] | None = None,
) -> EventStream:
    """Run *producer* in its own task and return the consumer handle.

    *cleanup* (typically closing the HTTP response) runs before the channel
    is closed, on every exit path: normal end, error, or cancellation.
    """
    channel = EventChannel(buffer_size)

    async def _worker() -> None:
        try:
            await producer(channel)
        finally:
            try:
                if cleanup is not None:
                    await cleanup()
            finally:
                channel.close()
                logger.debug("stream_worker_exit | channel closed")

    task = asyncio.create_task(_worker())
    return EventStream(channel, task, cleanup)
