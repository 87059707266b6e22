"""Tests for the event channel and stream worker."""

from __future__ import annotations

import asyncio

import pytest

from llm_adapter.streaming.channel import (
    ChannelClosedError,
    EventChannel,
    EventStream,
    start_stream,
)
from llm_adapter.types import StreamEvent, UnifiedResponse


def _event(n: int, end: bool = False) -> StreamEvent:
    return StreamEvent(response=UnifiedResponse(id=str(n)), stream_end=end)


@pytest.mark.unit
class TestEventChannel:
    async def test_fifo_then_none_after_close(self) -> None:
        channel = EventChannel(maxsize=4)
        await channel.send(_event(1))
        await channel.send(_event(2))
        channel.close()
        first = await channel.receive()
        second = await channel.receive()
        assert first is not None and first.response.id == "1"  # type: ignore[union-attr]
        assert second is not None and second.response.id == "2"  # type: ignore[union-attr]
        assert await channel.receive() is None
        assert await channel.receive() is None

    async def test_close_is_idempotent(self) -> None:
        channel = EventChannel(maxsize=1)
        channel.close()
        channel.close()
        assert channel.closed
        assert await channel.receive() is None

    async def test_send_after_close_raises(self) -> None:
        channel = EventChannel(maxsize=1)
        channel.close()
        with pytest.raises(ChannelClosedError):
            await channel.send(_event(1))

    async def test_close_on_full_channel_still_drains(self) -> None:
        channel = EventChannel(maxsize=1)
        await channel.send(_event(1))
        channel.close()
        assert (await channel.receive()) is not None
        assert await channel.receive() is None

    async def test_send_blocks_when_full(self) -> None:
        channel = EventChannel(maxsize=1)
        await channel.send(_event(1))
        pending = asyncio.create_task(channel.send(_event(2)))
        await asyncio.sleep(0)
        assert not pending.done()
        await channel.receive()
        await asyncio.wait_for(pending, timeout=1)


@pytest.mark.unit
class TestStartStream:
    async def test_events_arrive_in_order(self) -> None:
        async def producer(channel: EventChannel) -> None:
            for n in range(5):
                await channel.send(_event(n, end=n == 4))

        stream = start_stream(producer, buffer_size=2)
        events = await stream.collect()
        assert [e.response.id for e in events] == ["0", "1", "2", "3", "4"]  # type: ignore[union-attr]
        assert events[-1].stream_end
        assert stream.done

    async def test_cleanup_runs_before_stream_ends(self) -> None:
        order: list[str] = []

        async def producer(channel: EventChannel) -> None:
            await channel.send(_event(1))

        async def cleanup() -> None:
            order.append("cleanup")

        stream = start_stream(producer, buffer_size=4, cleanup=cleanup)
        async for _ in stream:
            order.append("event")
        assert "cleanup" in order
        assert order.count("event") == 1

    async def test_worker_exception_surfaces(self) -> None:
        async def producer(channel: EventChannel) -> None:
            await channel.send(_event(1))
            raise RuntimeError("worker bug")

        stream = start_stream(producer, buffer_size=4)
        with pytest.raises(RuntimeError, match="worker bug"):
            await stream.collect()

    async def test_aclose_cancels_worker_and_runs_cleanup(self) -> None:
        released = asyncio.Event()
        cleaned: list[bool] = []

        async def producer(channel: EventChannel) -> None:
            await channel.send(_event(1))
            await released.wait()
            await channel.send(_event(2))

        async def cleanup() -> None:
            cleaned.append(True)

        stream = start_stream(producer, buffer_size=4, cleanup=cleanup)
        first = await stream.__anext__()
        assert first.response.id == "1"  # type: ignore[union-attr]
        await stream.aclose()
        assert stream.done
        assert cleaned == [True]
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()

    async def test_context_manager_closes(self) -> None:
        async def producer(channel: EventChannel) -> None:
            await asyncio.Event().wait()

        async with start_stream(producer, buffer_size=1) as stream:
            assert isinstance(stream, EventStream)
        assert stream.done

    async def test_backpressure_bounds_buffer(self) -> None:
        sent: list[int] = []

        async def producer(channel: EventChannel) -> None:
            for n in range(10):
                await channel.send(_event(n))
                sent.append(n)

        stream = start_stream(producer, buffer_size=2)
        await asyncio.sleep(0.01)
        # Two queued, one more blocked in send.
        assert len(sent) <= 3
        events = await stream.collect()
        assert len(events) == 10

    async def test_aclose_before_worker_starts_still_cleans_up(self) -> None:
        cleaned: list[bool] = []

        async def producer(channel: EventChannel) -> None:
            await channel.send(_event(1))

        async def cleanup() -> None:
            cleaned.append(True)

        stream = start_stream(producer, buffer_size=4, cleanup=cleanup)
        await stream.aclose()
        assert cleaned == [True]
        with pytest.raises(StopAsyncIteration):
            await asyncio.wait_for(stream.__anext__(), timeout=1)

    async def test_cleanup_runs_once_when_worker_already_exited(self) -> None:
        cleaned: list[bool] = []

        async def producer(channel: EventChannel) -> None:
            await asyncio.Event().wait()

        async def cleanup() -> None:
            cleaned.append(True)

        stream = start_stream(producer, buffer_size=1, cleanup=cleanup)
        await asyncio.sleep(0)
        await stream.aclose()
        await stream.aclose()
        assert cleaned == [True]
