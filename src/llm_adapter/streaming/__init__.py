"""Streaming sub-package: SSE parsing, accumulation, and the worker channel."""

from llm_adapter.streaming.accumulator import AudioStreamAccumulator, ChatStreamAccumulator
from llm_adapter.streaming.channel import EventChannel, EventStream, start_stream
from llm_adapter.streaming.runner import PostHook, run_audio_stream, run_chat_stream
from llm_adapter.streaming.sse import DONE_SENTINEL, iter_stream_payloads

__all__ = [
    "DONE_SENTINEL",
    "AudioStreamAccumulator",
    "ChatStreamAccumulator",
    "EventChannel",
    "EventStream",
    "PostHook",
    "iter_stream_payloads",
    "run_audio_stream",
    "run_chat_stream",
    "start_stream",
]
