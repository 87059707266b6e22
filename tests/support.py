"""Helpers shared by the unit tests: SSE bodies and recording transports."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Iterable
from typing import Any

import httpx

Handler = Callable[[httpx.Request], httpx.Response]


def sse_body(*payloads: Any, done: bool = True) -> bytes:
    """Render payloads as an SSE body. Strings are written as raw lines."""
    lines: list[str] = []
    for payload in payloads:
        if isinstance(payload, str):
            lines.append(payload)
        else:
            lines.append("data: " + json.dumps(payload))
        lines.append("")
    if done:
        lines.extend(["data: [DONE]", ""])
    return "\n".join(lines).encode()


async def aiter_lines(lines: Iterable[str]) -> AsyncIterator[str]:
    for line in lines:
        yield line


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            request.read()
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)
