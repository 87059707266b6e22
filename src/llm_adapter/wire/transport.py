"""HTTP transport for the adapter, backed by ``httpx.AsyncClient``.

Buffered calls return a fully read response. Streaming calls return an open
response whose ownership passes to the caller (the stream worker), which
must close it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

import httpx

from llm_adapter.exceptions import ProviderRequestError
from llm_adapter.wire.errors import transport_error
from llm_adapter.wire.formatter import EncodedBody

logger = logging.getLogger(__name__)


class HTTPTransport:
    """Sends wire requests for one provider instance.

    A client passed in by the caller is shared, never closed here.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        provider: str,
        extra_headers: Mapping[str, str] | None = None,
        timeout_seconds: int = 120,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._provider = provider
        self._extra_headers = dict(extra_headers or {})
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=float(timeout_seconds))

    @property
    def base_url(self) -> str:
        return self._base_url

    def build_headers(self, content_type: str, *, stream: bool = False) -> httpx.Headers:
        """Extra headers first, then the fixed ones, which win on collision."""
        headers = httpx.Headers(self._extra_headers)
        headers["Authorization"] = f"Bearer {self._api_key}"
        headers["Content-Type"] = content_type
        if stream:
            headers["Accept"] = "text/event-stream"
            headers["Cache-Control"] = "no-cache"
        return headers

    def _build_request(self, path: str, body: EncodedBody, *, stream: bool) -> httpx.Request:
        return self._client.build_request(
            "POST",
            self._base_url + path,
            content=body.content,
            headers=self.build_headers(body.content_type, stream=stream),
        )

    async def post(self, path: str, body: EncodedBody) -> httpx.Response:
        """POST and read the whole response.

        Raises:
            ProviderRequestError: On connection or timeout failures.
        """
        request = self._build_request(path, body, stream=False)
        try:
            return await self._client.send(request)
        except httpx.HTTPError as exc:
            logger.warning("http_request_failed | %s %s: %s", request.method, request.url, exc)
            raise ProviderRequestError(self._provider, transport_error(exc, self._provider)) from exc

    async def open_stream(self, path: str, body: EncodedBody) -> httpx.Response:
        """POST with SSE headers and return the response unread.

        Raises:
            ProviderRequestError: On connection or timeout failures.
        """
        request = self._build_request(path, body, stream=True)
        try:
            return await self._client.send(request, stream=True)
        except httpx.HTTPError as exc:
            logger.warning("http_stream_open_failed | %s %s: %s", request.method, request.url, exc)
            raise ProviderRequestError(self._provider, transport_error(exc, self._provider)) from exc

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
