"""Primary chat/completion upstream client and the cancellable stream relay."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator

import httpx

from .errors import UpstreamFailure

logger = logging.getLogger("ollama_proxy.upstream")


class UpstreamStream:
    """Open upstream response relayed chunk by chunk.

    ``cancel()`` is the cancellation token shared by both ends: the relay
    stops at the next chunk boundary once it is set, and ``aclose()`` sets
    it before releasing the upstream connection.
    """

    def __init__(self, response: httpx.Response, *, chunk_size: int = 4096) -> None:
        self._response = response
        self._chunk_size = chunk_size
        self._cancelled = asyncio.Event()
        self._closed = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def media_type(self) -> str:
        return self._response.headers.get("content-type", "application/x-ndjson")

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def closed(self) -> bool:
        return self._closed

    def cancel(self) -> None:
        self._cancelled.set()

    async def aclose(self) -> None:
        self.cancel()
        if self._closed:
            return
        self._closed = True
        await self._response.aclose()

    async def relay(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes(chunk_size=self._chunk_size):
                if self._cancelled.is_set():
                    logger.debug("Stream relay cancelled")
                    break
                yield chunk
        except httpx.HTTPError as e:
            logger.warning("Upstream stream broke mid-relay: %s", e)
            raise
        finally:
            await self.aclose()


@dataclass
class PrimaryUpstream:
    base_url: str
    api_key: str | None = None
    timeout_s: float = 60.0
    chunk_size: int = 4096
    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_s),
            transport=self.transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def post(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        stream: bool,
    ) -> dict[str, Any] | UpstreamStream:
        url = f"{self.base_url.rstrip('/')}{path}"
        req = self.client.build_request("POST", url, json=payload, headers=self._headers())
        try:
            resp = await self.client.send(req, stream=stream)
        except httpx.HTTPError as e:
            logger.warning("Upstream call to %s failed: %s", url, e)
            raise UpstreamFailure(f"{type(e).__name__}: {e}") from e

        if not resp.is_success:
            try:
                body = (await resp.aread()).decode("utf-8", errors="replace")
            finally:
                await resp.aclose()
            logger.warning("Upstream %s returned %d: %s", url, resp.status_code, body[:200])
            raise UpstreamFailure(
                f"Upstream returned HTTP {resp.status_code}",
                upstream_status=resp.status_code,
                upstream_body=body,
            )

        if stream:
            return UpstreamStream(resp, chunk_size=self.chunk_size)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamFailure(
                "Upstream returned a non-JSON body",
                upstream_status=resp.status_code,
                upstream_body=resp.text,
            ) from e
        if not isinstance(data, dict):
            raise UpstreamFailure(
                "Upstream returned an unexpected JSON body",
                upstream_status=resp.status_code,
                upstream_body=resp.text,
            )
        return data

    async def aclose(self) -> None:
        await self.client.aclose()
