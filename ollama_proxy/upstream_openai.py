"""OpenAI-compatible embeddings upstream client used by the dispatcher."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
import openai
from openai import AsyncOpenAI

from .errors import UpstreamFailure

logger = logging.getLogger("ollama_proxy.upstream_openai")


@dataclass
class EmbeddingsUpstream:
    base_url: str
    api_key: str | None = None
    timeout_s: float = 60.0
    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        http_client = None
        if self.transport is not None:
            http_client = httpx.AsyncClient(transport=self.transport, timeout=self.timeout_s)
        # The SDK refuses a missing key at construction; embed() reports it per request.
        self.client = AsyncOpenAI(
            api_key=self.api_key or "unset",
            base_url=self.base_url,
            timeout=self.timeout_s,
            max_retries=0,
            http_client=http_client,
        )

    async def embed(
        self,
        *,
        model: str,
        input: str | list[Any],
        extra_params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Return the provider's embeddings payload exactly as it was sent."""
        if not self.api_key:
            raise UpstreamFailure("IOINTELLIGENCE_API_KEY not configured")

        extra = {k: v for k, v in (extra_params or {}).items() if k != "encoding_format"}
        try:
            raw = await self.client.embeddings.with_raw_response.create(
                model=model,
                input=input,
                encoding_format="float",
                extra_body=extra or None,
            )
        except openai.APIStatusError as e:
            logger.warning("Embeddings upstream returned %d: %s", e.status_code, e.response.text[:200])
            raise UpstreamFailure(
                f"Upstream returned HTTP {e.status_code}",
                upstream_status=e.status_code,
                upstream_body=e.response.text,
            ) from e
        except openai.APIError as e:
            logger.warning("Embeddings upstream call failed: %s", e)
            raise UpstreamFailure(f"{type(e).__name__}: {e}") from e

        try:
            data = raw.http_response.json()
        except ValueError as e:
            raise UpstreamFailure(
                "Upstream returned a non-JSON body",
                upstream_status=raw.status_code,
                upstream_body=raw.http_response.text,
            ) from e
        if not isinstance(data, dict):
            raise UpstreamFailure(
                "Upstream returned an unexpected JSON body",
                upstream_status=raw.status_code,
                upstream_body=raw.http_response.text,
            )
        return data

    async def aclose(self) -> None:
        await self.client.close()
