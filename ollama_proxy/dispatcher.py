"""Routes canonical requests to the primary or embeddings upstream provider."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from .catalog import ModelNameMap
from .config import Settings
from .models import CanonicalRequest, RequestKind, Surface
from .upstream import PrimaryUpstream, UpstreamStream
from .upstream_openai import EmbeddingsUpstream

logger = logging.getLogger("ollama_proxy.dispatcher")


@dataclass(frozen=True)
class UpstreamResponse:
    upstream_model: str
    payload: dict[str, Any] | None = None
    stream: UpstreamStream | None = None

    @property
    def is_stream(self) -> bool:
        return self.stream is not None


class UpstreamDispatcher:
    """One outbound call per canonical request; no retries.

    ``transport`` replaces the network for both providers, which is how the
    tests fake upstream traffic.
    """

    def __init__(
        self,
        settings: Settings,
        name_map: ModelNameMap,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.name_map = name_map
        self.primary = PrimaryUpstream(
            base_url=settings.primary_api_url,
            api_key=settings.primary_api_key,
            timeout_s=settings.upstream_timeout_s,
            chunk_size=settings.stream_chunk_size,
            transport=transport,
        )
        self.embeddings = EmbeddingsUpstream(
            base_url=settings.embeddings_api_url,
            api_key=settings.embeddings_api_key,
            timeout_s=settings.upstream_timeout_s,
            transport=transport,
        )

    def upstream_model(self, request: CanonicalRequest) -> str:
        if request.kind is RequestKind.EMBEDDING:
            return self.name_map.lookup(request.model)
        if request.surface is Surface.OPENAI and self.settings.chat_model_override:
            return self.settings.chat_model_override
        return request.model

    def build_payload(self, request: CanonicalRequest, model: str) -> dict[str, Any]:
        if request.kind is RequestKind.CHAT:
            payload: dict[str, Any] = {
                "model": model,
                "messages": request.messages,
                "stream": request.stream,
            }
        else:
            payload = {"model": model, "prompt": request.prompt, "stream": request.stream}
        payload.update(request.extra_params)
        return payload

    async def dispatch(self, request: CanonicalRequest) -> UpstreamResponse:
        model = self.upstream_model(request)
        logger.info(
            "Dispatching %s/%s: %s -> %s (stream=%s)",
            request.surface.value,
            request.kind.value,
            request.model,
            model,
            request.stream,
        )

        if request.kind is RequestKind.EMBEDDING:
            data = await self.embeddings.embed(
                model=model,
                input=request.prompt,
                extra_params=request.extra_params,
            )
            return UpstreamResponse(upstream_model=model, payload=data)

        path = (
            self.settings.primary_chat_path
            if request.kind is RequestKind.CHAT
            else self.settings.primary_completion_path
        )
        result = await self.primary.post(
            path, self.build_payload(request, model), stream=request.stream
        )
        if isinstance(result, UpstreamStream):
            return UpstreamResponse(upstream_model=model, stream=result)
        return UpstreamResponse(upstream_model=model, payload=result)

    async def aclose(self) -> None:
        await self.primary.aclose()
        await self.embeddings.aclose()
