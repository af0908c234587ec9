"""Proxy error taxonomy and its rendering for the native and OpenAI surfaces."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .models import Surface


@dataclass(eq=False)
class ProxyError(Exception):
    status_code: int
    message: str

    def __str__(self) -> str:
        return self.message

    def to_native(self) -> dict[str, Any]:
        return {"error": self.message}

    def to_openai(self) -> dict[str, Any]:
        return {
            "error": {
                "message": self.message,
                "type": "server_error" if self.status_code >= 500 else "invalid_request_error",
                "param": None,
                "code": None,
            }
        }

    def render(self, surface: Surface) -> dict[str, Any]:
        if surface is Surface.OPENAI:
            return self.to_openai()
        return self.to_native()


class MissingParameter(ProxyError):
    """A required request field is absent; the request never reaches upstream."""

    def __init__(self, param: str) -> None:
        super().__init__(
            status_code=400,
            message=f'Missing required parameter: "{param}"',
        )
        self.param = param

    def to_openai(self) -> dict[str, Any]:
        return {
            "error": {
                "message": self.message,
                "type": "invalid_request_error",
                "param": self.param,
                "code": "missing_parameter",
            }
        }


class ModelNotFound(ProxyError):
    def __init__(self, model: str) -> None:
        super().__init__(status_code=404, message="Model not found")
        self.model = model

    def to_openai(self) -> dict[str, Any]:
        return {
            "error": {
                "message": self.message,
                "type": "invalid_request_error",
                "param": "model",
                "code": "model_not_found",
            }
        }


class UpstreamFailure(ProxyError):
    """Transport error, non-2xx status or unusable body from an upstream provider.

    ``upstream_status`` and ``upstream_body`` are kept when the provider
    answered at all; they surface as ``details`` on the native surface.
    """

    def __init__(
        self,
        message: str,
        *,
        upstream_status: int | None = None,
        upstream_body: str | None = None,
    ) -> None:
        super().__init__(status_code=500, message=message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body

    @property
    def details(self) -> str:
        if self.upstream_status is None:
            return self.message
        body = (self.upstream_body or "").strip()
        if len(body) > 2048:
            body = body[:2045] + "..."
        if not body:
            return f"upstream status {self.upstream_status}"
        return f"upstream status {self.upstream_status}: {body}"

    def to_native(self) -> dict[str, Any]:
        return {"error": "Failed to proxy request to upstream", "details": self.details}

    def to_openai(self) -> dict[str, Any]:
        return {
            "error": {
                "message": "Failed to proxy request",
                "type": "server_error",
                "param": None,
                "code": self.upstream_status,
            }
        }
