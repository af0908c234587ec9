"""Converts buffered upstream payloads into the originating surface's response shape.

Every function here is pure: the same upstream payload (and clock value)
always yields the same response, and the payload is never mutated.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from .errors import UpstreamFailure
from .models import (
    AssistantMessage,
    CanonicalRequest,
    OllamaChatResponse,
    OllamaEmbeddingResponse,
    OllamaGenerateResponse,
    RequestKind,
    Surface,
)


def translate(
    request: CanonicalRequest,
    payload: dict[str, Any],
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    if request.kind is RequestKind.EMBEDDING:
        return translate_embedding_response(payload, request.surface)
    if request.surface is Surface.OPENAI:
        return relay_openai_response(payload, model=request.model)
    if request.kind is RequestKind.CHAT:
        return translate_chat_response(payload, model=request.model, now=now)
    return translate_generate_response(payload, model=request.model, now=now)


def translate_chat_response(
    payload: dict[str, Any],
    *,
    model: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    prompt_tokens, completion_tokens = _usage_counts(payload)
    try:
        out = OllamaChatResponse(
            model=model,
            created_at=_created_at(payload, now),
            message=AssistantMessage(content=_message_text(payload)),
            done_reason=_finish_reason(payload),
            prompt_eval_count=prompt_tokens,
            eval_count=completion_tokens,
        )
    except ValidationError as e:
        raise UpstreamFailure("Upstream chat response has malformed fields") from e
    return out.model_dump(exclude_none=True)


def translate_generate_response(
    payload: dict[str, Any],
    *,
    model: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    prompt_tokens, completion_tokens = _usage_counts(payload)
    try:
        out = OllamaGenerateResponse(
            model=model,
            created_at=_created_at(payload, now),
            response=_completion_text(payload),
            done_reason=_finish_reason(payload),
            prompt_eval_count=prompt_tokens,
            eval_count=completion_tokens,
        )
    except ValidationError as e:
        raise UpstreamFailure("Upstream generate response has malformed fields") from e
    return out.model_dump(exclude_none=True)


def relay_openai_response(payload: dict[str, Any], *, model: str) -> dict[str, Any]:
    out = dict(payload)
    out["model"] = model
    return out


def translate_embedding_response(payload: dict[str, Any], surface: Surface) -> dict[str, Any]:
    if surface is Surface.OPENAI:
        return payload
    try:
        vector = payload["data"][0]["embedding"]
    except (KeyError, IndexError, TypeError):
        raise UpstreamFailure("Upstream embeddings response has no embedding vector") from None
    try:
        return OllamaEmbeddingResponse(embedding=vector).model_dump()
    except ValidationError as e:
        raise UpstreamFailure("Upstream embeddings response has a malformed vector") from e


def _first_choice(payload: dict[str, Any]) -> dict[str, Any]:
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def _message_text(payload: dict[str, Any]) -> str:
    message = payload.get("message")
    if not isinstance(message, dict):
        message = _first_choice(payload).get("message")
    if isinstance(message, dict):
        return str(message.get("content") or "")
    return ""


def _completion_text(payload: dict[str, Any]) -> str:
    if isinstance(payload.get("response"), str):
        return payload["response"]
    choice = _first_choice(payload)
    if isinstance(choice.get("text"), str):
        return choice["text"]
    return _message_text(payload)


def _finish_reason(payload: dict[str, Any]) -> str:
    reason = payload.get("done_reason") or _first_choice(payload).get("finish_reason")
    return str(reason) if reason else "stop"


def _usage_counts(payload: dict[str, Any]) -> tuple[int | None, int | None]:
    if "prompt_eval_count" in payload or "eval_count" in payload:
        return payload.get("prompt_eval_count"), payload.get("eval_count")
    usage = payload.get("usage")
    if not isinstance(usage, dict):
        return None, None
    return usage.get("prompt_tokens"), usage.get("completion_tokens")


def _created_at(payload: dict[str, Any], now: datetime | None) -> str:
    created_at = payload.get("created_at")
    if isinstance(created_at, str) and created_at:
        return created_at

    created = payload.get("created")
    if isinstance(created, (int, float)) and not isinstance(created, bool):
        ts = datetime.fromtimestamp(created, tz=timezone.utc)
    else:
        ts = now or datetime.now(timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
