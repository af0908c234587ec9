"""Lenient inbound body parsing and normalization into CanonicalRequest records."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from pydantic import ValidationError

from .errors import MissingParameter
from .models import CanonicalRequest, ChatMessage, RequestKind, Surface

logger = logging.getLogger("ollama_proxy.normalizer")

_FALSE_STRINGS = frozenset({"", "0", "false", "no", "off"})

# Text field names per surface, preferred name first.
_TEXT_ALIASES: dict[Surface, tuple[str, str]] = {
    Surface.NATIVE: ("prompt", "input"),
    Surface.OPENAI: ("input", "prompt"),
}

_STREAM_DEFAULT: dict[Surface, bool] = {
    Surface.NATIVE: True,
    Surface.OPENAI: False,
}


def parse_body(raw: bytes | str | Mapping[str, Any] | None) -> dict[str, Any] | str:
    """Return the body as a field record, or as raw text when it has no structure."""
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)

    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    if not text.strip():
        return {}

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = None
    else:
        if isinstance(parsed, dict):
            return parsed
        if isinstance(parsed, str):
            return parsed

    logger.debug("Body is not structured; keeping %d chars as raw text", len(text))
    return text


def normalize(
    raw: bytes | str | Mapping[str, Any] | None,
    *,
    kind: RequestKind,
    surface: Surface,
    default_embedding_model: str,
) -> CanonicalRequest:
    body = parse_body(raw)
    preferred, alternate = _TEXT_ALIASES[surface]

    if isinstance(body, str):
        if kind is RequestKind.EMBEDDING:
            logger.warning("Unparsable embedding body; using the raw text as %r", preferred)
            fields: dict[str, Any] = {preferred: body}
        else:
            fields = {}
    else:
        fields = dict(body)

    model = fields.pop("model", None)
    if not model:
        if kind is RequestKind.EMBEDDING and surface is Surface.NATIVE:
            model = default_embedding_model
        else:
            raise MissingParameter("model")

    messages: list[dict[str, Any]] = []
    prompt: str | list[Any] | None = None
    stream = _STREAM_DEFAULT[surface]

    if kind is RequestKind.CHAT:
        messages = _validate_messages(fields.pop("messages", None))
        stream = _coerce_bool(fields.pop("stream", stream))
    elif kind is RequestKind.COMPLETION:
        prompt = _pop_text(fields, preferred, alternate)
        if prompt is None:
            raise MissingParameter("prompt")
        stream = _coerce_bool(fields.pop("stream", stream))
    else:
        prompt = _pop_text(fields, preferred, alternate)
        if not prompt:
            raise MissingParameter("prompt_or_input" if surface is Surface.NATIVE else "input")
        # Embeddings never stream; the flag is not forwarded to the provider.
        fields.pop("stream", None)
        stream = False

    return CanonicalRequest(
        kind=kind,
        surface=surface,
        model=str(model),
        messages=messages,
        prompt=prompt,
        stream=stream,
        extra_params=fields,
    )


def _pop_text(fields: dict[str, Any], preferred: str, alternate: str) -> Any:
    first = fields.pop(preferred, None)
    second = fields.pop(alternate, None)
    if first not in (None, "", []):
        return first
    if second not in (None, "", []):
        return second
    return None


def _validate_messages(raw: Any) -> list[dict[str, Any]]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            raise MissingParameter("messages") from None
    if not isinstance(raw, list) or not raw:
        raise MissingParameter("messages")
    try:
        for m in raw:
            ChatMessage.model_validate(m)
    except ValidationError as e:
        raise MissingParameter("messages") from e
    # Forwarded as received so provider-specific message fields survive.
    return [dict(m) for m in raw]


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)
