import json
from datetime import datetime, timezone

import pytest

from ollama_proxy.errors import UpstreamFailure
from ollama_proxy.models import CanonicalRequest, RequestKind, Surface
from ollama_proxy.translator import (
    relay_openai_response,
    translate,
    translate_chat_response,
    translate_embedding_response,
    translate_generate_response,
)

FIXED_NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _openai_chat_payload() -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1735689600,
        "model": "llama-3.1-8b-instruct",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": "Hello!"},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 5, "completion_tokens": 2, "total_tokens": 7},
    }


def test_native_chat_wraps_message_and_echoes_model() -> None:
    out = translate_chat_response(_openai_chat_payload(), model="deepseek-r1:7b")
    assert out == {
        "model": "deepseek-r1:7b",
        "created_at": "2025-01-01T00:00:00.000000Z",
        "message": {"role": "assistant", "content": "Hello!"},
        "done_reason": "stop",
        "done": True,
        "prompt_eval_count": 5,
        "eval_count": 2,
    }


def test_native_chat_accepts_ollama_shaped_upstream() -> None:
    payload = {
        "model": "upstream",
        "created_at": "2024-06-01T10:00:00Z",
        "message": {"role": "assistant", "content": "hey"},
        "done": True,
    }
    out = translate_chat_response(payload, model="deepseek-r1:7b", now=FIXED_NOW)
    assert out["created_at"] == "2024-06-01T10:00:00Z"
    assert out["message"]["content"] == "hey"
    assert "eval_count" not in out


def test_native_chat_translation_is_idempotent() -> None:
    payload = _openai_chat_payload()
    a = json.dumps(translate_chat_response(payload, model="m"))
    b = json.dumps(translate_chat_response(payload, model="m"))
    assert a == b
    assert payload["model"] == "llama-3.1-8b-instruct"


def test_missing_timestamp_uses_supplied_clock() -> None:
    out = translate_chat_response({"choices": []}, model="m", now=FIXED_NOW)
    assert out["created_at"] == "2025-01-01T00:00:00.000000Z"
    assert out["message"]["content"] == ""


def test_native_generate_uses_response_field() -> None:
    payload = {"choices": [{"index": 0, "text": "completed text", "finish_reason": "length"}]}
    out = translate_generate_response(payload, model="deepseek-r1:7b", now=FIXED_NOW)
    assert out["response"] == "completed text"
    assert out["done_reason"] == "length"
    assert out["done"] is True
    assert out["model"] == "deepseek-r1:7b"


def test_native_generate_falls_back_to_chat_message() -> None:
    out = translate_generate_response(_openai_chat_payload(), model="m")
    assert out["response"] == "Hello!"


def test_openai_relay_only_overwrites_model() -> None:
    payload = _openai_chat_payload()
    out = relay_openai_response(payload, model="gpt-x")
    assert out["model"] == "gpt-x"
    assert {k: v for k, v in out.items() if k != "model"} == {
        k: v for k, v in payload.items() if k != "model"
    }
    assert payload["model"] == "llama-3.1-8b-instruct"


def test_embedding_translation() -> None:
    payload = {
        "object": "list",
        "data": [{"object": "embedding", "index": 0, "embedding": [0.1, 0.2, 0.3]}],
        "model": "mixedbread-ai/mxbai-embed-large-v1",
    }
    assert translate_embedding_response(payload, Surface.NATIVE) == {"embedding": [0.1, 0.2, 0.3]}
    assert translate_embedding_response(payload, Surface.OPENAI) == payload


def test_embedding_without_vector_is_upstream_failure() -> None:
    with pytest.raises(UpstreamFailure):
        translate_embedding_response({"data": []}, Surface.NATIVE)


@pytest.mark.parametrize("vector", [None, "0.1,0.2", [0.1, "x"]])
def test_malformed_embedding_vector_is_upstream_failure(vector) -> None:
    with pytest.raises(UpstreamFailure):
        translate_embedding_response({"data": [{"embedding": vector}]}, Surface.NATIVE)


def test_malformed_usage_counts_are_upstream_failure() -> None:
    payload = _openai_chat_payload()
    payload["usage"] = {"prompt_tokens": "many", "completion_tokens": 2}
    with pytest.raises(UpstreamFailure):
        translate_chat_response(payload, model="m", now=FIXED_NOW)
    with pytest.raises(UpstreamFailure):
        translate_generate_response(payload, model="m", now=FIXED_NOW)


def test_translate_dispatches_on_kind_and_surface() -> None:
    chat = CanonicalRequest(kind=RequestKind.CHAT, surface=Surface.OPENAI, model="gpt-x")
    assert translate(chat, _openai_chat_payload())["object"] == "chat.completion"

    gen = CanonicalRequest(kind=RequestKind.COMPLETION, surface=Surface.NATIVE, model="m")
    assert "response" in translate(gen, {"response": "ok"}, now=FIXED_NOW)
