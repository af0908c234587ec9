import json

import httpx
import pytest

from ollama_proxy.config import Settings

PRIMARY_URL = "http://primary.test/v1"
EMBEDDINGS_URL = "http://embeddings.test/api/v1"
NDJSON_BODY = b'{"message":{"content":"he"},"done":false}\n{"message":{"content":"llo"},"done":true}\n'


def _settings(**overrides) -> Settings:
    values = dict(
        primary_api_url=PRIMARY_URL,
        primary_api_key=None,
        primary_chat_path="/chat",
        primary_completion_path="/chat/completions",
        embeddings_api_url=EMBEDDINGS_URL,
        embeddings_api_key="test-embed-key",
        default_embedding_model="hellord/mxbai-embed-large-v1:f16",
        chat_model_override=None,
        upstream_timeout_s=5.0,
        stream_chunk_size=4096,
    )
    values.update(overrides)
    return Settings(**values)


class FakeUpstream:
    """Records outbound requests and answers like the two upstream providers."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_with: httpx.Response | None = None

    @property
    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return self.fail_with

        body = json.loads(request.content)
        path = request.url.path

        if path.endswith("/embeddings"):
            return httpx.Response(
                200,
                json={
                    "object": "list",
                    "data": [{"object": "embedding", "index": 0, "embedding": [0.1, 0.2, 0.3]}],
                    "model": body["model"],
                    "usage": {"prompt_tokens": 1, "total_tokens": 1},
                },
            )

        if body.get("stream"):
            return httpx.Response(
                200,
                headers={"content-type": "application/x-ndjson"},
                content=NDJSON_BODY,
            )

        if path.endswith("/chat"):
            return httpx.Response(
                200,
                json={
                    "id": "chatcmpl-1",
                    "object": "chat.completion",
                    "created": 1735689600,
                    "model": body["model"],
                    "choices": [
                        {
                            "index": 0,
                            "message": {"role": "assistant", "content": "hello there"},
                            "finish_reason": "stop",
                        }
                    ],
                    "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
                },
            )

        return httpx.Response(
            200,
            json={
                "id": "cmpl-1",
                "object": "text_completion",
                "created": 1735689600,
                "model": body["model"],
                "choices": [{"index": 0, "text": "completed", "finish_reason": "stop"}],
            },
        )


@pytest.fixture()
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture()
def transport(fake_upstream: FakeUpstream) -> httpx.MockTransport:
    return httpx.MockTransport(fake_upstream)


@pytest.fixture()
def make_settings():
    return _settings


@pytest.fixture()
def ndjson_body() -> bytes:
    return NDJSON_BODY
