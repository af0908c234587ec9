"""Environment-backed settings and embedding model map loading utilities."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "3000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    primary_api_url: str = os.getenv("PRIMARY_API_URL", "https://api.vikey.ai/v1")
    primary_api_key: str | None = os.getenv("PRIMARY_API_KEY")
    primary_chat_path: str = os.getenv("PRIMARY_CHAT_PATH", "/chat")
    primary_completion_path: str = os.getenv("PRIMARY_COMPLETION_PATH", "/chat/completions")

    embeddings_api_url: str = os.getenv(
        "EMBEDDINGS_API_URL", "https://api.intelligence.io.solutions/api/v1"
    )
    embeddings_api_key: str | None = os.getenv("IOINTELLIGENCE_API_KEY")
    default_embedding_model: str = os.getenv(
        "DEFAULT_EMBEDDING_MODEL", "hellord/mxbai-embed-large-v1:f16"
    )

    # When set, OpenAI-surface chat/completions are sent upstream under this model.
    chat_model_override: str | None = os.getenv("CHAT_MODEL_OVERRIDE") or None

    upstream_timeout_s: float = float(os.getenv("UPSTREAM_TIMEOUT_S", "60"))
    stream_chunk_size: int = int(os.getenv("STREAM_CHUNK_SIZE", "4096"))


def _default_embedding_map_json() -> str:
    return json.dumps(
        {
            "hellord/mxbai-embed-large-v1:f16": "mixedbread-ai/mxbai-embed-large-v1",
            "all-minilm": "mixedbread-ai/mxbai-embed-large-v1",
        }
    )


def load_embedding_model_map() -> dict[str, str]:
    raw = os.getenv("EMBEDDING_MODEL_MAP_JSON", _default_embedding_map_json())
    items = json.loads(raw)
    if not isinstance(items, dict):
        raise ValueError("EMBEDDING_MODEL_MAP_JSON must be a JSON object")
    mapping: dict[str, str] = {}
    for inbound, upstream in items.items():
        if not str(upstream).strip():
            raise ValueError(f"Empty upstream model name for {inbound!r}")
        mapping[str(inbound)] = str(upstream)
    return mapping
