"""Static model registry and inbound-to-upstream embedding model name mapping."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Mapping

from .errors import ModelNotFound
from .models import (
    OllamaModelDetails,
    OllamaModelTag,
    OllamaTagsResponse,
    OpenAIModelCard,
    OpenAIModelList,
    RequestKind,
    Surface,
)

# Fixed timestamp so listings do not change between calls.
CATALOG_MODIFIED_AT = "2024-01-01T00:00:00Z"


@dataclass(frozen=True)
class ModelDescriptor:
    id: str
    family: str
    owned_by: str
    capability: RequestKind
    parameter_size: str
    quantization_level: str

    @property
    def digest(self) -> str:
        return hashlib.sha256(self.id.encode("utf-8")).hexdigest()


DEFAULT_MODELS: tuple[ModelDescriptor, ...] = (
    ModelDescriptor("deepseek-r1:1.5b", "qwen2", "deepseek", RequestKind.CHAT, "1.5B", "Q4_K_M"),
    ModelDescriptor("deepseek-r1:7b", "qwen2", "deepseek", RequestKind.CHAT, "7.6B", "Q4_K_M"),
    ModelDescriptor("deepseek-r1:8b", "llama", "deepseek", RequestKind.CHAT, "8.0B", "Q4_K_M"),
    ModelDescriptor("deepseek-r1:14b", "qwen2", "deepseek", RequestKind.CHAT, "14.8B", "Q4_K_M"),
    ModelDescriptor("qwen2.5:7b-instruct-fp16", "qwen2", "qwen", RequestKind.CHAT, "7.6B", "F16"),
    ModelDescriptor(
        "hellord/mxbai-embed-large-v1:f16",
        "bert",
        "mixedbread-ai",
        RequestKind.EMBEDDING,
        "334M",
        "F16",
    ),
)


class ModelCatalog:
    def __init__(self, models: tuple[ModelDescriptor, ...] = DEFAULT_MODELS) -> None:
        self._models = tuple(models)
        self._by_id = {m.id: m for m in self._models}

    def get_model(self, model_id: str) -> ModelDescriptor:
        m = self._by_id.get(model_id)
        if m is None:
            raise ModelNotFound(model_id)
        return m

    def list_models(self, surface: Surface) -> dict:
        if surface is Surface.OPENAI:
            return OpenAIModelList(data=[openai_card(m) for m in self._models]).model_dump()
        return OllamaTagsResponse(models=[ollama_tag(m) for m in self._models]).model_dump()


def ollama_tag(m: ModelDescriptor) -> OllamaModelTag:
    return OllamaModelTag(
        name=m.id,
        model=m.id,
        modified_at=CATALOG_MODIFIED_AT,
        digest=m.digest,
        details=OllamaModelDetails(
            family=m.family,
            families=[m.family],
            parameter_size=m.parameter_size,
            quantization_level=m.quantization_level,
        ),
    )


def openai_card(m: ModelDescriptor) -> OpenAIModelCard:
    return OpenAIModelCard(id=m.id, owned_by=m.owned_by)


class ModelNameMap:
    """Total mapping from inbound model ids to upstream embedding model ids.

    Lookup tries an exact key, then the longest key that prefixes the id
    (so ``all-minilm:latest`` resolves through ``all-minilm``), then the
    default entry.
    """

    def __init__(self, mapping: Mapping[str, str], *, default_key: str) -> None:
        if default_key not in mapping:
            raise ValueError(f"Default embedding model {default_key!r} is not in the model map")
        self._mapping = dict(mapping)
        self.default_key = default_key
        self.default = self._mapping[default_key]
        self._prefixes = sorted(self._mapping, key=len, reverse=True)

    def lookup(self, model_id: str | None) -> str:
        if not model_id:
            return self.default
        exact = self._mapping.get(model_id)
        if exact:
            return exact
        for key in self._prefixes:
            if model_id.startswith(key):
                return self._mapping[key]
        return self.default
