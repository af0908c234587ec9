"""Canonical request record and response schemas for both inbound surfaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Surface(str, Enum):
    NATIVE = "native"
    OPENAI = "openai"


class RequestKind(str, Enum):
    CHAT = "chat"
    COMPLETION = "completion"
    EMBEDDING = "embedding"


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str
    content: Any = Field(default="")


@dataclass(frozen=True)
class CanonicalRequest:
    kind: RequestKind
    surface: Surface
    model: str
    messages: list[dict[str, Any]] = field(default_factory=list)
    prompt: str | list[Any] | None = None
    stream: bool = False
    extra_params: dict[str, Any] = field(default_factory=dict)


class AssistantMessage(BaseModel):
    role: str = "assistant"
    content: str


class OllamaChatResponse(BaseModel):
    model: str
    created_at: str
    message: AssistantMessage
    done_reason: str = "stop"
    done: bool = True
    prompt_eval_count: int | None = None
    eval_count: int | None = None


class OllamaGenerateResponse(BaseModel):
    model: str
    created_at: str
    response: str
    done_reason: str = "stop"
    done: bool = True
    prompt_eval_count: int | None = None
    eval_count: int | None = None


class OllamaEmbeddingResponse(BaseModel):
    embedding: list[float]


class OllamaModelDetails(BaseModel):
    format: str = "gguf"
    family: str
    families: list[str]
    parameter_size: str
    quantization_level: str


class OllamaModelTag(BaseModel):
    name: str
    model: str
    modified_at: str
    size: int = 0
    digest: str
    details: OllamaModelDetails


class OllamaTagsResponse(BaseModel):
    models: list[OllamaModelTag]


class OpenAIModelCard(BaseModel):
    id: str
    object: str = "model"
    created: int = 0
    owned_by: str


class OpenAIModelList(BaseModel):
    object: str = "list"
    data: list[OpenAIModelCard]
