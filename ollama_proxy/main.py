"""FastAPI application wiring for the Ollama and OpenAI compatible proxy surfaces."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Annotated, Any

import httpx
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask
from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException as StarletteHTTPException

from .catalog import ModelCatalog, ModelNameMap, openai_card
from .config import Settings, load_embedding_model_map
from .dispatcher import UpstreamDispatcher
from .errors import ProxyError
from .models import RequestKind, Surface
from .normalizer import normalize
from .translator import translate

VERSION = "0.1.0"

_FORM_TYPES = frozenset({"multipart/form-data", "application/x-www-form-urlencoded"})

logger = logging.getLogger("ollama_proxy.main")


@dataclass
class ProxyState:
    settings: Settings
    catalog: ModelCatalog
    name_map: ModelNameMap
    dispatcher: UpstreamDispatcher


def get_state(request: Request) -> ProxyState:
    return request.app.state.proxy


def surface_for_path(path: str) -> Surface:
    return Surface.OPENAI if path.startswith("/v1/") else Surface.NATIVE


async def read_body(request: Request) -> bytes | dict[str, Any]:
    """Return form fields for form posts, the raw body bytes otherwise."""
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() not in _FORM_TYPES:
        return await request.body()

    form = await request.form()
    fields: dict[str, Any] = {}
    for key, value in form.multi_items():
        if isinstance(value, UploadFile):
            value = (await value.read()).decode("utf-8", errors="replace")
        fields[key] = value
    return fields


async def proxy_request(
    request: Request,
    state: ProxyState,
    *,
    kind: RequestKind,
    surface: Surface,
) -> Response:
    """Normalize, dispatch and translate one inbound call, or relay its stream."""
    canonical = normalize(
        await read_body(request),
        kind=kind,
        surface=surface,
        default_embedding_model=state.settings.default_embedding_model,
    )
    result = await state.dispatcher.dispatch(canonical)

    if result.stream is not None:
        return StreamingResponse(
            result.stream.relay(),
            status_code=result.stream.status_code,
            media_type=result.stream.media_type,
            headers={"Cache-Control": "no-cache"},
            background=BackgroundTask(result.stream.aclose),
        )

    return JSONResponse(content=translate(canonical, result.payload or {}))


router = APIRouter()
StateDep = Annotated[ProxyState, Depends(get_state)]


@router.get("/health")
def health() -> dict[str, str]:
    """Return a lightweight readiness signal for load balancers and monitors."""
    return {"status": "ok"}


@router.get("/api/version")
def version() -> dict[str, str]:
    return {"version": VERSION}


@router.get("/api/tags")
def list_tags(state: StateDep) -> dict:
    return state.catalog.list_models(Surface.NATIVE)


@router.post("/api/chat")
async def native_chat(request: Request, state: StateDep) -> Response:
    return await proxy_request(request, state, kind=RequestKind.CHAT, surface=Surface.NATIVE)


@router.post("/api/generate")
async def native_generate(request: Request, state: StateDep) -> Response:
    return await proxy_request(
        request, state, kind=RequestKind.COMPLETION, surface=Surface.NATIVE
    )


@router.post("/api/embeddings")
@router.post("/api/embed")
async def native_embeddings(request: Request, state: StateDep) -> Response:
    return await proxy_request(
        request, state, kind=RequestKind.EMBEDDING, surface=Surface.NATIVE
    )


@router.post("/v1/chat/completions")
async def openai_chat_completions(request: Request, state: StateDep) -> Response:
    return await proxy_request(request, state, kind=RequestKind.CHAT, surface=Surface.OPENAI)


@router.post("/v1/completions")
async def openai_completions(request: Request, state: StateDep) -> Response:
    return await proxy_request(
        request, state, kind=RequestKind.COMPLETION, surface=Surface.OPENAI
    )


@router.get("/v1/models")
def openai_list_models(state: StateDep) -> dict:
    return state.catalog.list_models(Surface.OPENAI)


@router.get("/v1/models/{model:path}")
def openai_get_model(model: str, state: StateDep) -> dict:
    return openai_card(state.catalog.get_model(model)).model_dump()


@router.post("/v1/embeddings")
@router.post("/v1/embed")
async def openai_embeddings(request: Request, state: StateDep) -> Response:
    return await proxy_request(
        request, state, kind=RequestKind.EMBEDDING, surface=Surface.OPENAI
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProxyError)
    async def handle_proxy_error(request: Request, exc: ProxyError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request to %s failed: %s", request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.render(surface_for_path(request.url.path)),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        if exc.status_code in (404, 405):
            logger.info("Endpoint not supported: %s %s", request.method, request.url.path)
            return JSONResponse(status_code=404, content={"error": "Endpoint not supported"})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        err = ProxyError(status_code=500, message="Internal server error")
        return JSONResponse(
            status_code=500,
            content=err.render(surface_for_path(request.url.path)),
        )


def create_app(
    settings: Settings | None = None,
    *,
    catalog: ModelCatalog | None = None,
    name_map: ModelNameMap | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or Settings()
    catalog = catalog or ModelCatalog()
    if name_map is None:
        name_map = ModelNameMap(
            load_embedding_model_map(),
            default_key=settings.default_embedding_model,
        )
    dispatcher = UpstreamDispatcher(settings, name_map, transport=transport)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        await dispatcher.aclose()

    app = FastAPI(
        title="Ollama Compat Proxy",
        version=VERSION,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.proxy = ProxyState(
        settings=settings,
        catalog=catalog,
        name_map=name_map,
        dispatcher=dispatcher,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.time()
        request_id = uuid.uuid4().hex[:12]
        response = await call_next(request)
        latency_ms = int((time.time() - t0) * 1000)
        logger.info(
            "%s %s %s -> %d (%d ms)",
            request_id,
            request.method,
            request.url.path,
            response.status_code,
            latency_ms,
        )
        response.headers["X-Request-ID"] = request_id
        return response

    register_exception_handlers(app)
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings: Settings = app.state.proxy.settings
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Ollama proxy server running on http://%s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
