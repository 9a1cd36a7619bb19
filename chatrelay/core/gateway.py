"""FastAPI app entry."""

from __future__ import annotations

import asyncio

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from chatrelay.adapters.http import close_provider_async_client
from chatrelay.config.settings import settings
from chatrelay.core.errors import (
    GENERIC_INTERNAL_MESSAGE,
    InvalidProviderError,
    ProviderError,
    RequestValidationError,
    UnknownProviderError,
)
from chatrelay.core.models import ChatRequest
from chatrelay.core.orchestrator import ChatOrchestrator
from chatrelay.core.rate_limit import SlidingWindowRateLimiter
from chatrelay.core.registry import build_default_registry
from chatrelay.core.session_prune_task import SessionPruneTask
from chatrelay.observability.metrics import emit_counter
from chatrelay.storage import create_session_store
from chatrelay.util.logger import logger

MODELS_FAILED_MESSAGE = "Failed to fetch models."
SESSION_FAILED_MESSAGE = "Failed to create session."
INVALID_BODY_MESSAGE = "Invalid request body."

app = FastAPI(title=settings.app_name)
_orchestrator = ChatOrchestrator(
    registry=build_default_registry(),
    store=create_session_store(),
    serialize_exchanges=settings.serialize_session_exchanges,
)
_session_limiter = SlidingWindowRateLimiter(settings.session_rate_limit, settings.rate_limit_window_seconds)
_chat_limiter = SlidingWindowRateLimiter(settings.chat_rate_limit, settings.rate_limit_window_seconds)
_RATE_LIMITS = {
    "/session": (_session_limiter, "Too many sessions created. Please wait before trying again."),
    "/getSession": (_session_limiter, "Too many sessions created. Please wait before trying again."),
    "/chat": (_chat_limiter, "Too many messages sent. Please wait before trying again."),
    "/getChatbotResponse": (_chat_limiter, "Too many messages sent. Please wait before trying again."),
}
_prune_task: SessionPruneTask | None = None


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _client_key(request: Request) -> str:
    return (request.client.host if request.client else "").strip() or "unknown"


def _retrieve_exchange_result(task: asyncio.Future) -> None:
    # 请求已被取消时没人读取结果，这里取走异常避免 "never retrieved" 告警
    if not task.cancelled():
        task.exception()


@app.middleware("http")
async def boundary_middleware(request: Request, call_next):
    path = request.url.path
    method = request.method.upper()
    logger.debug("boundary enter method=%s path=%s", method, path)

    if settings.max_request_body_bytes > 0 and method in {"POST", "PUT", "PATCH"}:
        content_length_header = request.headers.get("content-length", "").strip()
        if content_length_header:
            try:
                content_length = int(content_length_header)
            except ValueError:
                logger.warning("boundary reject invalid content-length path=%s", path)
                return _error_response(400, INVALID_BODY_MESSAGE)
        else:
            content_length = len(await request.body())
        if content_length > settings.max_request_body_bytes:
            logger.warning(
                "boundary reject oversize request size=%s max=%s path=%s",
                content_length,
                settings.max_request_body_bytes,
                path,
            )
            emit_counter("request_rejected", labels={"reason": "request_body_too_large"})
            return _error_response(413, "Request body too large.")

    limit = _RATE_LIMITS.get(path) if method == "POST" else None
    if settings.enable_rate_limit and limit is not None:
        limiter, message = limit
        client = _client_key(request)
        if not limiter.allow(client):
            logger.info("boundary rate limited client=%s path=%s", client, path)
            emit_counter("request_rejected", labels={"reason": "rate_limited"})
            return _error_response(429, message)

    try:
        return await call_next(request)
    except Exception:  # pragma: no cover - fail-safe
        logger.exception("gateway unhandled exception path=%s", path)
        return _error_response(500, GENERIC_INTERNAL_MESSAGE)


@app.post("/session")
@app.post("/getSession", include_in_schema=False)
async def create_session() -> JSONResponse:
    try:
        session_id = _orchestrator.create_session()
    except Exception:
        logger.exception("session creation failed")
        return _error_response(500, SESSION_FAILED_MESSAGE)
    return JSONResponse(content={"sessionId": session_id})


@app.get("/models")
@app.get("/getModels", include_in_schema=False)
async def list_models(provider: str | None = None) -> JSONResponse:
    try:
        adapter = _orchestrator.registry.resolve(provider)
    except UnknownProviderError:
        return _error_response(400, InvalidProviderError.default_message)
    try:
        models = await adapter.list_models()
    except ProviderError as exc:
        logger.warning("model listing failed provider=%s kind=%s detail=%s", adapter.key, exc.code, exc.message)
        return _error_response(exc.status_code, MODELS_FAILED_MESSAGE)
    return JSONResponse(content=[option.model_dump() for option in models])


@app.post("/chat")
@app.post("/getChatbotResponse", include_in_schema=False)
async def chat(request: Request) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        return _error_response(400, INVALID_BODY_MESSAGE)
    if not isinstance(body, dict):
        return _error_response(400, INVALID_BODY_MESSAGE)

    chat_request = ChatRequest.from_payload(body)
    # 客户端断开也让已开始的交换跑完并写入历史
    exchange = asyncio.ensure_future(
        _orchestrator.handle_chat(
            provider_key=chat_request.provider_key,
            model_id=chat_request.model_id,
            session_id=chat_request.session_id,
            raw_text=chat_request.raw_text,
        )
    )
    exchange.add_done_callback(_retrieve_exchange_result)
    try:
        reply = await asyncio.shield(exchange)
    except RequestValidationError as exc:
        return _error_response(exc.status_code, exc.message)
    except ProviderError as exc:
        return _error_response(exc.status_code, exc.public_message)
    return JSONResponse(content={"chatbotResponse": reply, "sessionId": chat_request.session_id})


@app.get("/providerStatus")
@app.get("/getProviderStatus", include_in_schema=False)
async def provider_status() -> dict:
    return _orchestrator.registry.credential_status()


@app.get("/health")
def health() -> dict:
    logger.info("health check")
    return {"status": "ok"}


@app.on_event("startup")
async def startup_background_tasks() -> None:
    missing = _orchestrator.registry.missing_credentials()
    if missing:
        logger.warning("missing provider credentials: %s; those providers will fail when called", ", ".join(missing))
    global _prune_task
    if settings.enable_session_prune_task and _prune_task is None:
        _prune_task = SessionPruneTask(prune_func=_orchestrator.store.prune)
        await _prune_task.start()
    logger.info("%s ready on %s:%s", settings.app_name, settings.host, settings.port)


@app.on_event("shutdown")
async def shutdown_cleanup() -> None:
    global _prune_task
    if _prune_task is not None:
        await _prune_task.stop()
        _prune_task = None
    await close_provider_async_client()
