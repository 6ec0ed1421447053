"""FastAPI application entrypoint for the content-ops upload service."""

from __future__ import annotations

from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.articles.router import router as articles_router
from src.auth.middleware import AUTH_CONTEXT_KEY, resolve_request_auth_context
from src.core.config import get_settings
from src.core.errors import RateLimitedError, UploadError
from src.core.logger import bind_request_context, clear_request_context, get_logger
from src.core.metrics import record_http_request, render_prometheus_metrics
from src.core.observability import capture_exception, init_sentry, sentry_scope
from src.core.rate_limit import RateLimitDecision, resolve_client_ip
from src.storage.db import load_models
from src.storage.db import test_connection as test_db_connection
from src.storage.redis_client import ping_redis
from src.uploads.router import RATE_LIMIT_STATE_KEY
from src.uploads.router import router as public_upload_router


settings = get_settings()
logger = get_logger("contentops.api")

app = FastAPI(title=settings.app_name, version=settings.app_version)


def _apply_rate_limit_headers(response: Response, decision: RateLimitDecision) -> None:
    response.headers["x-rate-limit-limit"] = str(decision.limit)
    response.headers["x-rate-limit-remaining"] = str(decision.remaining)
    response.headers["x-rate-limit-reset"] = str(decision.reset_seconds)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part not in {"body", "query", "path", "form"})
    detail = str(first.get("msg", "invalid value"))
    if location:
        return f"Invalid request: {location}: {detail}"
    return f"Invalid request: {detail}"


@app.exception_handler(UploadError)
async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, reason=exc.reason, status_code=exc.status_code)
    else:
        logger.info("request_rejected", path=request.url.path, reason=exc.reason, status_code=exc.status_code)

    headers = None
    if isinstance(exc, RateLimitedError):
        headers = {"retry-after": str(exc.reset_seconds)}
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    del request
    return JSONResponse(status_code=400, content={"message": _validation_message(exc)})


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    del request
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    started_at = perf_counter()
    request_id = request.headers.get("x-request-id", str(uuid4()))
    client_ip = resolve_client_ip(request)
    setattr(request.state, AUTH_CONTEXT_KEY, resolve_request_auth_context(request))
    bind_request_context(request_id=request_id, client_ip=client_ip)

    response = None
    status_code = 500

    try:
        with sentry_scope(request_id=request_id, client_ip=client_ip):
            try:
                response = await call_next(request)
            except Exception as exc:
                logger.exception("unhandled_request_error", path=request.url.path)
                capture_exception(exc)
                response = JSONResponse(status_code=500, content={"message": "Internal server error"})
        status_code = int(response.status_code)
    finally:
        duration = perf_counter() - started_at
        if settings.metrics_enabled:
            record_http_request(
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                duration_seconds=duration,
            )
        clear_request_context()

    decision = getattr(request.state, RATE_LIMIT_STATE_KEY, None)
    if decision is not None:
        _apply_rate_limit_headers(response, decision)
    response.headers["x-request-id"] = request_id
    return response


@app.on_event("startup")
def on_startup() -> None:
    load_models()
    sentry_enabled = init_sentry()
    logger.info(
        "application_startup",
        env=settings.env,
        version=settings.app_version,
        sentry_enabled=sentry_enabled,
        metrics_enabled=settings.metrics_enabled,
        image_host_provider=settings.image_host_provider,
        upload_rate_limit_enabled=settings.upload_rate_limit_enabled,
        upload_rate_limit_backend=settings.upload_rate_limit_backend,
    )


@app.get("/health")
def health() -> JSONResponse:
    db_ok, db_error = test_db_connection()
    services = {"database": {"ok": db_ok, "error": db_error}}
    healthy = db_ok

    if settings.upload_rate_limit_backend.strip().lower() == "redis":
        redis_ok, redis_error = ping_redis()
        services["redis"] = {"ok": redis_ok, "error": redis_error}
        healthy = healthy and redis_ok

    payload = {
        "status": "ok" if healthy else "degraded",
        "env": settings.env,
        "services": services,
    }
    return JSONResponse(content=payload, status_code=200 if healthy else 503)


@app.get("/version")
def version() -> dict[str, str]:
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "env": settings.env,
    }


@app.get("/metrics")
def metrics() -> PlainTextResponse:
    if not settings.metrics_enabled:
        return PlainTextResponse("metrics disabled\n", status_code=404)

    payload = render_prometheus_metrics(
        app_name=settings.app_name,
        app_version=settings.app_version,
        env=settings.env,
    )
    return PlainTextResponse(
        payload,
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


app.include_router(articles_router)
app.include_router(public_upload_router)
