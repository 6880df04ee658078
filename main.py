"""
FastAPI Application Entrypoint
------------------------------

Boots the chat widget service: telemetry first, then the app, middleware,
routers and exception handlers.

Usage:
- Local run: `python main.py`, then POST to `/api/widget/messages` or
  `/api/render`.
- Environment variables: see `config.py` (APP_NAME, APP_VERSION, ENV,
  CHAT_BACKEND_URL, SENTRY_*).
"""

import os
import logging
from typing import Dict, Any
from uuid import uuid4

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse

from config import settings
from utils.bootstrap import init_telemetry

init_telemetry(
    app_name=settings.APP_NAME,
    app_version=settings.APP_VERSION,
    environment=settings.ENV,
    sentry_dsn=settings.SENTRY_DSN,
    log_level=settings.LOG_LEVEL,
    traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    sentry_enabled=settings.SENTRY_ENABLED,
)

import sentry_sdk  # noqa: E402

from routes.chat import router as chat_router  # noqa: E402
from utils.logging_config import request_id_var  # noqa: E402

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    rid = request.headers.get("X-Request-ID") or str(uuid4())
    request.state.request_id = rid
    token = request_id_var.set(rid)
    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)
    response.headers["X-Request-ID"] = rid
    return response


@app.get("/health")
async def health_check() -> Dict[str, Any]:
    return {
        "status": "healthy",
        "environment": settings.ENV,
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


app.include_router(chat_router, tags=["chat"])


# -----------------------------------------------------------------------------
# Exception Handlers
# -----------------------------------------------------------------------------
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    rid = getattr(request.state, "request_id", "n/a")
    logger.warning("[%s] HTTPException %s – %s", rid, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    rid = getattr(request.state, "request_id", "n/a")
    logger.error("[%s] Unhandled exception: %s", rid, exc, exc_info=True)

    with sentry_sdk.new_scope() as scope:
        scope.set_tag("request_id", rid)
        scope.set_extra("path", request.url.path)
        sentry_sdk.capture_exception(exc)

    detail_msg = (
        f"{type(exc).__name__}: {exc}"
        if settings.ENV.lower() != "production"
        else "Internal server error"
    )
    return JSONResponse(status_code=500, content={"detail": detail_msg})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.LOG_LEVEL.lower(),
    )
