"""FastAPI app factory: middleware, error handlers, health and the API routers."""
from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from uuid import uuid4

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .api import router as api_router
from .api.models import HealthResponse
from .config import Settings
from .domain.errors import ApiError
from .logging_conf import get_logger, setup_logging
from .service.credentials import InMemorySessionStore, SessionStore
from .service.webflow_client import Sleep

logger = get_logger("app")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,PUT,PATCH,DELETE,OPTIONS",
    "Access-Control-Allow-Headers": (
        "X-Requested-With, Content-Type, Authorization, X-Webflow-Token, X-Request-ID"
    ),
    "Access-Control-Max-Age": "86400",
}


def create_app(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    store: SessionStore | None = None,
    sleep: Sleep = asyncio.sleep,
) -> FastAPI:
    """Build the proxy app.

    `transport`, `store` and `sleep` are injection points for tests: upstream
    HTTP calls, the session store and the publish backoff sleep.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    app = FastAPI(title="Webflow BFF", version=settings.app_version)
    app.state.settings = settings
    app.state.transport = transport
    app.state.session_store = store if store is not None else InMemorySessionStore()
    app.state.sleep = sleep

    @app.on_event("startup")
    async def _on_startup() -> None:
        logger.info("startup", extra={"event": "startup", "version": settings.app_version})

    @app.on_event("shutdown")
    async def _on_shutdown() -> None:
        logger.info("shutdown", extra={"event": "shutdown"})

    @app.middleware("http")
    async def cors(request: Request, call_next: Callable[[Request], Response]):
        """Answer every OPTIONS with an empty 200 and stamp CORS headers on all responses."""
        if request.method == "OPTIONS":
            response = Response(status_code=200)
        else:
            response = await call_next(request)
        response.headers.update(CORS_HEADERS)
        return response

    @app.middleware("http")
    async def request_logger(request: Request, call_next: Callable[[Request], Response]):
        """JSON request logging with correlation id.

        - If the client sends X-Request-ID we propagate it; otherwise we mint one
        - Logs a start and end event with method/path/status/elapsed_ms
        - Attaches X-Request-ID header on the response for easy tracing
        """
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        start = time.perf_counter()
        logger.info(
            "request.start",
            extra={
                "event": "request_start",
                "method": request.method,
                "path": request.url.path,
                "request_id": request_id,
            },
        )
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request.error",
                extra={
                    "event": "request_error",
                    "path": request.url.path,
                    "method": request.method,
                    "request_id": request_id,
                },
            )
            raise
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000.0

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request.end",
            extra={
                "event": "request_end",
                "status_code": response.status_code,
                "elapsed_ms": round(elapsed_ms, 2),
                "request_id": request_id,
            },
        )
        return response

    @app.exception_handler(ApiError)
    async def _api_error(request: Request, exc: ApiError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.warning(
                "request.failed",
                extra={"event": "request_failed", "status_code": exc.status_code, "error": exc.message},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request.unhandled", extra={"event": "request_unhandled", "path": request.url.path})
        return JSONResponse(status_code=500, content={"message": "Server error"})

    @app.get("/api/health", response_model=HealthResponse, summary="Liveness check")
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", message="API is running")

    @app.get("/api/debug", summary="Configuration snapshot with secrets masked")
    async def debug() -> JSONResponse:
        return JSONResponse(content={"status": "ok", "config": settings.masked()})

    app.include_router(api_router)

    return app


# ASGI entrypoint for uvicorn: `uvicorn webflow_bff.main:app --port 8000`
app = create_app()
