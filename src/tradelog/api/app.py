"""FastAPI application factory with error mapping and request logging."""

from __future__ import annotations

import math
import time
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tradelog.api.deps import rate_limit_headers
from tradelog.api.routes import imports, journal, trades
from tradelog.api.schemas import row_error_to_dict
from tradelog.exceptions import (
    AuthenticationError,
    ImportValidationError,
    MissingColumnsError,
    RateLimitExceededError,
    RecordNotFoundError,
    StoreError,
    TradeImportError,
)
from tradelog.logging import REQUEST_ID_HEADER, bind_request

log = structlog.get_logger(__name__)


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AuthenticationError)
    async def _unauthorized(request: Request, exc: AuthenticationError) -> JSONResponse:
        return _error(401, str(exc))

    @app.exception_handler(RecordNotFoundError)
    async def _not_found(request: Request, exc: RecordNotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(StoreError)
    async def _store_error(request: Request, exc: StoreError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(MissingColumnsError)
    async def _missing_columns(request: Request, exc: MissingColumnsError) -> JSONResponse:
        return _error(400, str(exc), missing_columns=exc.missing)

    @app.exception_handler(ImportValidationError)
    async def _invalid_rows(request: Request, exc: ImportValidationError) -> JSONResponse:
        return _error(422, str(exc), rows=[row_error_to_dict(e) for e in exc.errors])

    @app.exception_handler(TradeImportError)
    async def _import_error(request: Request, exc: TradeImportError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(RateLimitExceededError)
    async def _rate_limited(request: Request, exc: RateLimitExceededError) -> JSONResponse:
        decision = exc.decision
        retry_after = max(0, math.ceil((decision.reset - time.time() * 1000) / 1000))
        response = _error(429, str(exc))
        response.headers.update(rate_limit_headers(decision))
        response.headers["Retry-After"] = str(retry_after)
        return response

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception) -> JSONResponse:
        log.error("unhandled_error", path=request.url.path, error=str(exc), exc_info=exc)
        return _error(500, "An unexpected error occurred")


def create_app(lifespan: Any = None, title: str = "Trade Journal API") -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to connect the record store and rate limiter.
        title: OpenAPI title.

    Returns:
        Configured FastAPI application with routes and error handlers.
    """
    app = FastAPI(title=title, lifespan=lifespan)

    @app.middleware("http")
    async def _request_context(request: Request, call_next):  # type: ignore[no-untyped-def]
        request_id = bind_request(
            request.headers.get(REQUEST_ID_HEADER), request.method, request.url.path
        )
        started = time.perf_counter()
        response = await call_next(request)
        log.info(
            "request_completed",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        response.headers["X-Request-ID"] = request_id
        return response

    @app.get("/api/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok"}

    _register_exception_handlers(app)

    app.include_router(trades.router, prefix="/api")
    app.include_router(imports.router, prefix="/api")
    app.include_router(journal.router, prefix="/api")

    return app
