"""
FastAPI application factory.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from ecosort import __version__
from ecosort.api.middleware import setup_compression, setup_cors, setup_request_size_limit, setup_security_headers
from ecosort.api.observability import ObservabilityMiddleware, generate_request_id, get_request_id
from ecosort.api.routes import admin as admin_routes
from ecosort.api.routes import notifications as notification_routes
from ecosort.api.routes import reports as report_routes
from ecosort.api.routes import rewards as reward_routes
from ecosort.api.routes import schedules as schedule_routes
from ecosort.api.routes import users as user_routes
from ecosort.api.routes import waste as waste_routes
from ecosort.api.state import AppState
from ecosort.config import get_settings
from ecosort.db import Database
from ecosort.exceptions import EcoSortError, RateLimitError, exception_to_http_status, handle_exception
from ecosort.logging_config import configure_logging, get_logger
from ecosort.security.rate_limit import RateLimitConfig, SQLiteRateLimiter

logger = get_logger(__name__)

# Status for builtin exceptions that handle_exception translates
_FALLBACK_STATUS = {"validation_error": 400, "permission_denied": 403}


def create_app(
    *,
    db_path: Path | None = None,
    rate_limit_db_path: Path | None = None,
) -> FastAPI:
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        logger.info("ecosort_api_started", extra={"db_path": str(app.state.state.db.db_path)})
        yield

    app = FastAPI(
        title="EcoSort API",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    setup_compression(app)
    setup_cors(app)
    setup_security_headers(app)
    setup_request_size_limit(app)

    # Observability middleware (must be added last to wrap all others)
    app.add_middleware(ObservabilityMiddleware)

    app.state.state = AppState(db=Database(db_path or settings.db_path))
    app.state.rate_limiter = SQLiteRateLimiter(
        rate_limit_db_path or settings.rate_limit_db_path,
        RateLimitConfig(
            requests_per_window=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window_seconds,
        ),
    )

    @app.get("/v1/health")
    def health(response: Response) -> dict:
        response.headers["Cache-Control"] = "no-store"
        return {"ok": True, "version": __version__}

    app.include_router(user_routes.router)
    app.include_router(waste_routes.router)
    app.include_router(reward_routes.router)
    app.include_router(report_routes.router)
    app.include_router(schedule_routes.router)
    app.include_router(notification_routes.router)
    app.include_router(admin_routes.router)

    def _error_headers(request: Request) -> dict[str, str]:
        # Ensure clients always get a request id for correlation, even on errors.
        rid = request.headers.get("x-request-id") or get_request_id() or generate_request_id()
        return {"X-Request-ID": rid, "Cache-Control": "no-store"}

    @app.exception_handler(EcoSortError)
    def _ecosort_error(request: Request, exc: EcoSortError) -> JSONResponse:
        headers = _error_headers(request)
        exc.request_id = headers["X-Request-ID"]
        status_code = exception_to_http_status(exc)
        exc.log(logging.ERROR if status_code >= 500 else logging.WARNING)
        if isinstance(exc, RateLimitError) and exc.retry_after:
            headers["Retry-After"] = str(exc.retry_after)
        return JSONResponse(status_code=status_code, content=exc.to_dict(), headers=headers)

    @app.exception_handler(Exception)
    def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        # ObservabilityMiddleware logs the exception; we still return a safe, stable envelope.
        headers = _error_headers(request)
        content = handle_exception(exc, request_id=headers["X-Request-ID"])
        status_code = _FALLBACK_STATUS.get(content["error"], 500)
        if not settings.debug_mode:
            content.pop("detail", None)
        return JSONResponse(status_code=status_code, content=content, headers=headers)

    return app
