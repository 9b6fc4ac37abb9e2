"""
Request tracking for the API.

Each request gets an id (the caller's ``X-Request-ID`` or a fresh uuid4) that
is echoed on the response, stamped on error bodies and bound to every log
line written while the request is in flight. Once the ``X-User-ID``
dependency resolves the caller, the id is bound as well so the completion
log says who redeemed or confirmed what.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from dataclasses import dataclass, field

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ecosort.api.middleware import get_client_ip
from ecosort.exceptions import EcoSortError
from ecosort.logging_config import LogContext, get_logger

logger = get_logger(__name__)


@dataclass
class RequestContext:
    request_id: str
    client_ip: str
    user_id: str | None = None
    started: float = field(default_factory=time.perf_counter)

    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.started) * 1000, 2)


# Mutable holder so the caller bound in a dependency is visible to the middleware
_request_ctx: ContextVar[RequestContext | None] = ContextVar("ecosort_request", default=None)


def generate_request_id() -> str:
    return str(uuid.uuid4())


def get_request_id() -> str | None:
    ctx = _request_ctx.get()
    return ctx.request_id if ctx else None


def set_user_id(user_id: str | None) -> None:
    """Record the resolved caller for the rest of the request."""
    ctx = _request_ctx.get()
    if ctx is not None:
        ctx.user_id = user_id
    LogContext.set_user_id(user_id)


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Request id propagation plus one start and one completion log per request."""

    def __init__(self, app: ASGIApp, *, slow_request_threshold_ms: float = 1000.0) -> None:
        super().__init__(app)
        self.slow_request_threshold_ms = slow_request_threshold_ms

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        ctx = RequestContext(
            request_id=request.headers.get("x-request-id") or generate_request_id(),
            client_ip=get_client_ip(request),
        )
        _request_ctx.set(ctx)
        LogContext.clear()
        LogContext.bind(request_id=ctx.request_id, client_ip=ctx.client_ip, endpoint=request.url.path)

        logger.info("request_started", extra={"method": request.method, "path": request.url.path})

        try:
            response = await call_next(request)
        except Exception as exc:
            self._log_failure(request, ctx, exc)
            raise

        response.headers["X-Request-ID"] = ctx.request_id
        self._log_completion(request, ctx, response)
        LogContext.clear()
        return response

    def _log_failure(self, request: Request, ctx: RequestContext, exc: Exception) -> None:
        if isinstance(exc, EcoSortError):
            exc.request_id = ctx.request_id
            exc.log()
            return
        logger.error(
            "request_failed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "error_type": type(exc).__name__,
                "duration_ms": ctx.elapsed_ms(),
            },
            exc_info=True,
        )

    def _log_completion(self, request: Request, ctx: RequestContext, response: Response) -> None:
        duration_ms = ctx.elapsed_ms()
        meta = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
            "caller": ctx.user_id,
        }
        # Set by listing routes
        if hasattr(request.state, "result_count"):
            meta["result_count"] = request.state.result_count

        if duration_ms >= self.slow_request_threshold_ms:
            logger.warning("request_completed_slow", extra=meta)
        else:
            logger.info("request_completed", extra=meta)
