"""
Dependency helpers for API routes.

These are kept as simple functions (not FastAPI Depends) because the app
already uses request.app.state for its stateful components.
"""

from __future__ import annotations

from typing import Any

from fastapi import Request

from ecosort.api.middleware import get_client_ip
from ecosort.api.observability import set_user_id
from ecosort.api.state import AppState
from ecosort.config import get_settings
from ecosort.exceptions import AuthenticationRequiredError, PermissionDeniedError, RateLimitError
from ecosort.security.rate_limit import SQLiteRateLimiter
from ecosort.security.validators import validate_document_id


def get_state(request: Request) -> AppState:
    return request.app.state.state


def get_rate_limiter(request: Request) -> SQLiteRateLimiter | None:
    return getattr(request.app.state, "rate_limiter", None)


def _extract_user_id(request: Request) -> str:
    """
    Caller identity from the X-User-ID header.

    Sign-in happens upstream; the identity provider in front of the API
    sets this header.
    """
    user_id = (request.headers.get("x-user-id") or "").strip()
    if not user_id:
        raise AuthenticationRequiredError()
    return validate_document_id(user_id, field="X-User-ID")


def current_user(request: Request) -> dict[str, Any]:
    """The caller's profile, provisioned on first sight."""
    user_id = _extract_user_id(request)
    set_user_id(user_id)
    return get_state(request).users.get_or_create(user_id)


def require_admin(request: Request) -> dict[str, Any]:
    user = current_user(request)
    if user["role"] != "admin":
        raise PermissionDeniedError("Admin access required")
    return user


def enforce_rate_limit(request: Request, user_id: str, *, cost: int = 1) -> None:
    """Throttle write endpoints per caller and client IP."""
    limiter = get_rate_limiter(request)
    if limiter is None or not get_settings().enable_rate_limit:
        return
    allowed, retry_after = limiter.check_rate_limit(f"{user_id}@{get_client_ip(request)}", cost=cost)
    if not allowed:
        raise RateLimitError(retry_after=retry_after)
