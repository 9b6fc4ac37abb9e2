"""
Exception hierarchy for EcoSort.

Every error a caller can trigger is an ``EcoSortError`` subclass that knows
its HTTP status and machine-readable code. Repositories and the points
service raise them; the API turns them into ``{"error", "message",
"detail", "request_id"}`` bodies in a single handler.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

logger = logging.getLogger(__name__)


class EcoSortError(RuntimeError):
    """
    Base exception for all EcoSort errors.

    Attributes:
        message: Human-readable error message.
        detail: Extra context such as the offending id (optional).
        error_code: Machine-readable code; defaults to the class ``code``.
        request_id: Correlation id, replaced by the API with the request's own.
    """

    status_code = 500
    code = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        detail: str | None = None,
        error_code: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.error_code = error_code or self.code
        self.request_id = request_id or str(uuid.uuid4())

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.error_code, "message": self.message}
        if self.detail:
            payload["detail"] = self.detail
        payload["request_id"] = self.request_id
        return payload

    def __str__(self) -> str:
        return f"{self.message}: {self.detail}" if self.detail else self.message

    def log(self, level: int = logging.ERROR) -> None:
        logger.log(
            level,
            self.message,
            extra={
                "error_code": self.error_code,
                "detail": self.detail,
                "request_id": self.request_id,
                "exception_type": type(self).__name__,
            },
        )


# =============================================================================
# 400 / 401 / 403
# =============================================================================


class ValidationError(EcoSortError):
    """Input failed a domain rule (blank name, negative weight, unknown day)."""

    status_code = 400
    code = "validation_error"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        detail: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.field = field
        super().__init__(f"{field}: {message}" if field else message, detail=detail, request_id=request_id)


class MissingRequiredFieldError(ValidationError):
    def __init__(self, field_name: str, *, request_id: str | None = None) -> None:
        super().__init__(
            "Missing required field",
            field=field_name,
            detail=f"Field '{field_name}' is required",
            request_id=request_id,
        )


class AuthenticationRequiredError(EcoSortError):
    """No caller identity on the request."""

    status_code = 401
    code = "authentication_required"

    def __init__(self, message: str = "Authentication required", *, request_id: str | None = None) -> None:
        super().__init__(message, detail="Send the caller's user id in the X-User-ID header", request_id=request_id)


class PermissionDeniedError(EcoSortError):
    """Caller lacks the admin role, or does not own the record."""

    status_code = 403
    code = "permission_denied"

    def __init__(
        self,
        message: str = "Permission denied",
        *,
        detail: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message, detail=detail, request_id=request_id)


# =============================================================================
# 404
# =============================================================================


class NotFoundError(EcoSortError):
    status_code = 404
    code = "not_found"
    resource = "resource"

    def __init__(
        self,
        resource_id: str | None = None,
        *,
        message: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.resource_id = resource_id
        super().__init__(
            message or f"{self.resource.capitalize()} not found",
            detail=f"{self.resource.replace(' ', '_')}_id={resource_id!r}" if resource_id else None,
            request_id=request_id,
        )


class UserNotFoundError(NotFoundError):
    resource = "user"


class WasteTypeNotFoundError(NotFoundError):
    resource = "waste type"


class SubmissionNotFoundError(NotFoundError):
    resource = "submission"


class RewardNotFoundError(NotFoundError):
    resource = "reward"


class RedemptionNotFoundError(NotFoundError):
    resource = "redemption"


class ReportNotFoundError(NotFoundError):
    resource = "report"


class ScheduleNotFoundError(NotFoundError):
    resource = "schedule"


class NotificationNotFoundError(NotFoundError):
    resource = "notification"


# =============================================================================
# 409: the request is well formed but the records say no
# =============================================================================


class ConflictError(EcoSortError):
    status_code = 409
    code = "conflict"


class InvalidStateError(ConflictError):
    """A workflow step was applied to a record that already moved on."""

    code = "invalid_state"

    def __init__(
        self,
        entity: str,
        *,
        current: str,
        expected: str = "pending",
        request_id: str | None = None,
    ) -> None:
        self.entity = entity
        self.current = current
        self.expected = expected
        super().__init__(
            f"Only {expected} {entity}s can be changed",
            detail=f"Current status: {current}",
            request_id=request_id,
        )


class InsufficientPointsError(ConflictError):
    code = "insufficient_points"

    def __init__(self, *, balance: float, required: float, request_id: str | None = None) -> None:
        self.balance = balance
        self.required = required
        super().__init__(
            "Insufficient points",
            detail=f"Balance {balance:g}, required {required:g}",
            request_id=request_id,
        )


class OutOfStockError(ConflictError):
    code = "out_of_stock"

    def __init__(self, reward_id: str, *, request_id: str | None = None) -> None:
        self.reward_id = reward_id
        super().__init__("Reward out of stock", detail=f"reward_id={reward_id!r}", request_id=request_id)


class DuplicateError(ConflictError):
    """A waste type name, report category id or similar key is taken."""

    code = "duplicate"

    def __init__(self, entity: str, value: str, *, request_id: str | None = None) -> None:
        self.entity = entity
        self.value = value
        super().__init__(f"{entity.capitalize()} already exists", detail=repr(value), request_id=request_id)


# =============================================================================
# 429 / 500
# =============================================================================


class RateLimitError(EcoSortError):
    status_code = 429
    code = "rate_limited"

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        *,
        retry_after: int | None = None,
        request_id: str | None = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(
            message,
            detail=f"Retry after {retry_after} seconds" if retry_after else None,
            request_id=request_id,
        )

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        if self.retry_after is not None:
            payload["retry_after"] = self.retry_after
        return payload


class DatabaseError(EcoSortError):
    """A SQLite call failed; the transaction has been rolled back."""

    code = "database_error"

    def __init__(
        self,
        message: str = "Database operation failed",
        *,
        operation: str | None = None,
        table: str | None = None,
        request_id: str | None = None,
    ) -> None:
        self.operation = operation
        self.table = table
        parts = [f"Operation: {operation}" if operation else None, f"Table: {table}" if table else None]
        super().__init__(message, detail="; ".join(p for p in parts if p) or None, request_id=request_id)


# =============================================================================
# Translation helpers
# =============================================================================


def exception_to_http_status(exc: EcoSortError) -> int:
    return exc.status_code


def handle_exception(exc: Exception, request_id: str | None = None) -> dict[str, Any]:
    """
    Convert any exception into the standard error body.

    Builtin ``ValueError``, ``KeyError`` and ``PermissionError`` map onto
    their EcoSort counterparts; anything else is logged and reported as an
    opaque internal error.
    """
    if isinstance(exc, EcoSortError):
        exc.request_id = request_id or exc.request_id
        return exc.to_dict()

    if isinstance(exc, ValueError):
        return ValidationError(str(exc), request_id=request_id).to_dict()
    if isinstance(exc, KeyError):
        return MissingRequiredFieldError(str(exc), request_id=request_id).to_dict()
    if isinstance(exc, PermissionError):
        return PermissionDeniedError(detail=str(exc), request_id=request_id).to_dict()

    logger.error(
        "unhandled_exception",
        extra={"exception_type": type(exc).__name__, "request_id": request_id},
        exc_info=True,
    )
    return EcoSortError(
        "An unexpected error occurred",
        detail=str(exc),
        request_id=request_id,
    ).to_dict()
