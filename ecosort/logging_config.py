"""
EcoSort - Structured Logging Configuration
==========================================
JSON logs for production, colored lines for local work.

Every record picks up the request context bound by the observability
middleware (request id, caller, client ip, endpoint). Ledger operations log
one snake_case event each with the balances involved, so an operator can
replay a user's points history from the log stream alone.

Usage:
    from ecosort.logging_config import get_logger, log_event

    logger = get_logger(__name__)
    logger.info("submission_created", extra={"submission_id": "abc"})

    log_event("reward_redeemed", reward_id="r1", cost=150)
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
import traceback
from contextvars import ContextVar
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from ecosort.config import settings


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# Redemption codes are bearer tokens at the claim desk
REDACTED_FIELDS = frozenset({"code", "redemption_code"})

_CONTEXT_FIELDS = ("request_id", "user_id", "client_ip", "endpoint")


# =============================================================================
# Request context
# =============================================================================


class LogContext:
    """
    Request fields merged into every log record.

    Held in a context variable so the fields follow a request from the
    middleware into the worker thread that runs its route. The dict is shared
    within one request, so a caller bound in a dependency is visible to the
    middleware's completion log.
    """

    _current: ContextVar[dict[str, Any] | None] = ContextVar("ecosort_log_context", default=None)

    @classmethod
    def _fields(cls) -> dict[str, Any]:
        fields = cls._current.get()
        if fields is None:
            fields = {}
            cls._current.set(fields)
        return fields

    @classmethod
    def bind(cls, **fields: Any) -> None:
        unknown = set(fields) - set(_CONTEXT_FIELDS)
        if unknown:
            raise KeyError(f"Unknown log context fields: {sorted(unknown)}")
        cls._fields().update(fields)

    @classmethod
    def set_request_id(cls, request_id: str | None) -> None:
        cls.bind(request_id=request_id)

    @classmethod
    def get_request_id(cls) -> str | None:
        return cls._fields().get("request_id")

    @classmethod
    def set_user_id(cls, user_id: str | None) -> None:
        cls.bind(user_id=user_id)

    @classmethod
    def set_client_ip(cls, client_ip: str | None) -> None:
        cls.bind(client_ip=client_ip)

    @classmethod
    def set_endpoint(cls, endpoint: str | None) -> None:
        cls.bind(endpoint=endpoint)

    @classmethod
    def clear(cls) -> None:
        """Start a fresh context; other requests keep their own."""
        cls._current.set({})

    @classmethod
    def get_all(cls) -> dict[str, Any]:
        """Bound fields that currently have a value."""
        return {key: value for key, value in cls._fields().items() if value is not None}


# =============================================================================
# Formatters
# =============================================================================

# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "log_context"}


def _redact(fields: dict[str, Any]) -> dict[str, Any]:
    return {key: ("***" if key in REDACTED_FIELDS and value else value) for key, value in fields.items()}


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Fields passed via ``extra=`` on a log call, with codes masked."""
    extras = {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }
    return _redact(extras)


def record_context(record: logging.LogRecord) -> dict[str, Any]:
    """Request fields captured when the record was created."""
    captured = getattr(record, "log_context", None)
    return dict(captured) if captured is not None else LogContext.get_all()


def _install_context_factory() -> None:
    """Stamp the current request context onto every record at creation time."""
    base_factory = logging.getLogRecordFactory()
    if getattr(base_factory, "_ecosort_context", False):
        return

    def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = base_factory(*args, **kwargs)
        record.log_context = LogContext.get_all()
        return record

    factory._ecosort_context = True
    logging.setLogRecordFactory(factory)


_install_context_factory()


class StructuredFormatter(logging.Formatter):
    """One JSON object per line: event, level, source, context and extras."""

    def __init__(self, *, service_name: str = "ecosort", environment: str = "production") -> None:
        super().__init__()
        self.service_name = service_name
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "event": record.getMessage(),
            "service": self.service_name,
            "environment": self.environment,
            "source": f"{record.module}:{record.lineno}",
        }
        entry.update(record_context(record))
        entry.update(record_extras(record))

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        return json.dumps(entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Colored single-line output for debug sessions."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        who = record_context(record).get("user_id") or "-"
        line = f"{color}{record.levelname:<8}{self.RESET} {clock} [{who}] {record.name}: {record.getMessage()}"

        extras = record_extras(record)
        if extras:
            line += " " + " ".join(f"{key}={value}" for key, value in extras.items())
        if record.exc_info:
            line += "\n" + "".join(traceback.format_exception(*record.exc_info))
        return line


# =============================================================================
# Setup
# =============================================================================

_configured = False


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        level = os.environ.get("LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    return getattr(logging, str(level).upper(), logging.INFO)


def _wants_json(log_format: str | None) -> bool:
    choice = (log_format or os.environ.get("LOG_FORMAT", "")).lower()
    if choice in ("json", "console"):
        return choice == "json"
    return not settings.debug_mode


def configure_logging(
    *,
    level: str | int | None = None,
    service_name: str = "ecosort",
    environment: str = "production",
    log_format: str | None = None,
) -> None:
    """
    Install a single stdout handler on the root logger.

    Args:
        level: Log level name or number; defaults to ``LOG_LEVEL`` or INFO
        service_name: Value of the ``service`` field in JSON output
        environment: Value of the ``environment`` field in JSON output
        log_format: ``"json"`` or ``"console"``; defaults to ``LOG_FORMAT``,
            then JSON unless debug mode is on
    """
    global _configured

    resolved = _resolve_level(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(resolved)
    if _wants_json(log_format):
        handler.setFormatter(StructuredFormatter(service_name=service_name, environment=environment))
    else:
        handler.setFormatter(ConsoleFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(resolved)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    if not _configured:
        configure_logging()
    return logging.getLogger(name)


def log_event(event_name: str, level: str | LogLevel = LogLevel.INFO, **fields: Any) -> None:
    """
    Log a domain event on the ``ecosort.event`` logger.

    Example:
        log_event("submission_confirmed", submission_id="abc", awarded_points=12.5)
    """
    level_name = level.value if isinstance(level, LogLevel) else str(level).upper()
    get_logger("ecosort.event").log(_resolve_level(level_name), event_name, extra=fields)


# =============================================================================
# Timing
# =============================================================================


class PerformanceTracker:
    """
    Time a block and log ``<operation>_completed`` or ``<operation>_failed``.

    Example:
        with PerformanceTracker("redeem_reward", reward_id=reward_id):
            ...
    """

    def __init__(self, operation: str, **fields: Any) -> None:
        self.operation = operation
        self.fields = fields
        self.duration_ms: float | None = None
        self._started: float | None = None

    def __enter__(self) -> PerformanceTracker:
        self._started = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._started is None:
            return
        self.duration_ms = round((time.perf_counter() - self._started) * 1000, 2)
        fields = {**self.fields, "duration_ms": self.duration_ms}
        logger = get_logger("ecosort.performance")
        if exc_type is None:
            logger.info(f"{self.operation}_completed", extra=fields)
        else:
            # Domain refusals (out of stock, already confirmed) are expected outcomes
            fields["error"] = type(exc).__name__
            logger.warning(f"{self.operation}_failed", extra=fields)
