"""
Input validation for ids and free text.

Everything here raises ``ecosort.exceptions.ValidationError`` so the API
layer maps failures to 400 responses.
"""

from __future__ import annotations

import math
import re
from typing import Any

from ecosort.exceptions import MissingRequiredFieldError, ValidationError

# Allowed characters for document ids (alphanumeric, underscore, hyphen, colon)
_DOCUMENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_:-]+$")

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_document_id(value: Any, *, field: str = "id") -> str:
    """
    Validate a path or body id.

    Returns:
        The stripped id

    Raises:
        ValidationError: If the id is empty, too long, or has unsafe characters
    """
    if not value or not isinstance(value, str):
        raise ValidationError("must be a non-empty string", field=field)

    value = value.strip()
    if not value:
        raise ValidationError("cannot be empty", field=field)
    if len(value) > 128:
        raise ValidationError("exceeds maximum length of 128 characters", field=field)
    if not _DOCUMENT_ID_PATTERN.match(value):
        raise ValidationError(
            "only alphanumeric characters, underscores, hyphens and colons are allowed",
            field=field,
            detail=repr(value),
        )
    return value


def clean_text(value: Any, *, field: str, max_length: int, required: bool = True) -> str:
    """
    Trim free text and enforce a length bound.

    Control characters other than newlines and tabs are dropped.
    """
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValidationError("must be a string", field=field)

    value = "".join(ch for ch in value if ch in "\n\t" or ch.isprintable()).strip()
    if required and not value:
        raise MissingRequiredFieldError(field)
    if len(value) > max_length:
        raise ValidationError(f"exceeds maximum length of {max_length} characters", field=field)
    return value


def to_number(value: Any, *, field: str, minimum: float | None = None, exclusive: bool = False) -> float:
    """Coerce a numeric input, rejecting NaN/inf and values under ``minimum``."""
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError("must be a number", field=field) from exc

    if math.isnan(number) or math.isinf(number):
        raise ValidationError("must be a finite number", field=field)
    if minimum is not None:
        if exclusive and number <= minimum:
            raise ValidationError(f"must be greater than {minimum:g}", field=field)
        if not exclusive and number < minimum:
            raise ValidationError(f"must be at least {minimum:g}", field=field)
    return number


def validate_time_of_day(value: Any, *, field: str) -> str:
    """Validate a 24h ``HH:MM`` string."""
    if not isinstance(value, str) or not _TIME_PATTERN.match(value.strip()):
        raise ValidationError("must be a time in HH:MM format", field=field)
    return value.strip()
