"""
Security module for EcoSort.

Provides input validation, LIKE-pattern escaping and rate limiting.
"""

from ecosort.security.rate_limit import RateLimitConfig, SQLiteRateLimiter
from ecosort.security.sql import build_like_clause, escape_like_pattern, validate_search_input
from ecosort.security.validators import (
    clean_text,
    to_number,
    validate_document_id,
    validate_time_of_day,
)

__all__ = [
    "RateLimitConfig",
    "SQLiteRateLimiter",
    "build_like_clause",
    "escape_like_pattern",
    "validate_search_input",
    "clean_text",
    "to_number",
    "validate_document_id",
    "validate_time_of_day",
]
