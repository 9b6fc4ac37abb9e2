"""
Helpers for building LIKE searches from user input.

Admin user search and the report feed search run free text through these so
that ``%`` and ``_`` typed by a user match literally.
"""

import re

# Column names are interpolated, so only plain identifiers (optionally table-qualified)
_COLUMN_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


def escape_like_pattern(pattern: str, escape_char: str = "\\") -> str:
    """
    Escape LIKE wildcards so they match literally.

    >>> escape_like_pattern("100%")
    '100\\\\%'
    """
    if not isinstance(pattern, str):
        raise TypeError(f"Pattern must be a string, got {type(pattern).__name__}")

    # The escape character goes first so later escapes are not doubled
    for special in (escape_char, "%", "_"):
        pattern = pattern.replace(special, escape_char + special)
    return pattern


def build_like_clause(columns: list[str], pattern: str, escape_char: str = "\\") -> tuple[str, list]:
    """
    OR-ed substring match of ``pattern`` over trusted ``columns``.

    Returns the SQL fragment and its parameters, for example
    ``build_like_clause(["email", "username"], "ana_")`` gives
    ``("(email LIKE ? ESCAPE '\\' OR username LIKE ? ESCAPE '\\')", ["%ana\\_%", "%ana\\_%"])``.
    """
    if not columns:
        raise ValueError("At least one column is required")
    bad = [column for column in columns if not _COLUMN_RE.match(column)]
    if bad:
        raise ValueError(f"Invalid column name: {bad[0]}")

    needle = f"%{escape_like_pattern(pattern, escape_char)}%"
    fragment = " OR ".join(f"{column} LIKE ? ESCAPE '{escape_char}'" for column in columns)
    return f"({fragment})", [needle] * len(columns)


def validate_search_input(query: str, *, max_length: int = 200) -> str:
    """Strip non-printable characters and surrounding space; reject overlong queries."""
    if not isinstance(query, str):
        raise TypeError(f"Query must be a string, got {type(query).__name__}")
    if len(query) > max_length:
        raise ValueError(f"Query exceeds maximum length of {max_length} characters")
    return "".join(char for char in query if char.isprintable()).strip()
