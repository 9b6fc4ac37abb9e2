"""
Violation reports, their likes and comments, and the admin-managed report
configuration (categories and severity levels).
"""

from __future__ import annotations

import json
import sqlite3
from typing import Any

from ecosort.config import (
    ALL_REPORTS_CATEGORY,
    DEFAULT_CATEGORY_ICON,
    DEFAULT_SEVERITY_LEVELS,
    REPORT_STATUSES,
    get_settings,
)
from ecosort.db import Database, new_id, utcnow_iso
from ecosort.domain import normalize_report_status, report_status_spellings
from ecosort.exceptions import DuplicateError, ReportNotFoundError, ValidationError
from ecosort.logging_config import get_logger, log_event
from ecosort.security.sql import build_like_clause, validate_search_input
from ecosort.security.validators import clean_text, to_number

logger = get_logger(__name__)

CATEGORIES_KEY = "categories"
SEVERITY_LEVELS_KEY = "severity_levels"


# =============================================================================
# Configuration
# =============================================================================


def clean_categories(categories: list[dict[str, Any]]) -> list[dict[str, str]]:
    """
    Validate a category list for storage.

    Ids must be unique; ``all`` is a view-only pseudo-category and is dropped.
    Missing icons get the default.
    """
    cleaned: list[dict[str, str]] = []
    seen: set[str] = set()
    for item in categories:
        if not isinstance(item, dict):
            raise ValidationError("each category must be an object", field="categories")
        category_id = clean_text(item.get("id"), field="categories.id", max_length=64)
        if category_id == ALL_REPORTS_CATEGORY["id"]:
            continue
        if category_id in seen:
            raise DuplicateError("category", category_id)
        seen.add(category_id)
        cleaned.append(
            {
                "id": category_id,
                "label": clean_text(item.get("label"), field="categories.label", max_length=100),
                "icon": clean_text(item.get("icon"), field="categories.icon", max_length=16, required=False)
                or DEFAULT_CATEGORY_ICON,
            }
        )
    return cleaned


def clean_severity_levels(levels: list[dict[str, Any]]) -> list[dict[str, str]]:
    cleaned: list[dict[str, str]] = []
    seen: set[str] = set()
    for item in levels:
        if not isinstance(item, dict):
            raise ValidationError("each severity level must be an object", field="severity_levels")
        value = clean_text(item.get("value"), field="severity_levels.value", max_length=64)
        if value in seen:
            raise DuplicateError("severity level", value)
        seen.add(value)
        cleaned.append(
            {
                "value": value,
                "label": clean_text(item.get("label"), field="severity_levels.label", max_length=100),
            }
        )
    return cleaned


class ReportConfigRepo:
    def __init__(self, db: Database) -> None:
        self.db = db

    def _load(self, key: str) -> list[dict[str, Any]] | None:
        with self.db.read() as conn:
            row = conn.execute("SELECT value_json FROM report_config WHERE key = ?", (key,)).fetchone()
        return json.loads(row["value_json"]) if row else None

    def _save(self, key: str, value: list[dict[str, Any]]) -> None:
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO report_config (key, value_json, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value_json = excluded.value_json, updated_at = excluded.updated_at
                """,
                (key, json.dumps(value, ensure_ascii=False), utcnow_iso()),
            )

    def categories(self) -> list[dict[str, str]]:
        stored = self._load(CATEGORIES_KEY) or []
        return [
            {"id": c["id"], "label": c["label"], "icon": c.get("icon") or DEFAULT_CATEGORY_ICON}
            for c in stored
            if c.get("id") != ALL_REPORTS_CATEGORY["id"]
        ]

    def form_categories(self) -> list[dict[str, str]]:
        """Categories offered on the report form."""
        return self.categories()

    def forum_categories(self) -> list[dict[str, str]]:
        """Filter chips for the community feed, led by the ``all`` pseudo-category."""
        return [dict(ALL_REPORTS_CATEGORY), *self.categories()]

    def admin_categories(self) -> list[dict[str, Any]]:
        return [{**c, "is_deletable": c["id"] != ALL_REPORTS_CATEGORY["id"]} for c in self.forum_categories()]

    def severity_levels(self) -> list[dict[str, str]]:
        stored = self._load(SEVERITY_LEVELS_KEY)
        return stored if stored else [dict(level) for level in DEFAULT_SEVERITY_LEVELS]

    def save(
        self,
        *,
        categories: list[dict[str, Any]] | None = None,
        severity_levels: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        if categories is not None:
            self._save(CATEGORIES_KEY, clean_categories(categories))
        if severity_levels is not None:
            self._save(SEVERITY_LEVELS_KEY, clean_severity_levels(severity_levels))
        log_event(
            "report_config_saved",
            categories_saved=categories is not None,
            severity_levels_saved=severity_levels is not None,
        )
        return self.snapshot()

    def snapshot(self) -> dict[str, Any]:
        return {
            "form_categories": self.form_categories(),
            "forum_categories": self.forum_categories(),
            "admin_categories": self.admin_categories(),
            "severity_levels": self.severity_levels(),
        }


# =============================================================================
# Reports
# =============================================================================


def _row_to_report(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    data["resolved"] = bool(data["resolved"])
    data["status"] = normalize_report_status(data["status"])
    return data


class ReportRepo:
    def __init__(self, db: Database, config: ReportConfigRepo | None = None) -> None:
        self.db = db
        self.config = config or ReportConfigRepo(db)

    def _attach_engagement(self, conn: sqlite3.Connection, reports: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Fill ``likes`` and ``comments`` for a batch of reports."""
        if not reports:
            return reports
        ids = [r["id"] for r in reports]
        placeholders = ", ".join("?" for _ in ids)
        likes: dict[str, list[str]] = {rid: [] for rid in ids}
        comments: dict[str, list[dict[str, Any]]] = {rid: [] for rid in ids}
        for row in conn.execute(f"SELECT report_id, user_id FROM report_likes WHERE report_id IN ({placeholders})", ids):
            likes[row["report_id"]].append(row["user_id"])
        for row in conn.execute(
            f"SELECT * FROM report_comments WHERE report_id IN ({placeholders}) ORDER BY timestamp ASC, rowid ASC",
            ids,
        ):
            comments[row["report_id"]].append(dict(row))
        for report in reports:
            report["likes"] = likes[report["id"]]
            report["like_count"] = len(report["likes"])
            report["comments"] = comments[report["id"]]
        return reports

    def get(self, report_id: str) -> dict[str, Any]:
        with self.db.read() as conn:
            row = conn.execute("SELECT * FROM violation_reports WHERE id = ?", (report_id,)).fetchone()
            if row is None:
                raise ReportNotFoundError(report_id)
            return self._attach_engagement(conn, [_row_to_report(row)])[0]

    def create(self, author: dict[str, Any], data: dict[str, Any]) -> dict[str, Any]:
        """File a new violation report on behalf of ``author``."""
        settings = get_settings()
        description = clean_text(data.get("description"), field="description", max_length=settings.max_description_chars)
        location = clean_text(data.get("location"), field="location", max_length=500)

        category = clean_text(data.get("category"), field="category", max_length=64, required=False) or None
        allowed_categories = {c["id"] for c in self.config.categories()}
        if allowed_categories:
            if category is None:
                raise ValidationError("Missing required field", field="category")
            if category not in allowed_categories:
                raise ValidationError("unknown category", field="category", detail=category)

        severity = clean_text(data.get("severity"), field="severity", max_length=64)
        if severity not in {level["value"] for level in self.config.severity_levels()}:
            raise ValidationError("unknown severity level", field="severity", detail=severity)

        latitude = data.get("latitude")
        longitude = data.get("longitude")
        if (latitude is None) != (longitude is None):
            raise ValidationError("latitude and longitude must be given together", field="latitude")
        if latitude is not None:
            latitude = to_number(latitude, field="latitude")
            longitude = to_number(longitude, field="longitude")
            if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
                raise ValidationError("coordinates out of range", field="latitude")

        report_id = new_id()
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO violation_reports (
                    id, author_id, author_email, author_username, description, location, category, severity,
                    media_url, media_type, latitude, longitude, status, resolved, admin_notes, submitted_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 'pending', 0, '', ?)
                """,
                (
                    report_id,
                    author["id"],
                    author.get("email"),
                    author.get("username"),
                    description,
                    location,
                    category,
                    severity,
                    clean_text(data.get("media_url"), field="media_url", max_length=2048, required=False) or None,
                    clean_text(data.get("media_type"), field="media_type", max_length=32, required=False) or None,
                    latitude,
                    longitude,
                    utcnow_iso(),
                ),
            )
        log_event("report_created", report_id=report_id, user_id=author["id"], category=category, severity=severity)
        return self.get(report_id)

    def list_reports(
        self,
        *,
        category: str | None = None,
        status: str | None = None,
        search: str = "",
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Newest first. ``category`` of None or ``"all"`` means every category."""
        where: list[str] = []
        params: list[Any] = []
        if category and category != ALL_REPORTS_CATEGORY["id"]:
            where.append("category = ?")
            params.append(category)
        if status:
            if status not in REPORT_STATUSES:
                raise ValidationError(f"must be one of {', '.join(sorted(REPORT_STATUSES))}", field="status")
            spellings = report_status_spellings(status)
            where.append(f"LOWER(TRIM(COALESCE(status, ''))) IN ({', '.join('?' * len(spellings))})")
            params.extend(spellings)
        try:
            search = validate_search_input(search or "")
        except ValueError as exc:
            raise ValidationError(str(exc), field="search") from exc
        if search:
            clause, like_params = build_like_clause(["description", "location"], search)
            where.append(clause)
            params.extend(like_params)

        sql = "SELECT * FROM violation_reports"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY submitted_at DESC, rowid DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self.db.read() as conn:
            reports = [_row_to_report(r) for r in conn.execute(sql, params).fetchall()]
            return self._attach_engagement(conn, reports)

    def status_counts(self) -> dict[str, int]:
        counts = {status: 0 for status in sorted(REPORT_STATUSES)}
        with self.db.read() as conn:
            for row in conn.execute("SELECT status, COUNT(*) AS n FROM violation_reports GROUP BY status"):
                status = normalize_report_status(row["status"])
                counts[status] = counts.get(status, 0) + row["n"]
        counts["all"] = sum(counts.values())
        return counts

    def toggle_like(self, report_id: str, user_id: str) -> dict[str, Any]:
        """Add or remove the user's like. Returns ``{"liked", "like_count"}``."""
        with self.db.transaction() as conn:
            if conn.execute("SELECT 1 FROM violation_reports WHERE id = ?", (report_id,)).fetchone() is None:
                raise ReportNotFoundError(report_id)
            removed = conn.execute(
                "DELETE FROM report_likes WHERE report_id = ? AND user_id = ?",
                (report_id, user_id),
            ).rowcount
            if not removed:
                conn.execute("INSERT INTO report_likes (report_id, user_id) VALUES (?, ?)", (report_id, user_id))
            count = conn.execute("SELECT COUNT(*) AS n FROM report_likes WHERE report_id = ?", (report_id,)).fetchone()
        return {"liked": not removed, "like_count": int(count["n"])}

    def add_comment(self, report_id: str, user: dict[str, Any], text: Any) -> dict[str, Any]:
        text = clean_text(text, field="text", max_length=get_settings().max_comment_chars)
        comment = {
            "id": new_id(),
            "report_id": report_id,
            "user_id": user["id"],
            "author": user.get("username") or user.get("email") or "Anonymous",
            "text": text,
            "timestamp": utcnow_iso(),
        }
        with self.db.transaction() as conn:
            if conn.execute("SELECT 1 FROM violation_reports WHERE id = ?", (report_id,)).fetchone() is None:
                raise ReportNotFoundError(report_id)
            conn.execute(
                """
                INSERT INTO report_comments (id, report_id, user_id, author, text, timestamp)
                VALUES (:id, :report_id, :user_id, :author, :text, :timestamp)
                """,
                comment,
            )
        log_event("report_commented", report_id=report_id, user_id=user["id"])
        return comment

    def update_status(self, report_id: str, status: str) -> dict[str, Any]:
        status = normalize_report_status(status)
        if status not in REPORT_STATUSES:
            raise ValidationError(f"must be one of {', '.join(sorted(REPORT_STATUSES))}", field="status")
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE violation_reports SET status = ?, resolved = ?, updated_at = ? WHERE id = ?",
                (status, int(status == "resolved"), utcnow_iso(), report_id),
            )
            if cur.rowcount == 0:
                raise ReportNotFoundError(report_id)
        log_event("report_status_changed", report_id=report_id, status=status)
        return self.get(report_id)

    def update_notes(self, report_id: str, notes: Any) -> dict[str, Any]:
        notes = clean_text(notes, field="admin_notes", max_length=get_settings().max_notes_chars, required=False)
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE violation_reports SET admin_notes = ?, updated_at = ? WHERE id = ?",
                (notes, utcnow_iso(), report_id),
            )
            if cur.rowcount == 0:
                raise ReportNotFoundError(report_id)
        return self.get(report_id)

    def delete(self, report_id: str) -> None:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM violation_reports WHERE id = ?", (report_id,))
            if cur.rowcount == 0:
                raise ReportNotFoundError(report_id)
        log_event("report_deleted", report_id=report_id)
