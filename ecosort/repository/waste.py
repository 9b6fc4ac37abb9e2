"""
Waste types and waste submissions.

Submission status changes that touch balances (confirm/reject) live in
``ecosort.points``; this module only stores and queries.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from ecosort.config import SUBMISSION_STATUSES
from ecosort.db import Database, new_id, utcnow_iso
from ecosort.domain import calculate_points, success_rate
from ecosort.exceptions import (
    DuplicateError,
    SubmissionNotFoundError,
    ValidationError,
    WasteTypeNotFoundError,
)
from ecosort.logging_config import get_logger, log_event
from ecosort.security.validators import clean_text, to_number

logger = get_logger(__name__)


def _clean_waste_type(name: Any, points_per_kilo: Any) -> tuple[str, float]:
    name = clean_text(name, field="name", max_length=100)
    rate = to_number(points_per_kilo, field="points_per_kilo", minimum=0)
    return name, rate


def _public_waste_type(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    data.pop("name_key", None)
    return data


class WasteRepo:
    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Waste types
    # ------------------------------------------------------------------

    def list_types(self) -> list[dict[str, Any]]:
        with self.db.read() as conn:
            rows = conn.execute("SELECT * FROM waste_types ORDER BY name_key").fetchall()
        return [_public_waste_type(r) for r in rows]

    def get_type(self, type_id: str) -> dict[str, Any]:
        with self.db.read() as conn:
            row = conn.execute("SELECT * FROM waste_types WHERE id = ?", (type_id,)).fetchone()
        if row is None:
            raise WasteTypeNotFoundError(type_id)
        return _public_waste_type(row)

    def find_type_by_name(self, name: str, *, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
        """Case-insensitive lookup by name."""
        sql = "SELECT * FROM waste_types WHERE name_key = ?"
        key = (name or "").strip().lower()
        if conn is not None:
            row = conn.execute(sql, (key,)).fetchone()
        else:
            with self.db.read() as c:
                row = c.execute(sql, (key,)).fetchone()
        return _public_waste_type(row) if row else None

    def add_type(self, name: Any, points_per_kilo: Any) -> dict[str, Any]:
        name, rate = _clean_waste_type(name, points_per_kilo)
        type_id = new_id()
        with self.db.transaction() as conn:
            if conn.execute("SELECT 1 FROM waste_types WHERE name_key = ?", (name.lower(),)).fetchone():
                raise DuplicateError("waste type", name)
            conn.execute(
                "INSERT INTO waste_types (id, name, name_key, points_per_kilo, created_at) VALUES (?, ?, ?, ?, ?)",
                (type_id, name, name.lower(), rate, utcnow_iso()),
            )
        log_event("waste_type_added", waste_type_id=type_id, waste_type=name)
        return self.get_type(type_id)

    def update_type(self, type_id: str, name: Any, points_per_kilo: Any) -> dict[str, Any]:
        name, rate = _clean_waste_type(name, points_per_kilo)
        with self.db.transaction() as conn:
            if conn.execute("SELECT 1 FROM waste_types WHERE id = ?", (type_id,)).fetchone() is None:
                raise WasteTypeNotFoundError(type_id)
            clash = conn.execute(
                "SELECT 1 FROM waste_types WHERE name_key = ? AND id != ?",
                (name.lower(), type_id),
            ).fetchone()
            if clash:
                raise DuplicateError("waste type", name)
            conn.execute(
                "UPDATE waste_types SET name = ?, name_key = ?, points_per_kilo = ? WHERE id = ?",
                (name, name.lower(), rate, type_id),
            )
        return self.get_type(type_id)

    def delete_type(self, type_id: str) -> None:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM waste_types WHERE id = ?", (type_id,))
            if cur.rowcount == 0:
                raise WasteTypeNotFoundError(type_id)
        log_event("waste_type_deleted", waste_type_id=type_id)

    def estimate(self, type_name: str, weight: Any) -> int:
        waste_type = self.find_type_by_name(type_name)
        if waste_type is None:
            raise WasteTypeNotFoundError(type_name)
        return calculate_points(weight, waste_type["points_per_kilo"])

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def create_submission(self, user_id: str, user_email: str | None, type_name: Any, weight: Any) -> dict[str, Any]:
        """Record a pending weigh-in for an existing waste type."""
        type_name = clean_text(type_name, field="type", max_length=100)
        kilos = to_number(weight, field="weight", minimum=0, exclusive=True)
        submission_id = new_id()

        with self.db.transaction() as conn:
            waste_type = self.find_type_by_name(type_name, conn=conn)
            if waste_type is None:
                raise ValidationError("unknown waste type", field="type", detail=type_name)
            estimate = calculate_points(kilos, waste_type["points_per_kilo"])
            conn.execute(
                """
                INSERT INTO waste_submissions (id, user_id, user_email, type, weight, points, status, submitted_at)
                VALUES (?, ?, ?, ?, ?, ?, 'pending', ?)
                """,
                (submission_id, user_id, user_email, waste_type["name"], kilos, estimate, utcnow_iso()),
            )

        log_event("submission_created", submission_id=submission_id, user_id=user_id, weight=kilos)
        return self.get_submission(submission_id)

    def get_submission(self, submission_id: str, *, conn: sqlite3.Connection | None = None) -> dict[str, Any]:
        sql = "SELECT * FROM waste_submissions WHERE id = ?"
        if conn is not None:
            row = conn.execute(sql, (submission_id,)).fetchone()
        else:
            with self.db.read() as c:
                row = c.execute(sql, (submission_id,)).fetchone()
        if row is None:
            raise SubmissionNotFoundError(submission_id)
        return dict(row)

    def list_submissions(self, *, status: str | None = None, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        if status is not None and status not in SUBMISSION_STATUSES:
            raise ValidationError(f"must be one of {', '.join(sorted(SUBMISSION_STATUSES))}", field="status")
        sql = "SELECT * FROM waste_submissions"
        params: list[Any] = []
        if status:
            sql += " WHERE status = ?"
            params.append(status)
        sql += " ORDER BY submitted_at DESC, rowid DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        with self.db.read() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def list_for_user(self, user_id: str, *, limit: int = 100) -> list[dict[str, Any]]:
        with self.db.read() as conn:
            rows = conn.execute(
                "SELECT * FROM waste_submissions WHERE user_id = ? ORDER BY submitted_at DESC, rowid DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [dict(r) for r in rows]

    def stats(self) -> dict[str, Any]:
        with self.db.read() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(status = 'confirmed'), 0) AS confirmed,
                    COALESCE(SUM(status = 'rejected'), 0) AS rejected,
                    COALESCE(SUM(status = 'pending'), 0) AS pending,
                    COALESCE(SUM(CASE WHEN status = 'confirmed' THEN awarded_points END), 0) AS total_points_awarded
                FROM waste_submissions
                """
            ).fetchone()
        stats = dict(row)
        stats["total_points_awarded"] = round(float(stats["total_points_awarded"]), 2)
        stats["success_rate"] = success_rate(stats["confirmed"], stats["rejected"])
        return stats
