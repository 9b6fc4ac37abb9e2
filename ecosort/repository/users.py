"""
User profiles, roles and leaderboard.

Balances are only changed through ``ecosort.points``; this module reads
them and adjusts them inside a caller-supplied transaction.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from ecosort.config import ROLES, get_settings
from ecosort.db import Database, utcnow_iso
from ecosort.exceptions import InsufficientPointsError, UserNotFoundError, ValidationError
from ecosort.logging_config import get_logger, log_event
from ecosort.security.sql import build_like_clause, validate_search_input

logger = get_logger(__name__)

# Sort keys accepted by the admin listing
USER_SORT_COLUMNS = {
    "rank": "rank",
    "points": "total_points",
    "email": "email",
}


class UserRepo:
    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, user_id: str, *, conn: sqlite3.Connection | None = None) -> dict[str, Any] | None:
        if conn is not None:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        else:
            with self.db.read() as c:
                row = c.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return dict(row) if row else None

    def require(self, user_id: str, *, conn: sqlite3.Connection | None = None) -> dict[str, Any]:
        user = self.get(user_id, conn=conn)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    def get_or_create(self, user_id: str, *, email: str | None = None, username: str | None = None) -> dict[str, Any]:
        """
        Return the profile for ``user_id``, creating it on first sight.

        New profiles start as residents with zero points, unless the id is
        listed in ``ECOSORT_ADMIN_USER_IDS``.
        """
        existing = self.get(user_id)
        if existing is not None:
            return existing

        role = "admin" if user_id in get_settings().admin_user_ids else "resident"
        with self.db.transaction() as conn:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO users (id, email, username, role, total_points, created_at)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (user_id, email, username, role, utcnow_iso()),
            )
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        if cur.rowcount:
            log_event("user_created", user_id=user_id, role=role)
        return dict(row)

    def update_profile(
        self,
        user_id: str,
        *,
        username: str | None = None,
        email: str | None = None,
        profile_picture: str | None = None,
    ) -> dict[str, Any]:
        changes = {
            key: value
            for key, value in (("username", username), ("email", email), ("profile_picture", profile_picture))
            if value is not None
        }
        with self.db.transaction() as conn:
            self.require(user_id, conn=conn)
            if changes:
                assignments = ", ".join(f"{key} = ?" for key in changes)
                conn.execute(
                    f"UPDATE users SET {assignments}, updated_at = ? WHERE id = ?",
                    (*changes.values(), utcnow_iso(), user_id),
                )
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return dict(row)

    def set_role(self, user_id: str, role: str) -> dict[str, Any]:
        if role not in ROLES:
            raise ValidationError(f"must be one of {', '.join(sorted(ROLES))}", field="role")
        with self.db.transaction() as conn:
            self.require(user_id, conn=conn)
            conn.execute("UPDATE users SET role = ?, updated_at = ? WHERE id = ?", (role, utcnow_iso(), user_id))
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        log_event("user_role_changed", user_id=user_id, role=role)
        return dict(row)

    def adjust_points(self, conn: sqlite3.Connection, user_id: str, delta: float) -> float:
        """
        Apply ``delta`` to a balance inside the caller's transaction.

        Returns the new balance. Raises if the balance would go negative.
        """
        user = self.require(user_id, conn=conn)
        balance = float(user["total_points"])
        new_balance = round(balance + delta, 2)
        if new_balance < 0:
            raise InsufficientPointsError(balance=balance, required=-delta)
        conn.execute(
            "UPDATE users SET total_points = ?, updated_at = ? WHERE id = ?",
            (new_balance, utcnow_iso(), user_id),
        )
        return new_balance

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    def leaderboard(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Top users by points, ties broken by who joined first."""
        limit = limit or get_settings().leaderboard_size
        with self.db.read() as conn:
            rows = conn.execute(
                """
                SELECT id, username, email, profile_picture, total_points
                FROM users
                ORDER BY total_points DESC, created_at ASC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [{"rank": idx, **dict(row)} for idx, row in enumerate(rows, start=1)]

    def rank_of(self, user_id: str) -> int:
        """1-based leaderboard position; 0 for unknown users."""
        with self.db.read() as conn:
            user = conn.execute("SELECT total_points, created_at FROM users WHERE id = ?", (user_id,)).fetchone()
            if user is None:
                return 0
            ahead = conn.execute(
                """
                SELECT COUNT(*) AS n FROM users
                WHERE total_points > ?
                   OR (total_points = ? AND created_at < ?)
                """,
                (user["total_points"], user["total_points"], user["created_at"]),
            ).fetchone()
        return int(ahead["n"]) + 1

    def list_users(
        self,
        *,
        search: str = "",
        role: str | None = None,
        sort: str = "rank",
        order: str = "asc",
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Admin listing with search, role filter and sorting."""
        if sort not in USER_SORT_COLUMNS:
            raise ValidationError(f"must be one of {', '.join(USER_SORT_COLUMNS)}", field="sort")
        if order not in ("asc", "desc"):
            raise ValidationError("must be 'asc' or 'desc'", field="order")
        if role is not None and role not in ROLES:
            raise ValidationError(f"must be one of {', '.join(sorted(ROLES))}", field="role")

        try:
            search = validate_search_input(search or "")
        except ValueError as exc:
            raise ValidationError(str(exc), field="search") from exc

        where: list[str] = []
        params: list[Any] = []
        if search:
            clause, like_params = build_like_clause(["email", "username"], search)
            where.append(clause)
            params.extend(like_params)
        if role:
            where.append("role = ?")
            params.append(role)

        # Rank is computed over all users before filtering
        sql = """
            SELECT * FROM (
                SELECT users.*, ROW_NUMBER() OVER (ORDER BY total_points DESC, created_at ASC) AS rank
                FROM users
            )
        """
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += f" ORDER BY {USER_SORT_COLUMNS[sort]} {order.upper()}, rank ASC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self.db.read() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]
