"""
Append-only points ledger.

Every balance change made by ``ecosort.points`` is mirrored here, so a user's
``total_points`` can be reconciled against ``sum_for_user``.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from ecosort.config import SPENT_TRANSACTION_TYPES, TRANSACTION_TYPES
from ecosort.db import Database, new_id, utcnow_iso
from ecosort.exceptions import ValidationError

LEDGER_KINDS = ("all", "awarded", "redeemed")


def _kind_clause(kind: str) -> tuple[str, list[Any]]:
    """SQL filter for the ``awarded`` / ``redeemed`` / ``all`` views."""
    if kind not in LEDGER_KINDS:
        raise ValidationError(f"must be one of {', '.join(LEDGER_KINDS)}", field="kind")
    if kind == "all":
        return "", []
    spent = sorted(SPENT_TRANSACTION_TYPES)
    placeholders = ", ".join("?" for _ in spent)
    op = "IN" if kind == "redeemed" else "NOT IN"
    return f" AND type {op} ({placeholders})", spent


class LedgerRepo:
    def __init__(self, db: Database) -> None:
        self.db = db

    def append(
        self,
        user_id: str,
        points: float,
        type: str,
        description: str,
        *,
        reference_id: str | None = None,
        conn: sqlite3.Connection | None = None,
    ) -> str:
        if type not in TRANSACTION_TYPES:
            raise ValidationError(f"unknown transaction type {type!r}", field="type")
        transaction_id = new_id()
        with self.db.using(conn) as c:
            c.execute(
                """
                INSERT INTO point_transactions (id, user_id, points, type, description, reference_id, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (transaction_id, user_id, points, type, description, reference_id, utcnow_iso()),
            )
        return transaction_id

    def list_for_user(self, user_id: str, *, kind: str = "all", limit: int = 100) -> list[dict[str, Any]]:
        clause, params = _kind_clause(kind)
        with self.db.read() as conn:
            rows = conn.execute(
                f"SELECT * FROM point_transactions WHERE user_id = ?{clause} ORDER BY timestamp DESC, rowid DESC LIMIT ?",
                (user_id, *params, limit),
            ).fetchall()
        return [dict(r) for r in rows]

    def list_all(self, *, kind: str = "all", order: str = "desc", limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        """Admin view over every user's entries."""
        if order not in ("asc", "desc"):
            raise ValidationError("must be 'asc' or 'desc'", field="order")
        clause, params = _kind_clause(kind)
        direction = order.upper()
        with self.db.read() as conn:
            rows = conn.execute(
                f"""
                SELECT t.*, u.email AS user_email, u.username AS username
                FROM point_transactions t
                LEFT JOIN users u ON u.id = t.user_id
                WHERE 1 = 1{clause}
                ORDER BY t.timestamp {direction}, t.rowid {direction}
                LIMIT ? OFFSET ?
                """,
                (*params, limit, offset),
            ).fetchall()
        return [dict(r) for r in rows]

    def sum_for_user(self, user_id: str) -> float:
        with self.db.read() as conn:
            row = conn.execute(
                "SELECT COALESCE(SUM(points), 0) AS total FROM point_transactions WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return round(float(row["total"]), 2)
