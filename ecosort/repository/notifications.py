"""
Per-user notification inbox.

Entries are written by the points workflow inside its own transaction;
delivery beyond the inbox is not handled here.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from ecosort.db import Database, new_id, utcnow_iso
from ecosort.exceptions import NotificationNotFoundError


def _row_to_notification(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    data["read"] = bool(data["read"])
    return data


class NotificationRepo:
    def __init__(self, db: Database) -> None:
        self.db = db

    def add(
        self,
        user_id: str,
        message: str,
        *,
        type: str = "info",
        conn: sqlite3.Connection | None = None,
    ) -> str:
        notification_id = new_id()
        with self.db.using(conn) as c:
            c.execute(
                "INSERT INTO notifications (id, user_id, type, message, read, created_at) VALUES (?, ?, ?, ?, 0, ?)",
                (notification_id, user_id, type, message, utcnow_iso()),
            )
        return notification_id

    def list_for_user(self, user_id: str, *, unread_only: bool = False, limit: int = 50) -> list[dict[str, Any]]:
        sql = "SELECT * FROM notifications WHERE user_id = ?"
        if unread_only:
            sql += " AND read = 0"
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
        with self.db.read() as conn:
            rows = conn.execute(sql, (user_id, limit)).fetchall()
        return [_row_to_notification(r) for r in rows]

    def unread_count(self, user_id: str) -> int:
        with self.db.read() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM notifications WHERE user_id = ? AND read = 0",
                (user_id,),
            ).fetchone()
        return int(row["n"])

    def mark_read(self, user_id: str, notification_id: str) -> None:
        """Mark one of the user's notifications read."""
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE notifications SET read = 1 WHERE id = ? AND user_id = ?",
                (notification_id, user_id),
            )
            if cur.rowcount == 0:
                raise NotificationNotFoundError(notification_id)

    def mark_all_read(self, user_id: str) -> int:
        with self.db.transaction() as conn:
            cur = conn.execute("UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0", (user_id,))
            return cur.rowcount
