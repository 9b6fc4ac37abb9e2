"""
SQLite storage for EcoSort.

One database file holds every collection. Writes that must land together
(balance + ledger + status) share a single ``BEGIN IMMEDIATE`` transaction,
so a second writer waits instead of reading a stale balance.
"""

from __future__ import annotations

import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from ecosort.exceptions import DatabaseError
from ecosort.logging_config import get_logger

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT,
    username TEXT,
    profile_picture TEXT,
    role TEXT NOT NULL DEFAULT 'resident',
    total_points REAL NOT NULL DEFAULT 0 CHECK (total_points >= 0),
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS waste_types (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    name_key TEXT NOT NULL UNIQUE,
    points_per_kilo REAL NOT NULL CHECK (points_per_kilo >= 0),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS waste_submissions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    user_email TEXT,
    type TEXT NOT NULL,
    weight REAL NOT NULL CHECK (weight > 0),
    points REAL NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'pending',
    submitted_at TEXT NOT NULL,
    confirmed_at TEXT,
    confirmed_by TEXT,
    awarded_points REAL,
    rejected_at TEXT,
    rejected_by TEXT,
    rejection_reason TEXT
);

CREATE TABLE IF NOT EXISTS rewards (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    description TEXT NOT NULL,
    category TEXT NOT NULL DEFAULT 'Uncategorized',
    cost INTEGER NOT NULL DEFAULT 0 CHECK (cost >= 0),
    stock INTEGER NOT NULL DEFAULT 0 CHECK (stock >= 0),
    image_url TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS redemptions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    reward_id TEXT NOT NULL,
    reward_name TEXT,
    cost INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'pending',
    redemption_code TEXT NOT NULL UNIQUE,
    redeemed_at TEXT NOT NULL,
    claimed_at TEXT,
    claimed_by TEXT,
    cancelled_at TEXT,
    cancelled_by TEXT
);

CREATE TABLE IF NOT EXISTS point_transactions (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    points REAL NOT NULL,
    type TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    reference_id TEXT,
    timestamp TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS violation_reports (
    id TEXT PRIMARY KEY,
    author_id TEXT NOT NULL,
    author_email TEXT,
    author_username TEXT,
    description TEXT NOT NULL,
    location TEXT NOT NULL,
    category TEXT,
    severity TEXT NOT NULL,
    media_url TEXT,
    media_type TEXT,
    latitude REAL,
    longitude REAL,
    status TEXT NOT NULL DEFAULT 'pending',
    resolved INTEGER NOT NULL DEFAULT 0,
    admin_notes TEXT NOT NULL DEFAULT '',
    submitted_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS report_likes (
    report_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    PRIMARY KEY (report_id, user_id),
    FOREIGN KEY (report_id) REFERENCES violation_reports(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS report_comments (
    id TEXT PRIMARY KEY,
    report_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    author TEXT NOT NULL,
    text TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    FOREIGN KEY (report_id) REFERENCES violation_reports(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS report_config (
    key TEXT PRIMARY KEY,
    value_json TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS collection_schedules (
    id TEXT PRIMARY KEY,
    area TEXT NOT NULL,
    barangay TEXT NOT NULL DEFAULT '',
    day TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT NOT NULL,
    frequency TEXT NOT NULL DEFAULT 'weekly',
    waste_types_json TEXT NOT NULL DEFAULT '[]',
    notes TEXT NOT NULL DEFAULT '',
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE TABLE IF NOT EXISTS notifications (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    type TEXT NOT NULL,
    message TEXT NOT NULL,
    read INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_users_points ON users(total_points DESC);
CREATE INDEX IF NOT EXISTS idx_submissions_status ON waste_submissions(status, submitted_at);
CREATE INDEX IF NOT EXISTS idx_submissions_user ON waste_submissions(user_id, submitted_at);
CREATE INDEX IF NOT EXISTS idx_redemptions_user ON redemptions(user_id, redeemed_at);
CREATE INDEX IF NOT EXISTS idx_transactions_user ON point_transactions(user_id, timestamp);
CREATE INDEX IF NOT EXISTS idx_reports_category ON violation_reports(category, submitted_at);
CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, read, created_at);
"""


def utcnow_iso() -> str:
    """Current UTC time as an ISO 8601 string (sortable)."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def new_id() -> str:
    return uuid.uuid4().hex


class Database:
    """
    Connection factory and transaction scope for the EcoSort store.

    Connections run in autocommit mode; multi-statement writes go through
    ``transaction()``.
    """

    def __init__(self, db_path: str | Path = "data/ecosort.db") -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=10, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute("PRAGMA journal_mode = WAL;")
        conn.execute("PRAGMA synchronous = NORMAL;")
        conn.execute("PRAGMA busy_timeout = 10000;")
        return conn

    def _init_db(self) -> None:
        with self.read() as conn:
            conn.executescript(SCHEMA)

    @contextmanager
    def read(self) -> Iterator[sqlite3.Connection]:
        """Short-lived connection for reads and single-statement writes."""
        conn = self.connect()
        try:
            yield conn
        except sqlite3.Error as exc:
            logger.error("database_error", extra={"error_message": str(exc)})
            raise DatabaseError(operation="read") from exc
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Atomic unit of work.

        Takes the write lock up front so read-then-write sequences inside the
        block see no interleaved writer. Any exception rolls everything back.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            logger.error("database_error", extra={"error_message": str(exc)})
            raise DatabaseError(operation="transaction") from exc
        finally:
            conn.close()

    @contextmanager
    def using(self, conn: sqlite3.Connection | None = None) -> Iterator[sqlite3.Connection]:
        """Join the caller's transaction when given one, otherwise open a new one."""
        if conn is not None:
            yield conn
            return
        with self.transaction() as own:
            yield own
