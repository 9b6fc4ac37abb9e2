"""
Rewards catalog and redemption records.

Redeeming, cancelling and claiming change balances and stock, so those
steps live in ``ecosort.points``.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from ecosort.config import DEFAULT_REWARD_CATEGORY, REDEMPTION_STATUSES, get_settings
from ecosort.db import Database, new_id, utcnow_iso
from ecosort.domain import success_rate
from ecosort.exceptions import RedemptionNotFoundError, RewardNotFoundError, ValidationError
from ecosort.logging_config import get_logger, log_event
from ecosort.security.validators import clean_text

logger = get_logger(__name__)

# Field names used by older reward documents
LEGACY_REWARD_FIELDS = {"pointCost": "cost", "stockQuantity": "stock"}


def _non_negative_int(value: Any, field: str) -> int:
    try:
        number = int(float(value))
    except (TypeError, ValueError) as exc:
        raise ValidationError("must be a whole number", field=field) from exc
    if number < 0:
        raise ValidationError("must not be negative", field=field)
    return number


def normalize_legacy_reward(doc: dict[str, Any]) -> tuple[dict[str, Any], bool]:
    """
    Rename ``pointCost``/``stockQuantity`` to ``cost``/``stock``.

    Returns the normalized copy and whether anything changed. When both the
    legacy and the current name are present the legacy value wins.
    """
    data = dict(doc)
    changed = False
    for legacy, current in LEGACY_REWARD_FIELDS.items():
        if legacy in data:
            data[current] = data.pop(legacy)
            changed = True
    return data, changed


def clean_reward(data: dict[str, Any]) -> dict[str, Any]:
    """Validate and coerce a reward payload."""
    data, _ = normalize_legacy_reward(data)
    category = clean_text(data.get("category"), field="category", max_length=100, required=False)
    image_url = clean_text(data.get("image_url"), field="image_url", max_length=2048, required=False)
    return {
        "name": clean_text(data.get("name"), field="name", max_length=200),
        "description": clean_text(data.get("description"), field="description", max_length=2000),
        "category": category or DEFAULT_REWARD_CATEGORY,
        "cost": _non_negative_int(data.get("cost", 0), "cost"),
        "stock": _non_negative_int(data.get("stock", 0), "stock"),
        "image_url": image_url or None,
    }


def prepare_reward_documents(docs: list[Any]) -> tuple[list[tuple[str, dict[str, Any]]], dict[str, int]]:
    """
    Validate exported documents without touching the database.

    Returns the importable ``(id, data)`` pairs and counts with ``normalized``
    and ``skipped`` filled in. Entries that are not objects, lack an ``id`` or
    fail validation are skipped.
    """
    counts = {"created": 0, "updated": 0, "normalized": 0, "skipped": 0}
    valid: list[tuple[str, dict[str, Any]]] = []
    for position, doc in enumerate(docs):
        reward_id = ""
        try:
            if not isinstance(doc, dict):
                raise ValidationError(f"expected an object, got {type(doc).__name__}", field=f"documents[{position}]")
            reward_id = str(doc.get("id") or "").strip()
            if not reward_id:
                raise ValidationError("missing id", field="id")
            data, changed = normalize_legacy_reward({k: v for k, v in doc.items() if k != "id"})
            clean_reward(data)
        except ValidationError as exc:
            logger.warning("reward_import_skipped", extra={"reward_id": reward_id, "error_message": str(exc)})
            counts["skipped"] += 1
            continue

        if changed:
            counts["normalized"] += 1
        valid.append((reward_id, data))
    return valid, counts


class RewardRepo:
    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Rewards
    # ------------------------------------------------------------------

    def get(self, reward_id: str, *, conn: sqlite3.Connection | None = None) -> dict[str, Any]:
        sql = "SELECT * FROM rewards WHERE id = ?"
        if conn is not None:
            row = conn.execute(sql, (reward_id,)).fetchone()
        else:
            with self.db.read() as c:
                row = c.execute(sql, (reward_id,)).fetchone()
        if row is None:
            raise RewardNotFoundError(reward_id)
        return dict(row)

    def create(self, data: dict[str, Any], *, reward_id: str | None = None) -> dict[str, Any]:
        reward = clean_reward(data)
        reward_id = reward_id or new_id()
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO rewards (id, name, description, category, cost, stock, image_url, created_at)
                VALUES (:id, :name, :description, :category, :cost, :stock, :image_url, :created_at)
                """,
                {**reward, "id": reward_id, "created_at": utcnow_iso()},
            )
        log_event("reward_created", reward_id=reward_id, cost=reward["cost"], stock=reward["stock"])
        return self.get(reward_id)

    def update(self, reward_id: str, data: dict[str, Any]) -> dict[str, Any]:
        reward = clean_reward(data)
        with self.db.transaction() as conn:
            cur = conn.execute(
                """
                UPDATE rewards
                SET name = :name, description = :description, category = :category,
                    cost = :cost, stock = :stock, image_url = :image_url, updated_at = :updated_at
                WHERE id = :id
                """,
                {**reward, "id": reward_id, "updated_at": utcnow_iso()},
            )
            if cur.rowcount == 0:
                raise RewardNotFoundError(reward_id)
        return self.get(reward_id)

    def upsert(self, reward_id: str, data: dict[str, Any]) -> bool:
        """Insert or replace a reward by id. Returns True when it was new."""
        reward = clean_reward(data)
        now = utcnow_iso()
        with self.db.transaction() as conn:
            exists = conn.execute("SELECT 1 FROM rewards WHERE id = ?", (reward_id,)).fetchone() is not None
            conn.execute(
                """
                INSERT INTO rewards (id, name, description, category, cost, stock, image_url, created_at)
                VALUES (:id, :name, :description, :category, :cost, :stock, :image_url, :now)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    description = excluded.description,
                    category = excluded.category,
                    cost = excluded.cost,
                    stock = excluded.stock,
                    image_url = excluded.image_url,
                    updated_at = :now
                """,
                {**reward, "id": reward_id, "now": now},
            )
        return not exists

    def import_documents(self, docs: list[Any], *, dry_run: bool = False) -> dict[str, int]:
        """
        Load exported reward documents, renaming legacy fields on the way.

        Returns counts of created, updated, normalized (had legacy fields) and
        skipped (invalid) documents. A dry run validates without touching the
        database.
        """
        valid, counts = prepare_reward_documents(docs)
        if not dry_run:
            for reward_id, data in valid:
                if self.upsert(reward_id, data):
                    counts["created"] += 1
                else:
                    counts["updated"] += 1

        log_event("rewards_imported", dry_run=dry_run, import_counts=counts)
        return counts

    def delete(self, reward_id: str) -> None:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM rewards WHERE id = ?", (reward_id,))
            if cur.rowcount == 0:
                raise RewardNotFoundError(reward_id)
        log_event("reward_deleted", reward_id=reward_id)

    def list_rewards(
        self,
        *,
        category: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> tuple[list[dict[str, Any]], bool]:
        """
        One page of rewards, newest first.

        Returns (items, has_more). ``category`` of None or ``"all"`` means
        no filter.
        """
        limit = limit or get_settings().rewards_page_size
        sql = "SELECT * FROM rewards"
        params: list[Any] = []
        if category and category != "all":
            sql += " WHERE category = ?"
            params.append(category)
        # Fetch one extra row to know whether another page exists
        sql += " ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?"
        params.extend([limit + 1, offset])
        with self.db.read() as conn:
            rows = [dict(r) for r in conn.execute(sql, params).fetchall()]
        return rows[:limit], len(rows) > limit

    def categories(self) -> list[str]:
        with self.db.read() as conn:
            rows = conn.execute("SELECT DISTINCT category FROM rewards ORDER BY category").fetchall()
        return [r["category"] for r in rows]

    # ------------------------------------------------------------------
    # Redemptions
    # ------------------------------------------------------------------

    def get_redemption(self, redemption_id: str, *, conn: sqlite3.Connection | None = None) -> dict[str, Any]:
        sql = "SELECT * FROM redemptions WHERE id = ?"
        if conn is not None:
            row = conn.execute(sql, (redemption_id,)).fetchone()
        else:
            with self.db.read() as c:
                row = c.execute(sql, (redemption_id,)).fetchone()
        if row is None:
            raise RedemptionNotFoundError(redemption_id)
        return dict(row)

    def list_for_user(self, user_id: str, *, limit: int = 100) -> list[dict[str, Any]]:
        with self.db.read() as conn:
            rows = conn.execute(
                "SELECT * FROM redemptions WHERE user_id = ? ORDER BY redeemed_at DESC, rowid DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [dict(r) for r in rows]

    def list_redemptions(self, *, status: str | None = None, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        if status is not None and status not in REDEMPTION_STATUSES:
            raise ValidationError(f"must be one of {', '.join(sorted(REDEMPTION_STATUSES))}", field="status")
        sql = """
            SELECT r.*, u.email AS user_email, u.username AS username
            FROM redemptions r
            LEFT JOIN users u ON u.id = r.user_id
        """
        params: list[Any] = []
        if status:
            sql += " WHERE r.status = ?"
            params.append(status)
        sql += " ORDER BY r.redeemed_at DESC, r.rowid DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        with self.db.read() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [dict(r) for r in rows]

    def redemption_stats(self) -> dict[str, Any]:
        with self.db.read() as conn:
            row = conn.execute(
                """
                SELECT
                    COUNT(*) AS total,
                    COALESCE(SUM(status = 'pending'), 0) AS pending,
                    COALESCE(SUM(status = 'claimed'), 0) AS claimed,
                    COALESCE(SUM(status = 'cancelled'), 0) AS cancelled,
                    COALESCE(SUM(CASE WHEN status = 'claimed' THEN cost END), 0) AS total_points_redeemed
                FROM redemptions
                """
            ).fetchone()
        stats = dict(row)
        stats["success_rate"] = success_rate(stats["claimed"], stats["cancelled"])
        return stats
