"""
Points workflow: confirming submissions and redeeming rewards.

Each public method is one unit of work. The balance, the ledger entry, the
status change and the user notification are written in a single
``BEGIN IMMEDIATE`` transaction, so either all of them land or none do and
two concurrent redemptions cannot both take the last unit of stock.
"""

from __future__ import annotations

import sqlite3
from typing import Any

from ecosort.config import get_settings
from ecosort.db import Database, new_id, utcnow_iso
from ecosort.domain import awarded_points, calculate_points, generate_redemption_code
from ecosort.exceptions import (
    DatabaseError,
    InvalidStateError,
    OutOfStockError,
    PermissionDeniedError,
    ValidationError,
)
from ecosort.logging_config import PerformanceTracker, get_logger, log_event
from ecosort.repository.ledger import LedgerRepo
from ecosort.repository.notifications import NotificationRepo
from ecosort.repository.rewards import RewardRepo
from ecosort.repository.users import UserRepo
from ecosort.repository.waste import WasteRepo
from ecosort.security.validators import clean_text

logger = get_logger(__name__)

__all__ = ["PointsService", "calculate_points", "generate_redemption_code"]

CONFIRMED_MESSAGE = "Your waste submission has been confirmed! You earned {points:.2f} points."
REJECTED_MESSAGE = "Your waste submission has been rejected. Please review the guidelines and try again."

# Attempts at drawing a redemption code that is not already taken
_CODE_ATTEMPTS = 5


class PointsService:
    def __init__(self, db: Database) -> None:
        self.db = db
        self.users = UserRepo(db)
        self.waste = WasteRepo(db)
        self.rewards = RewardRepo(db)
        self.ledger = LedgerRepo(db)
        self.notifications = NotificationRepo(db)

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def confirm_submission(self, submission_id: str, admin_id: str) -> dict[str, Any]:
        """
        Confirm a pending submission and credit its owner.

        Points are ``weight * points_per_kilo`` using the waste type's rate at
        confirmation time (0 if the type has since been deleted), rounded to
        two decimals.
        """
        with PerformanceTracker("confirm_submission", submission_id=submission_id):
            with self.db.transaction() as conn:
                submission = self.waste.get_submission(submission_id, conn=conn)
                if submission["status"] != "pending":
                    raise InvalidStateError("submission", current=submission["status"])

                waste_type = self.waste.find_type_by_name(submission["type"], conn=conn)
                rate = waste_type["points_per_kilo"] if waste_type else 0
                points = awarded_points(submission["weight"], rate)

                user_id = submission["user_id"]
                balance = self.users.adjust_points(conn, user_id, points)
                self.ledger.append(
                    user_id,
                    points,
                    "points_awarded",
                    f"Awarded points for waste submission (ID: {submission_id})",
                    reference_id=submission_id,
                    conn=conn,
                )
                conn.execute(
                    """
                    UPDATE waste_submissions
                    SET status = 'confirmed', confirmed_at = ?, confirmed_by = ?, awarded_points = ?
                    WHERE id = ?
                    """,
                    (utcnow_iso(), admin_id, points, submission_id),
                )
                self.notifications.add(
                    user_id,
                    CONFIRMED_MESSAGE.format(points=points),
                    type="submission_confirmed",
                    conn=conn,
                )
                result = self.waste.get_submission(submission_id, conn=conn)

        log_event(
            "submission_confirmed",
            submission_id=submission_id,
            user_id=user_id,
            admin_id=admin_id,
            awarded_points=points,
            new_balance=balance,
        )
        return result

    def reject_submission(self, submission_id: str, admin_id: str, reason: str | None = None) -> dict[str, Any]:
        reason = clean_text(reason, field="reason", max_length=500, required=False) or None
        with self.db.transaction() as conn:
            submission = self.waste.get_submission(submission_id, conn=conn)
            if submission["status"] != "pending":
                raise InvalidStateError("submission", current=submission["status"])

            conn.execute(
                """
                UPDATE waste_submissions
                SET status = 'rejected', rejected_at = ?, rejected_by = ?, rejection_reason = ?
                WHERE id = ?
                """,
                (utcnow_iso(), admin_id, reason, submission_id),
            )
            message = REJECTED_MESSAGE if reason is None else f"{REJECTED_MESSAGE} Reason: {reason}"
            self.notifications.add(submission["user_id"], message, type="submission_rejected", conn=conn)
            result = self.waste.get_submission(submission_id, conn=conn)

        log_event("submission_rejected", submission_id=submission_id, admin_id=admin_id, has_reason=reason is not None)
        return result

    # ------------------------------------------------------------------
    # Redemptions
    # ------------------------------------------------------------------

    def _insert_redemption(self, conn: sqlite3.Connection, row: dict[str, Any]) -> str:
        """Insert a redemption, redrawing the code on the rare collision."""
        length = get_settings().redemption_code_length
        for _ in range(_CODE_ATTEMPTS):
            code = generate_redemption_code(length)
            try:
                conn.execute(
                    """
                    INSERT INTO redemptions (id, user_id, reward_id, reward_name, cost, status, redemption_code, redeemed_at)
                    VALUES (:id, :user_id, :reward_id, :reward_name, :cost, 'pending', :code, :redeemed_at)
                    """,
                    {**row, "code": code},
                )
            except sqlite3.IntegrityError:
                logger.warning("redemption_code_collision", extra={"redemption_id": row["id"]})
                continue
            return code
        raise DatabaseError("Could not allocate a unique redemption code", operation="insert", table="redemptions")

    def redeem_reward(self, user_id: str, reward_id: str) -> dict[str, Any]:
        """
        Exchange points for one unit of a reward.

        Raises:
            InsufficientPointsError: balance is below the reward cost
            OutOfStockError: no stock left
        """
        with PerformanceTracker("redeem_reward", reward_id=reward_id):
            with self.db.transaction() as conn:
                self.users.require(user_id, conn=conn)
                reward = self.rewards.get(reward_id, conn=conn)
                cost = int(reward["cost"])

                balance = self.users.adjust_points(conn, user_id, -cost)
                if int(reward["stock"]) - 1 < 0:
                    raise OutOfStockError(reward_id)
                conn.execute(
                    "UPDATE rewards SET stock = stock - 1, updated_at = ? WHERE id = ?",
                    (utcnow_iso(), reward_id),
                )

                redemption_id = new_id()
                code = self._insert_redemption(
                    conn,
                    {
                        "id": redemption_id,
                        "user_id": user_id,
                        "reward_id": reward_id,
                        "reward_name": reward["name"],
                        "cost": cost,
                        "redeemed_at": utcnow_iso(),
                    },
                )
                self.ledger.append(
                    user_id,
                    -cost,
                    "points_redeemed",
                    f"Redeemed reward: {reward['name']} (Code: {code})",
                    reference_id=redemption_id,
                    conn=conn,
                )
                result = self.rewards.get_redemption(redemption_id, conn=conn)

        log_event(
            "reward_redeemed",
            redemption_id=redemption_id,
            reward_id=reward_id,
            user_id=user_id,
            cost=cost,
            code=code,
            new_balance=balance,
        )
        return result

    def cancel_redemption(self, redemption_id: str, actor_id: str, *, as_admin: bool = False) -> dict[str, Any]:
        """
        Cancel a pending redemption, refunding its cost and restoring stock.

        Residents may only cancel their own redemptions.
        """
        with self.db.transaction() as conn:
            redemption = self.rewards.get_redemption(redemption_id, conn=conn)
            if not as_admin and redemption["user_id"] != actor_id:
                raise PermissionDeniedError("You can only cancel your own redemptions")
            if redemption["status"] != "pending":
                raise InvalidStateError("redemption", current=redemption["status"])

            cost = int(redemption["cost"])
            owner_id = redemption["user_id"]
            balance = self.users.adjust_points(conn, owner_id, cost)
            # The reward may have been deleted since
            conn.execute(
                "UPDATE rewards SET stock = stock + 1, updated_at = ? WHERE id = ?",
                (utcnow_iso(), redemption["reward_id"]),
            )
            conn.execute(
                "UPDATE redemptions SET status = 'cancelled', cancelled_at = ?, cancelled_by = ? WHERE id = ?",
                (utcnow_iso(), actor_id, redemption_id),
            )
            self.ledger.append(
                owner_id,
                cost,
                "points_refunded",
                f"Refund for cancelled redemption: {redemption['reward_name']} (Code: {redemption['redemption_code']})",
                reference_id=redemption_id,
                conn=conn,
            )
            result = self.rewards.get_redemption(redemption_id, conn=conn)

        log_event(
            "redemption_cancelled",
            redemption_id=redemption_id,
            user_id=owner_id,
            actor_id=actor_id,
            refunded=cost,
            new_balance=balance,
        )
        return result

    def claim_redemption(self, redemption_id: str, admin_id: str) -> dict[str, Any]:
        """Mark a pending redemption as handed over. Points were deducted at redemption time."""
        with self.db.transaction() as conn:
            redemption = self.rewards.get_redemption(redemption_id, conn=conn)
            if redemption["status"] != "pending":
                raise InvalidStateError("redemption", current=redemption["status"])
            conn.execute(
                "UPDATE redemptions SET status = 'claimed', claimed_at = ?, claimed_by = ? WHERE id = ?",
                (utcnow_iso(), admin_id, redemption_id),
            )
            result = self.rewards.get_redemption(redemption_id, conn=conn)

        log_event("redemption_claimed", redemption_id=redemption_id, admin_id=admin_id)
        return result

    # ------------------------------------------------------------------
    # Manual awards
    # ------------------------------------------------------------------

    def award_points(self, user_id: str, amount: Any, reason: Any, admin_id: str) -> dict[str, Any]:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("must be a positive whole number", field="amount")
        reason = clean_text(reason, field="reason", max_length=500)

        with self.db.transaction() as conn:
            balance = self.users.adjust_points(conn, user_id, amount)
            transaction_id = self.ledger.append(
                user_id,
                amount,
                "points_awarded",
                reason,
                conn=conn,
            )

        log_event("points_awarded", user_id=user_id, admin_id=admin_id, amount=amount, new_balance=balance)
        return {"user_id": user_id, "amount": amount, "total_points": balance, "transaction_id": transaction_id}
