"""
Pure domain rules: point estimates, achievement milestones, profile badges
and collection-schedule date matching.

Nothing here touches the database.
"""

from __future__ import annotations

import math
import secrets
import string
from datetime import date, datetime
from typing import Any

from ecosort.config import FREQUENCIES, WEEKDAYS

REDEMPTION_CODE_ALPHABET = string.ascii_uppercase + string.digits

ACHIEVEMENTS = (
    {"name": "First Steps", "icon": "🌱", "description": "Earned your first 100 points", "required_points": 100},
    {"name": "Eco Advocate", "icon": "🌿", "description": "Reached 500 points milestone", "required_points": 500},
    {"name": "Eco Hero", "icon": "🏆", "description": "Achieved 1000 points", "required_points": 1000},
    {"name": "Green Champion", "icon": "👑", "description": "Outstanding 2000+ points", "required_points": 2000},
)

# Highest threshold first
BADGES = (
    (2000, "Green Champion", "👑"),
    (1000, "Eco Hero", "🏆"),
    (500, "Eco Advocate", "🌿"),
    (100, "Eco Starter", "♻️"),
    (0, "Newbie", "👤"),
)


def _as_float(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def calculate_points(weight: Any, points_per_kilo: Any) -> int:
    """
    Estimate the points a submission would earn.

    Non-positive or non-numeric weights give 0. The estimate is rounded to
    the nearest integer; the awarded amount is computed again at
    confirmation time.
    """
    kilos = _as_float(weight)
    rate = _as_float(points_per_kilo)
    if kilos is None or kilos <= 0 or rate is None or rate <= 0:
        return 0
    return int(round(kilos * rate))


def awarded_points(weight: float, points_per_kilo: float) -> float:
    """Points credited on confirmation, to two decimals."""
    return round(float(weight) * float(points_per_kilo), 2)


def generate_redemption_code(length: int = 8) -> str:
    """Uppercase alphanumeric code from a cryptographic RNG."""
    if length <= 0:
        raise ValueError("length must be positive")
    return "".join(secrets.choice(REDEMPTION_CODE_ALPHABET) for _ in range(length))


def achievements_for(points: float) -> list[dict[str, Any]]:
    return [
        {
            **milestone,
            "unlocked": points >= milestone["required_points"],
            "points_to_unlock": max(0, math.ceil(milestone["required_points"] - points)),
        }
        for milestone in ACHIEVEMENTS
    ]


def badge_for(points: float) -> dict[str, Any]:
    """Profile badge plus progress toward the next milestone."""
    for threshold, name, icon in BADGES:
        if points >= threshold:
            break

    next_level = next((m["required_points"] for m in ACHIEVEMENTS if points < m["required_points"]), None)
    if next_level is None:
        progress = 100.0
    else:
        previous = max((m["required_points"] for m in ACHIEVEMENTS if m["required_points"] <= points), default=0)
        progress = round((points - previous) / (next_level - previous) * 100, 1)

    return {"name": name, "icon": icon, "next_level": next_level, "progress": progress}


def success_rate(succeeded: int, failed: int) -> float:
    """Percentage of decided items that succeeded; 0 when nothing was decided."""
    decided = succeeded + failed
    if decided == 0:
        return 0.0
    return round(succeeded / decided * 100, 1)


# =============================================================================
# Collection schedules
# =============================================================================


def weekday_name(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def _anchor_date(anchor: date | datetime | str) -> date:
    if isinstance(anchor, datetime):
        return anchor.date()
    if isinstance(anchor, date):
        return anchor
    return datetime.fromisoformat(anchor).date()


def is_collection_day(schedule: dict[str, Any], day: date) -> bool:
    """
    Whether an active schedule fires on ``day``.

    Weekly schedules fire on every matching weekday. Biweekly schedules fire
    when the number of whole weeks between the anchor week (the schedule's
    creation date) and ``day`` is even. Monthly schedules fire on the first
    matching weekday of the month.
    """
    if not schedule.get("is_active", True):
        return False
    if str(schedule.get("day", "")).lower() != weekday_name(day):
        return False

    frequency = schedule.get("frequency", "weekly")
    if frequency not in FREQUENCIES:
        return False

    if frequency == "biweekly":
        anchor = _anchor_date(schedule.get("created_at") or day)
        # Compare Mondays so the anchor's own weekday does not matter
        anchor_monday = date.fromordinal(anchor.toordinal() - anchor.weekday())
        day_monday = date.fromordinal(day.toordinal() - day.weekday())
        weeks = (day_monday - anchor_monday).days // 7
        return weeks % 2 == 0

    if frequency == "monthly":
        return day.day <= 7

    return True


# =============================================================================
# Violation reports
# =============================================================================

# Spellings found on older report documents
_LEGACY_REPORT_STATUSES = {
    "in review": "in_progress",
    "in-review": "in_progress",
    "in_review": "in_progress",
    "in progress": "in_progress",
    "in-progress": "in_progress",
}


def normalize_report_status(status: Any) -> str:
    """Lowercase a stored status, mapping legacy spellings; missing means pending."""
    if not isinstance(status, str) or not status.strip():
        return "pending"
    value = status.strip().lower()
    return _LEGACY_REPORT_STATUSES.get(value, value)


def report_status_spellings(status: str) -> list[str]:
    """Lowercased stored values that read back as ``status``; blank counts as pending."""
    spellings = [status] + sorted(raw for raw, value in _LEGACY_REPORT_STATUSES.items() if value == status)
    if status == "pending":
        spellings.append("")
    return spellings
