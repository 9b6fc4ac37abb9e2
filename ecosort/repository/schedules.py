"""Waste collection schedules."""

from __future__ import annotations

import json
import sqlite3
from datetime import date
from typing import Any

from ecosort.config import FREQUENCIES, WEEKDAYS
from ecosort.db import Database, new_id, utcnow_iso
from ecosort.domain import is_collection_day, weekday_name
from ecosort.exceptions import ScheduleNotFoundError, ValidationError
from ecosort.logging_config import get_logger, log_event
from ecosort.security.validators import clean_text, validate_time_of_day

logger = get_logger(__name__)


def clean_schedule(data: dict[str, Any]) -> dict[str, Any]:
    day = clean_text(data.get("day"), field="day", max_length=16).lower()
    if day not in WEEKDAYS:
        raise ValidationError(f"must be one of {', '.join(WEEKDAYS)}", field="day")

    start_time = validate_time_of_day(data.get("start_time"), field="start_time")
    end_time = validate_time_of_day(data.get("end_time"), field="end_time")
    # Zero-padded HH:MM compares correctly as text
    if end_time <= start_time:
        raise ValidationError("must be after start_time", field="end_time")

    frequency = str(data.get("frequency") or "weekly").strip().lower()
    if frequency not in FREQUENCIES:
        raise ValidationError(f"must be one of {', '.join(sorted(FREQUENCIES))}", field="frequency")

    waste_types = data.get("waste_types") or []
    if not isinstance(waste_types, list):
        raise ValidationError("must be a list", field="waste_types")

    return {
        "area": clean_text(data.get("area"), field="area", max_length=200),
        "barangay": clean_text(data.get("barangay"), field="barangay", max_length=200, required=False),
        "day": day,
        "start_time": start_time,
        "end_time": end_time,
        "frequency": frequency,
        "waste_types_json": json.dumps(
            [clean_text(w, field="waste_types", max_length=100) for w in waste_types],
            ensure_ascii=False,
        ),
        "notes": clean_text(data.get("notes"), field="notes", max_length=2000, required=False),
        "is_active": int(bool(data.get("is_active", True))),
    }


def _row_to_schedule(row: sqlite3.Row) -> dict[str, Any]:
    data = dict(row)
    data["waste_types"] = json.loads(data.pop("waste_types_json") or "[]")
    data["is_active"] = bool(data["is_active"])
    return data


class ScheduleRepo:
    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, schedule_id: str) -> dict[str, Any]:
        with self.db.read() as conn:
            row = conn.execute("SELECT * FROM collection_schedules WHERE id = ?", (schedule_id,)).fetchone()
        if row is None:
            raise ScheduleNotFoundError(schedule_id)
        return _row_to_schedule(row)

    def list_schedules(self, *, active_only: bool = False) -> list[dict[str, Any]]:
        sql = "SELECT * FROM collection_schedules"
        if active_only:
            sql += " WHERE is_active = 1"
        sql += " ORDER BY area COLLATE NOCASE, rowid"
        with self.db.read() as conn:
            rows = conn.execute(sql).fetchall()
        return [_row_to_schedule(r) for r in rows]

    def create(self, data: dict[str, Any]) -> dict[str, Any]:
        schedule = clean_schedule(data)
        schedule_id = new_id()
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO collection_schedules (
                    id, area, barangay, day, start_time, end_time, frequency,
                    waste_types_json, notes, is_active, created_at
                ) VALUES (
                    :id, :area, :barangay, :day, :start_time, :end_time, :frequency,
                    :waste_types_json, :notes, :is_active, :created_at
                )
                """,
                {**schedule, "id": schedule_id, "created_at": utcnow_iso()},
            )
        log_event("schedule_created", schedule_id=schedule_id, area=schedule["area"], frequency=schedule["frequency"])
        return self.get(schedule_id)

    def update(self, schedule_id: str, data: dict[str, Any]) -> dict[str, Any]:
        schedule = clean_schedule(data)
        with self.db.transaction() as conn:
            cur = conn.execute(
                """
                UPDATE collection_schedules
                SET area = :area, barangay = :barangay, day = :day, start_time = :start_time,
                    end_time = :end_time, frequency = :frequency, waste_types_json = :waste_types_json,
                    notes = :notes, is_active = :is_active, updated_at = :updated_at
                WHERE id = :id
                """,
                {**schedule, "id": schedule_id, "updated_at": utcnow_iso()},
            )
            if cur.rowcount == 0:
                raise ScheduleNotFoundError(schedule_id)
        return self.get(schedule_id)

    def toggle_active(self, schedule_id: str) -> dict[str, Any]:
        with self.db.transaction() as conn:
            cur = conn.execute(
                "UPDATE collection_schedules SET is_active = 1 - is_active, updated_at = ? WHERE id = ?",
                (utcnow_iso(), schedule_id),
            )
            if cur.rowcount == 0:
                raise ScheduleNotFoundError(schedule_id)
        schedule = self.get(schedule_id)
        log_event("schedule_toggled", schedule_id=schedule_id, is_active=schedule["is_active"])
        return schedule

    def delete(self, schedule_id: str) -> None:
        with self.db.transaction() as conn:
            cur = conn.execute("DELETE FROM collection_schedules WHERE id = ?", (schedule_id,))
            if cur.rowcount == 0:
                raise ScheduleNotFoundError(schedule_id)
        log_event("schedule_deleted", schedule_id=schedule_id)

    def schedules_for_date(self, day: date) -> list[dict[str, Any]]:
        """Active schedules that collect on ``day``."""
        with self.db.read() as conn:
            rows = conn.execute(
                "SELECT * FROM collection_schedules WHERE is_active = 1 AND day = ? ORDER BY start_time, area",
                (weekday_name(day),),
            ).fetchall()
        return [s for s in (_row_to_schedule(r) for r in rows) if is_collection_day(s, day)]
