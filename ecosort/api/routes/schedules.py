"""
Collection schedules (read-only for residents).
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Request

from ecosort.api.dependencies import get_state
from ecosort.api.models import ScheduleResponse

router = APIRouter(prefix="/v1/schedules", tags=["schedules"])


@router.get("", response_model=list[ScheduleResponse])
def list_schedules(request: Request) -> list[dict]:
    return get_state(request).schedules.list_schedules(active_only=True)


@router.get("/on/{day}", response_model=list[ScheduleResponse])
def schedules_on(day: date, request: Request) -> list[dict]:
    """Collections happening on ``day`` (YYYY-MM-DD)."""
    items = get_state(request).schedules.schedules_for_date(day)
    request.state.result_count = len(items)
    return items
