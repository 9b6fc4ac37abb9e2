"""
User routes: profile, points history, achievements and leaderboard.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from ecosort.api.dependencies import current_user, get_state
from ecosort.api.models import (
    AchievementResponse,
    LeaderboardResponse,
    ProfileUpdateRequest,
    TransactionResponse,
    UserResponse,
)
from ecosort.config import get_settings
from ecosort.domain import achievements_for, badge_for
from ecosort.security.validators import clean_text

router = APIRouter(prefix="/v1", tags=["users"])


def _profile(request: Request, user: dict) -> dict:
    state = get_state(request)
    return {**user, "rank": state.users.rank_of(user["id"]), "badge": badge_for(user["total_points"])}


@router.get("/users/me", response_model=UserResponse, responses={401: {"description": "X-User-ID header required"}})
def get_me(request: Request, response: Response) -> dict:
    user = current_user(request)
    response.headers["Cache-Control"] = "no-store"
    return _profile(request, user)


@router.patch("/users/me", response_model=UserResponse)
def update_me(payload: ProfileUpdateRequest, request: Request, response: Response) -> dict:
    user = current_user(request)
    state = get_state(request)
    updated = state.users.update_profile(
        user["id"],
        username=clean_text(payload.username, field="username", max_length=100) if payload.username is not None else None,
        email=clean_text(payload.email, field="email", max_length=254) if payload.email is not None else None,
        profile_picture=payload.profile_picture,
    )
    response.headers["Cache-Control"] = "no-store"
    return _profile(request, updated)


@router.get("/users/me/transactions", response_model=list[TransactionResponse])
def my_transactions(
    request: Request,
    response: Response,
    kind: str = Query(default="all", pattern="^(all|awarded|redeemed)$"),
    limit: int = Query(default=100, ge=1, le=get_settings().max_page_size),
) -> list[dict]:
    user = current_user(request)
    items = get_state(request).ledger.list_for_user(user["id"], kind=kind, limit=limit)
    request.state.result_count = len(items)
    response.headers["Cache-Control"] = "no-store"
    return items


@router.get("/users/me/achievements", response_model=list[AchievementResponse])
def my_achievements(request: Request, response: Response) -> list[dict]:
    user = current_user(request)
    response.headers["Cache-Control"] = "no-store"
    return achievements_for(user["total_points"])


@router.get("/leaderboard", response_model=LeaderboardResponse)
def leaderboard(
    request: Request,
    response: Response,
    limit: int | None = Query(default=None, ge=1, le=get_settings().max_page_size),
) -> dict:
    """Top users by points. ``my_rank`` is filled when the caller is identified."""
    state = get_state(request)
    items = state.users.leaderboard(limit or get_settings().leaderboard_size)
    my_rank = 0
    caller = (request.headers.get("x-user-id") or "").strip()
    if caller:
        my_rank = state.users.rank_of(caller)
    response.headers["Cache-Control"] = "no-store"
    return {"items": items, "my_rank": my_rank}
