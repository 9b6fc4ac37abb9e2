"""
Rewards catalog and resident redemptions.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from ecosort.api.dependencies import current_user, enforce_rate_limit, get_state
from ecosort.api.models import RedemptionResponse, RewardPageResponse, RewardResponse
from ecosort.config import get_settings
from ecosort.security.validators import validate_document_id

router = APIRouter(prefix="/v1", tags=["rewards"])


@router.get("/rewards", response_model=RewardPageResponse)
def list_rewards(
    request: Request,
    category: str | None = Query(default=None, max_length=100),
    offset: int = Query(default=0, ge=0),
    limit: int | None = Query(default=None, ge=1, le=get_settings().max_page_size),
) -> dict:
    """Newest first, one page at a time. Use ``has_more`` to load the next page."""
    limit = limit or get_settings().rewards_page_size
    items, has_more = get_state(request).rewards.list_rewards(category=category, limit=limit, offset=offset)
    request.state.result_count = len(items)
    return {"items": items, "offset": offset, "limit": limit, "has_more": has_more}


@router.get("/rewards/categories", response_model=list[str])
def reward_categories(request: Request) -> list[str]:
    return get_state(request).rewards.categories()


@router.get("/rewards/{reward_id}", response_model=RewardResponse, responses={404: {"description": "Not found"}})
def get_reward(reward_id: str, request: Request) -> dict:
    return get_state(request).rewards.get(validate_document_id(reward_id, field="reward_id"))


@router.post(
    "/rewards/{reward_id}/redeem",
    status_code=201,
    response_model=RedemptionResponse,
    responses={
        404: {"description": "Reward not found"},
        409: {"description": "Insufficient points or out of stock"},
        429: {"description": "Rate limited"},
    },
)
def redeem_reward(reward_id: str, request: Request, response: Response) -> dict:
    user = current_user(request)
    enforce_rate_limit(request, user["id"])
    redemption = get_state(request).points.redeem_reward(user["id"], validate_document_id(reward_id, field="reward_id"))
    response.headers["Cache-Control"] = "no-store"
    return redemption


@router.get("/redemptions/mine", response_model=list[RedemptionResponse])
def my_redemptions(
    request: Request,
    response: Response,
    limit: int = Query(default=100, ge=1, le=get_settings().max_page_size),
) -> list[dict]:
    user = current_user(request)
    items = get_state(request).rewards.list_for_user(user["id"], limit=limit)
    request.state.result_count = len(items)
    response.headers["Cache-Control"] = "no-store"
    return items


@router.post(
    "/redemptions/{redemption_id}/cancel",
    response_model=RedemptionResponse,
    responses={403: {"description": "Not your redemption"}, 409: {"description": "Not pending"}},
)
def cancel_my_redemption(redemption_id: str, request: Request, response: Response) -> dict:
    user = current_user(request)
    redemption = get_state(request).points.cancel_redemption(
        validate_document_id(redemption_id, field="redemption_id"),
        user["id"],
    )
    response.headers["Cache-Control"] = "no-store"
    return redemption
