"""
Waste type catalog and resident submissions.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from ecosort.api.dependencies import current_user, enforce_rate_limit, get_state
from ecosort.api.models import EstimateResponse, SubmissionCreateRequest, SubmissionResponse, WasteTypeResponse
from ecosort.config import get_settings

router = APIRouter(prefix="/v1", tags=["waste"])


@router.get("/waste-types", response_model=list[WasteTypeResponse])
def list_waste_types(request: Request) -> list[dict]:
    return get_state(request).waste.list_types()


@router.get("/waste-types/estimate", response_model=EstimateResponse)
def estimate_points(
    request: Request,
    type: str = Query(..., min_length=1, max_length=100),
    weight: float = Query(...),
) -> dict:
    """Points a weigh-in would earn at the current rate (rounded)."""
    points = get_state(request).waste.estimate(type, weight)
    return {"type": type, "weight": weight, "points": points}


@router.post(
    "/submissions",
    status_code=201,
    response_model=SubmissionResponse,
    responses={429: {"description": "Rate limited"}},
)
def create_submission(payload: SubmissionCreateRequest, request: Request, response: Response) -> dict:
    user = current_user(request)
    enforce_rate_limit(request, user["id"])
    submission = get_state(request).waste.create_submission(user["id"], user.get("email"), payload.type, payload.weight)
    response.headers["Cache-Control"] = "no-store"
    return submission


@router.get("/submissions/mine", response_model=list[SubmissionResponse])
def my_submissions(
    request: Request,
    response: Response,
    limit: int = Query(default=100, ge=1, le=get_settings().max_page_size),
) -> list[dict]:
    user = current_user(request)
    items = get_state(request).waste.list_for_user(user["id"], limit=limit)
    request.state.result_count = len(items)
    response.headers["Cache-Control"] = "no-store"
    return items
