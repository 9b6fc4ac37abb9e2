"""
Community violation reports: feed, filing, likes and comments.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from ecosort.api.dependencies import current_user, enforce_rate_limit, get_state
from ecosort.api.models import (
    CommentCreateRequest,
    CommentResponse,
    LikeResponse,
    ReportConfigResponse,
    ReportCreateRequest,
    ReportResponse,
)
from ecosort.config import get_settings
from ecosort.security.validators import validate_document_id

router = APIRouter(prefix="/v1", tags=["reports"])


@router.get("/reports", response_model=list[ReportResponse])
def list_reports(
    request: Request,
    category: str | None = Query(default=None, max_length=64, description="Category id; 'all' for every category"),
    q: str = Query(default="", max_length=200, description="Search description and location"),
    limit: int = Query(default=50, ge=1, le=get_settings().max_page_size),
    offset: int = Query(default=0, ge=0),
) -> list[dict]:
    items = get_state(request).reports.list_reports(category=category, search=q, limit=limit, offset=offset)
    request.state.result_count = len(items)
    return items


@router.post(
    "/reports",
    status_code=201,
    response_model=ReportResponse,
    responses={400: {"description": "Unknown category or severity"}, 429: {"description": "Rate limited"}},
)
def create_report(payload: ReportCreateRequest, request: Request, response: Response) -> dict:
    user = current_user(request)
    enforce_rate_limit(request, user["id"])
    report = get_state(request).reports.create(user, payload.model_dump())
    response.headers["Cache-Control"] = "no-store"
    return report


@router.post("/reports/{report_id}/like", response_model=LikeResponse)
def toggle_like(report_id: str, request: Request, response: Response) -> dict:
    user = current_user(request)
    result = get_state(request).reports.toggle_like(validate_document_id(report_id, field="report_id"), user["id"])
    response.headers["Cache-Control"] = "no-store"
    return result


@router.post(
    "/reports/{report_id}/comments",
    status_code=201,
    response_model=CommentResponse,
    responses={429: {"description": "Rate limited"}},
)
def add_comment(report_id: str, payload: CommentCreateRequest, request: Request, response: Response) -> dict:
    user = current_user(request)
    enforce_rate_limit(request, user["id"])
    comment = get_state(request).reports.add_comment(
        validate_document_id(report_id, field="report_id"),
        user,
        payload.text,
    )
    response.headers["Cache-Control"] = "no-store"
    return comment


@router.get("/report-config", response_model=ReportConfigResponse)
def report_config(request: Request) -> dict:
    """Categories for the form, the feed filter and the admin editor, plus severity levels."""
    return get_state(request).report_config.snapshot()
