"""
Admin routes. Every handler requires the caller's stored role to be ``admin``.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from ecosort.api.dependencies import get_state, require_admin
from ecosort.api.models import (
    AwardPointsRequest,
    AwardPointsResponse,
    RedemptionResponse,
    RedemptionStatsResponse,
    RejectSubmissionRequest,
    ReportConfigRequest,
    ReportConfigResponse,
    ReportNotesRequest,
    ReportResponse,
    ReportStatusRequest,
    RewardRequest,
    RewardResponse,
    RoleChangeRequest,
    ScheduleRequest,
    ScheduleResponse,
    SubmissionResponse,
    SubmissionStatsResponse,
    TransactionResponse,
    UserResponse,
    WasteTypeRequest,
    WasteTypeResponse,
)
from ecosort.config import get_settings
from ecosort.security.validators import validate_document_id

router = APIRouter(
    prefix="/v1/admin",
    tags=["admin"],
    responses={401: {"description": "X-User-ID header required"}, 403: {"description": "Admin access required"}},
)


def _no_store(response: Response) -> None:
    response.headers["Cache-Control"] = "no-store"


# =============================================================================
# Users and points
# =============================================================================


@router.get("/users", response_model=list[UserResponse])
def list_users(
    request: Request,
    response: Response,
    search: str = Query(default="", max_length=200),
    role: str | None = Query(default=None, pattern="^(resident|admin)$"),
    sort: str = Query(default="rank", pattern="^(rank|points|email)$"),
    order: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=get_settings().max_page_size),
    offset: int = Query(default=0, ge=0),
) -> list[dict]:
    require_admin(request)
    items = get_state(request).users.list_users(
        search=search, role=role, sort=sort, order=order, limit=limit, offset=offset
    )
    request.state.result_count = len(items)
    _no_store(response)
    return items


@router.put("/users/{user_id}/role", response_model=UserResponse)
def change_role(user_id: str, payload: RoleChangeRequest, request: Request, response: Response) -> dict:
    require_admin(request)
    _no_store(response)
    return get_state(request).users.set_role(validate_document_id(user_id, field="user_id"), payload.role)


@router.post("/users/{user_id}/points", response_model=AwardPointsResponse)
def award_points(user_id: str, payload: AwardPointsRequest, request: Request, response: Response) -> dict:
    admin = require_admin(request)
    _no_store(response)
    return get_state(request).points.award_points(
        validate_document_id(user_id, field="user_id"),
        payload.amount,
        payload.reason,
        admin["id"],
    )


@router.get("/transactions", response_model=list[TransactionResponse])
def list_transactions(
    request: Request,
    response: Response,
    kind: str = Query(default="all", pattern="^(all|awarded|redeemed)$"),
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=100, ge=1, le=get_settings().max_page_size),
    offset: int = Query(default=0, ge=0),
) -> list[dict]:
    require_admin(request)
    items = get_state(request).ledger.list_all(kind=kind, order=order, limit=limit, offset=offset)
    request.state.result_count = len(items)
    _no_store(response)
    return items


# =============================================================================
# Submissions and waste types
# =============================================================================


@router.get("/submissions", response_model=list[SubmissionResponse])
def list_submissions(
    request: Request,
    response: Response,
    status: str | None = Query(default=None, pattern="^(pending|confirmed|rejected)$"),
    limit: int = Query(default=100, ge=1, le=get_settings().max_page_size),
    offset: int = Query(default=0, ge=0),
) -> list[dict]:
    require_admin(request)
    items = get_state(request).waste.list_submissions(status=status, limit=limit, offset=offset)
    request.state.result_count = len(items)
    _no_store(response)
    return items


@router.get("/submissions/stats", response_model=SubmissionStatsResponse)
def submission_stats(request: Request, response: Response) -> dict:
    require_admin(request)
    _no_store(response)
    return get_state(request).waste.stats()


@router.post(
    "/submissions/{submission_id}/confirm",
    response_model=SubmissionResponse,
    responses={404: {"description": "Not found"}, 409: {"description": "Not pending"}},
)
def confirm_submission(submission_id: str, request: Request, response: Response) -> dict:
    admin = require_admin(request)
    _no_store(response)
    return get_state(request).points.confirm_submission(
        validate_document_id(submission_id, field="submission_id"), admin["id"]
    )


@router.post(
    "/submissions/{submission_id}/reject",
    response_model=SubmissionResponse,
    responses={404: {"description": "Not found"}, 409: {"description": "Not pending"}},
)
def reject_submission(
    submission_id: str,
    request: Request,
    response: Response,
    payload: RejectSubmissionRequest | None = None,
) -> dict:
    admin = require_admin(request)
    _no_store(response)
    return get_state(request).points.reject_submission(
        validate_document_id(submission_id, field="submission_id"),
        admin["id"],
        payload.reason if payload else None,
    )


@router.post("/waste-types", status_code=201, response_model=WasteTypeResponse)
def add_waste_type(payload: WasteTypeRequest, request: Request) -> dict:
    require_admin(request)
    return get_state(request).waste.add_type(payload.name, payload.points_per_kilo)


@router.put("/waste-types/{type_id}", response_model=WasteTypeResponse)
def update_waste_type(type_id: str, payload: WasteTypeRequest, request: Request) -> dict:
    require_admin(request)
    return get_state(request).waste.update_type(
        validate_document_id(type_id, field="type_id"), payload.name, payload.points_per_kilo
    )


@router.delete("/waste-types/{type_id}", status_code=204)
def delete_waste_type(type_id: str, request: Request) -> Response:
    require_admin(request)
    get_state(request).waste.delete_type(validate_document_id(type_id, field="type_id"))
    return Response(status_code=204)


# =============================================================================
# Rewards and redemptions
# =============================================================================


@router.post("/rewards", status_code=201, response_model=RewardResponse)
def create_reward(payload: RewardRequest, request: Request) -> dict:
    require_admin(request)
    return get_state(request).rewards.create(payload.model_dump())


@router.put("/rewards/{reward_id}", response_model=RewardResponse)
def update_reward(reward_id: str, payload: RewardRequest, request: Request) -> dict:
    require_admin(request)
    return get_state(request).rewards.update(validate_document_id(reward_id, field="reward_id"), payload.model_dump())


@router.delete("/rewards/{reward_id}", status_code=204)
def delete_reward(reward_id: str, request: Request) -> Response:
    require_admin(request)
    get_state(request).rewards.delete(validate_document_id(reward_id, field="reward_id"))
    return Response(status_code=204)


@router.get("/redemptions", response_model=list[RedemptionResponse])
def list_redemptions(
    request: Request,
    response: Response,
    status: str | None = Query(default=None, pattern="^(pending|claimed|cancelled)$"),
    limit: int = Query(default=100, ge=1, le=get_settings().max_page_size),
    offset: int = Query(default=0, ge=0),
) -> list[dict]:
    require_admin(request)
    items = get_state(request).rewards.list_redemptions(status=status, limit=limit, offset=offset)
    request.state.result_count = len(items)
    _no_store(response)
    return items


@router.get("/redemptions/stats", response_model=RedemptionStatsResponse)
def redemption_stats(request: Request, response: Response) -> dict:
    require_admin(request)
    _no_store(response)
    return get_state(request).rewards.redemption_stats()


@router.post("/redemptions/{redemption_id}/claim", response_model=RedemptionResponse)
def claim_redemption(redemption_id: str, request: Request, response: Response) -> dict:
    admin = require_admin(request)
    _no_store(response)
    return get_state(request).points.claim_redemption(
        validate_document_id(redemption_id, field="redemption_id"), admin["id"]
    )


@router.post("/redemptions/{redemption_id}/cancel", response_model=RedemptionResponse)
def cancel_redemption(redemption_id: str, request: Request, response: Response) -> dict:
    admin = require_admin(request)
    _no_store(response)
    return get_state(request).points.cancel_redemption(
        validate_document_id(redemption_id, field="redemption_id"), admin["id"], as_admin=True
    )


# =============================================================================
# Reports
# =============================================================================


@router.get("/reports", response_model=list[ReportResponse])
def list_reports(
    request: Request,
    status: str | None = Query(default=None, pattern="^(pending|in_progress|resolved|rejected)$"),
    q: str = Query(default="", max_length=200),
    limit: int = Query(default=100, ge=1, le=get_settings().max_page_size),
    offset: int = Query(default=0, ge=0),
) -> list[dict]:
    require_admin(request)
    items = get_state(request).reports.list_reports(status=status, search=q, limit=limit, offset=offset)
    request.state.result_count = len(items)
    return items


@router.get("/reports/status-counts")
def report_status_counts(request: Request) -> dict[str, int]:
    require_admin(request)
    return get_state(request).reports.status_counts()


@router.put("/reports/{report_id}/status", response_model=ReportResponse)
def update_report_status(report_id: str, payload: ReportStatusRequest, request: Request) -> dict:
    require_admin(request)
    return get_state(request).reports.update_status(validate_document_id(report_id, field="report_id"), payload.status)


@router.put("/reports/{report_id}/notes", response_model=ReportResponse)
def update_report_notes(report_id: str, payload: ReportNotesRequest, request: Request) -> dict:
    require_admin(request)
    return get_state(request).reports.update_notes(
        validate_document_id(report_id, field="report_id"), payload.admin_notes
    )


@router.delete("/reports/{report_id}", status_code=204)
def delete_report(report_id: str, request: Request) -> Response:
    require_admin(request)
    get_state(request).reports.delete(validate_document_id(report_id, field="report_id"))
    return Response(status_code=204)


@router.put("/report-config", response_model=ReportConfigResponse)
def save_report_config(payload: ReportConfigRequest, request: Request) -> dict:
    require_admin(request)
    return get_state(request).report_config.save(
        categories=[c.model_dump() for c in payload.categories] if payload.categories is not None else None,
        severity_levels=(
            [s.model_dump() for s in payload.severity_levels] if payload.severity_levels is not None else None
        ),
    )


# =============================================================================
# Collection schedules
# =============================================================================


@router.get("/schedules", response_model=list[ScheduleResponse])
def list_all_schedules(request: Request) -> list[dict]:
    require_admin(request)
    return get_state(request).schedules.list_schedules()


@router.post("/schedules", status_code=201, response_model=ScheduleResponse)
def create_schedule(payload: ScheduleRequest, request: Request) -> dict:
    require_admin(request)
    return get_state(request).schedules.create(payload.model_dump())


@router.put("/schedules/{schedule_id}", response_model=ScheduleResponse)
def update_schedule(schedule_id: str, payload: ScheduleRequest, request: Request) -> dict:
    require_admin(request)
    return get_state(request).schedules.update(validate_document_id(schedule_id, field="schedule_id"), payload.model_dump())


@router.post("/schedules/{schedule_id}/toggle", response_model=ScheduleResponse)
def toggle_schedule(schedule_id: str, request: Request) -> dict:
    require_admin(request)
    return get_state(request).schedules.toggle_active(validate_document_id(schedule_id, field="schedule_id"))


@router.delete("/schedules/{schedule_id}", status_code=204)
def delete_schedule(schedule_id: str, request: Request) -> Response:
    require_admin(request)
    get_state(request).schedules.delete(validate_document_id(schedule_id, field="schedule_id"))
    return Response(status_code=204)
