"""
Notification inbox routes.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, Request, Response

from ecosort.api.dependencies import current_user, get_state
from ecosort.api.models import NotificationListResponse
from ecosort.config import get_settings
from ecosort.security.validators import validate_document_id

router = APIRouter(prefix="/v1/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    request: Request,
    response: Response,
    unread_only: bool = Query(default=False),
) -> dict:
    user = current_user(request)
    repo = get_state(request).notifications
    items = repo.list_for_user(user["id"], unread_only=unread_only, limit=get_settings().notifications_limit)
    response.headers["Cache-Control"] = "no-store"
    return {"items": items, "unread_count": repo.unread_count(user["id"])}


@router.post("/read-all")
def mark_all_read(request: Request, response: Response) -> dict:
    user = current_user(request)
    updated = get_state(request).notifications.mark_all_read(user["id"])
    response.headers["Cache-Control"] = "no-store"
    return {"updated": updated}


@router.post("/{notification_id}/read", responses={404: {"description": "Not found"}})
def mark_read(notification_id: str, request: Request, response: Response) -> dict:
    user = current_user(request)
    notification_id = validate_document_id(notification_id, field="notification_id")
    get_state(request).notifications.mark_read(user["id"], notification_id)
    response.headers["Cache-Control"] = "no-store"
    return {"id": notification_id, "read": True}
