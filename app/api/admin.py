from __future__ import annotations

import json
import math
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_actor
from app.core.errors import NotFoundError, ValidationError
from app.models import ActivityLogEntry
from app.schemas.admin import (
    ActivityLogItem,
    ActivityLogListResponse,
    MarkAllReadRequest,
    NotificationItem,
    NotificationListResponse,
    SettingResponse,
    SettingUpdate,
)
from app.schemas.common import MessageResponse, Pagination
from app.services import activity_log, notifications, settings_store
from app.services.activity_log import Actor
from database import get_db

router = APIRouter()


def _details(raw: str | None):
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def _log_item(entry: ActivityLogEntry) -> ActivityLogItem:
    return ActivityLogItem(
        id=entry.id,
        actor_id=entry.actor_id,
        actor_name=entry.actor_name,
        action=entry.action,
        entity_type=entry.entity_type,
        entity_id=entry.entity_id,
        details=_details(entry.details),
        created_at=entry.created_at,
    )


@router.get("/settings", response_model=List[SettingResponse])
def list_settings(db: Session = Depends(get_db)) -> List[SettingResponse]:
    return [SettingResponse.model_validate(row) for row in settings_store.list_settings(db)]


@router.get("/settings/{key}", response_model=SettingResponse)
def get_setting(key: str, db: Session = Depends(get_db)) -> SettingResponse:
    return SettingResponse.model_validate(settings_store.get_setting(db, key))


@router.put("/settings/{key}", response_model=SettingResponse)
def update_setting(
    key: str,
    payload: SettingUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
) -> SettingResponse:
    row = settings_store.set_value(db, key, payload.value, payload.description)
    activity_log.record(db, actor, "update_setting", "settings", key, {"key": key, "value": payload.value})
    return SettingResponse.model_validate(row)


@router.get("/activity-logs", response_model=ActivityLogListResponse)
def list_activity_logs(
    action: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None, alias="actorId"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> ActivityLogListResponse:
    entries, total = activity_log.list_entries(db, action=action, actor_id=actor_id, page=page, limit=limit)
    return ActivityLogListResponse(
        logs=[_log_item(entry) for entry in entries],
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.get("/notifications", response_model=NotificationListResponse)
def list_notifications(email: Optional[str] = Query(None), db: Session = Depends(get_db)) -> NotificationListResponse:
    if not email:
        raise ValidationError("email is required")
    rows, unread = notifications.list_inbox(db, email)
    return NotificationListResponse(
        notifications=[NotificationItem.model_validate(row) for row in rows],
        unread_count=unread,
    )


@router.put("/notifications/read-all", response_model=MessageResponse)
def mark_all_notifications_read(payload: MarkAllReadRequest, db: Session = Depends(get_db)) -> MessageResponse:
    updated = notifications.mark_all_read(db, payload.email)
    return MessageResponse(message=f"{updated} notification(s) marked as read")


@router.put("/notifications/{notification_id}/read", response_model=NotificationItem)
def mark_notification_read(notification_id: int, db: Session = Depends(get_db)) -> NotificationItem:
    row = notifications.mark_read(db, notification_id)
    if row is None:
        raise NotFoundError("Notification not found")
    return NotificationItem.model_validate(row)
