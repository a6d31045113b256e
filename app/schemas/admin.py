from datetime import datetime
from typing import Any, List, Optional

from app.schemas.common import CamelModel, Pagination


class SettingResponse(CamelModel):
    key: str
    value: Optional[str] = None
    description: Optional[str] = None


class SettingUpdate(CamelModel):
    value: Optional[str] = None
    description: Optional[str] = None


class ActivityLogItem(CamelModel):
    id: int
    actor_id: Optional[str] = None
    actor_name: str
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: Optional[Any] = None
    created_at: datetime


class ActivityLogListResponse(CamelModel):
    logs: List[ActivityLogItem]
    pagination: Pagination


class NotificationItem(CamelModel):
    id: int
    recipient_email: str
    appointment_id: Optional[str] = None
    kind: str
    title: str
    message: str
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime] = None


class NotificationListResponse(CamelModel):
    notifications: List[NotificationItem]
    unread_count: int


class MarkAllReadRequest(CamelModel):
    email: str
