from pydantic import BaseModel
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.modules.notifications.models import NotificationType


class NotificationOut(BaseModel):
    id: UUID
    type: NotificationType
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None
    triggered_by_id: Optional[UUID] = None
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCountOut(BaseModel):
    count: int


class PurgeResult(BaseModel):
    deleted: int
