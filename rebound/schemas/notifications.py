from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional
from rebound.schemas.common import Pagination


class RelatedEntity(BaseModel):
    entity_type: str
    entity_id: int


class NotificationResponse(BaseModel):
    id: int
    recipient_id: int
    type: str
    actor_id: Optional[int] = None
    related_entity: Optional[RelatedEntity] = None
    message: Optional[str] = None
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    success: bool = True
    data: List[NotificationResponse]
    unread_count: int
    pagination: Pagination


class UnreadCount(BaseModel):
    count: int
