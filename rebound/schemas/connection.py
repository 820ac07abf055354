from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional
from rebound.core.config import CONNECTION_MESSAGE_MAX_LENGTH
from rebound.schemas.user import UserSummary


class ConnectionRequestCreate(BaseModel):
    recipient_id: int
    message: Optional[str] = Field(default="", max_length=CONNECTION_MESSAGE_MAX_LENGTH)


class ConnectionOut(BaseModel):
    id: int
    requester_id: int
    recipient_id: int
    status: str
    message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ConnectionWithUser(BaseModel):
    id: int
    other_user: UserSummary
    connected_at: datetime


class IncomingRequest(BaseModel):
    id: int
    requester: UserSummary
    message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
