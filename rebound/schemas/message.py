from pydantic import BaseModel
from datetime import datetime
from typing import Dict, List, Optional
from rebound.schemas.user import UserSummary


class MessageCreate(BaseModel):
    # Length is checked by the message store so the error carries CONTENT_INVALID
    content: str


class ConversationCreate(BaseModel):
    participant_id: int


class MessageOut(BaseModel):
    id: int
    conversation_id: int
    sender_id: int
    content: str
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ConversationOut(BaseModel):
    id: int
    participant_ids: List[int]
    last_message_id: Optional[int] = None
    unread_count: Dict[int, int]
    created_at: datetime
    updated_at: datetime


class ConversationSummary(BaseModel):
    id: int
    other_participant: Optional[UserSummary] = None
    last_message: Optional[MessageOut] = None
    unread_count: int
    updated_at: datetime


class NewMessageEvent(BaseModel):
    conversation_id: int
    message: MessageOut
