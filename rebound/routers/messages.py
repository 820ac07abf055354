from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session
from typing import List
from rebound.db.session import get_db
from rebound.db.models.user import User
from rebound.core.security import get_current_user
from rebound.crud import messages as crud
from rebound.realtime.registry import ConnectionRegistry, get_registry
from rebound.schemas.common import Envelope, PageEnvelope, Pagination
from rebound.schemas.message import (
    ConversationCreate,
    ConversationOut,
    ConversationSummary,
    MessageCreate,
    MessageOut,
    NewMessageEvent,
)

router = APIRouter()


@router.get("/conversations", response_model=Envelope[List[ConversationSummary]])
def get_conversations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"data": crud.list_conversations(db, current_user.id)}


# Listing a conversation also marks it read for the caller
@router.get("/conversations/{conversation_id}", response_model=PageEnvelope[List[MessageOut]])
def get_conversation_messages(
    conversation_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    messages, total = crud.list_messages(db, conversation_id, current_user.id, page, limit)
    return {
        "data": messages,
        "pagination": Pagination.build(page, limit, total),
    }


# Start a conversation or return the existing one
@router.post("/conversations", response_model=Envelope[ConversationOut])
def create_conversation(
    payload: ConversationCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conversation, created = crud.get_or_create_conversation(db, current_user.id, payload.participant_id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return {"data": crud.describe_conversation(conversation)}


def _store_message(db: Session, conversation_id: int, sender_id: int, content: str):
    message = crud.send_message(db, conversation_id, sender_id, content)
    recipient_id = message.conversation.other_participant_id(sender_id)
    return recipient_id, MessageOut.model_validate(message)


@router.post(
    "/conversations/{conversation_id}",
    response_model=Envelope[MessageOut],
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: int,
    payload: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    registry: ConnectionRegistry = Depends(get_registry),
):
    # Database work stays off the event loop; the push is not awaited
    recipient_id, message_out = await run_in_threadpool(
        _store_message, db, conversation_id, current_user.id, payload.content
    )
    event = NewMessageEvent(conversation_id=conversation_id, message=message_out)
    registry.publish_later(recipient_id, "new_message", event.model_dump(mode="json"))

    return {"data": message_out}


@router.put("/conversations/{conversation_id}/read", response_model=Envelope)
def mark_conversation_read(
    conversation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    crud.mark_conversation_read(db, conversation_id, current_user.id)
    return {"message": "Conversation marked as read"}


@router.put("/{message_id}/read", response_model=Envelope[MessageOut])
def mark_message_read(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"data": crud.mark_message_read(db, message_id, current_user.id)}


@router.delete("/{message_id}", response_model=Envelope)
def delete_message(
    message_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    crud.delete_message(db, message_id, current_user.id)
    return {"message": "Message deleted successfully"}
