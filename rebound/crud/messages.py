from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from rebound.core.config import MESSAGE_MAX_LENGTH
from rebound.core.errors import (
    ContentInvalid,
    Forbidden,
    InvalidRequest,
    NotFound,
    SelfConversation,
    UserNotFound,
)
from rebound.crud import users
from rebound.crud.notifications import notify_safely
from rebound.db.models.conversation import Conversation, ConversationParticipant
from rebound.db.models.message import Message


def pair_key(user_a: int, user_b: int):
    return (min(user_a, user_b), max(user_a, user_b))


def validate_content(content: Optional[str]) -> str:
    if content is None or not content.strip() or len(content) > MESSAGE_MAX_LENGTH:
        raise ContentInvalid()
    return content


def find_conversation(db: Session, user_a: int, user_b: int) -> Optional[Conversation]:
    low, high = pair_key(user_a, user_b)
    return db.query(Conversation)\
        .filter(Conversation.user_low_id == low, Conversation.user_high_id == high)\
        .first()


def get_conversation(db: Session, conversation_id: int, caller_id: int) -> Conversation:
    conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if not conversation:
        raise NotFound("Conversation not found", code="CONVERSATION_NOT_FOUND")
    if not conversation.has_participant(caller_id):
        raise Forbidden("Not authorized to access this conversation")
    return conversation


def describe_conversation(conversation: Conversation) -> dict:
    return {
        "id": conversation.id,
        "participant_ids": list(conversation.participant_ids),
        "last_message_id": conversation.last_message_id,
        "unread_count": {p.user_id: p.unread_count for p in conversation.participants},
        "created_at": conversation.created_at,
        "updated_at": conversation.updated_at,
    }


def get_or_create_conversation(db: Session, user_id: int, participant_id: int) -> Tuple[Conversation, bool]:
    """Return the conversation between two users, creating it on first contact.

    Returns ``(conversation, created)``. Two concurrent first contacts race on
    the unique pair constraint; the loser rolls back and returns the winner's row.
    """
    if user_id == participant_id:
        raise SelfConversation()

    if not users.get_user(db, participant_id):
        raise UserNotFound()

    existing = find_conversation(db, user_id, participant_id)
    if existing:
        return existing, False

    low, high = pair_key(user_id, participant_id)
    conversation = Conversation(
        user_low_id=low,
        user_high_id=high,
        participants=[
            ConversationParticipant(user_id=low, unread_count=0),
            ConversationParticipant(user_id=high, unread_count=0),
        ],
    )
    db.add(conversation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_conversation(db, user_id, participant_id)
        if existing is None:
            raise
        return existing, False

    db.refresh(conversation)
    return conversation, True


def list_conversations(db: Session, user_id: int) -> List[dict]:
    conversations = db.query(Conversation)\
        .options(joinedload(Conversation.participants), joinedload(Conversation.last_message))\
        .filter(or_(Conversation.user_low_id == user_id, Conversation.user_high_id == user_id))\
        .order_by(Conversation.updated_at.desc(), Conversation.id.desc())\
        .all()

    others = {u.id: u for u in users.get_users(db, {c.other_participant_id(user_id) for c in conversations})}

    return [
        {
            "id": conv.id,
            "other_participant": others.get(conv.other_participant_id(user_id)),
            "last_message": conv.last_message,
            "unread_count": conv.unread_count_for(user_id),
            "updated_at": conv.updated_at,
        }
        for conv in conversations
    ]


def _adjust_unread(db: Session, conversation_id: int, user_id: int, delta: int):
    # Single UPDATE so concurrent senders never lose an increment
    stmt = update(ConversationParticipant).where(
        ConversationParticipant.conversation_id == conversation_id,
        ConversationParticipant.user_id == user_id,
    )
    if delta < 0:
        stmt = stmt.where(ConversationParticipant.unread_count > 0)
    db.execute(stmt.values(unread_count=ConversationParticipant.unread_count + delta))


def send_message(db: Session, conversation_id: int, sender_id: int, content: str) -> Message:
    conversation = get_conversation(db, conversation_id, sender_id)
    validate_content(content)

    recipient_id = conversation.other_participant_id(sender_id)

    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        content=content,
    )
    db.add(message)
    db.flush()

    conversation.last_message_id = message.id
    conversation.updated_at = datetime.utcnow()
    _adjust_unread(db, conversation.id, recipient_id, 1)
    db.commit()
    db.refresh(message)

    notify_safely(
        db,
        recipient_id,
        "message",
        actor_id=sender_id,
        entity_type="message",
        entity_id=message.id,
        message="sent you a message",
    )
    return message


def _mark_conversation_read(db: Session, conversation: Conversation, user_id: int):
    db.execute(
        update(Message)
        .where(
            Message.conversation_id == conversation.id,
            Message.sender_id != user_id,
            Message.read == False
        )
        .values(read=True)
    )
    db.execute(
        update(ConversationParticipant)
        .where(
            ConversationParticipant.conversation_id == conversation.id,
            ConversationParticipant.user_id == user_id,
        )
        .values(unread_count=0)
    )
    db.commit()


def list_messages(
    db: Session,
    conversation_id: int,
    caller_id: int,
    page: int = 1,
    page_size: int = 50,
) -> Tuple[List[Message], int]:
    """Page through a conversation and mark it read for the caller.

    Page 1 is the newest window; each window is returned oldest first.
    """
    conversation = get_conversation(db, conversation_id, caller_id)

    query = db.query(Message).filter(Message.conversation_id == conversation.id)
    total = query.count()
    window = query\
        .order_by(Message.created_at.desc(), Message.id.desc())\
        .offset((page - 1) * page_size)\
        .limit(page_size)\
        .all()

    _mark_conversation_read(db, conversation, caller_id)
    return list(reversed(window)), total


def mark_conversation_read(db: Session, conversation_id: int, caller_id: int) -> Conversation:
    conversation = get_conversation(db, conversation_id, caller_id)
    _mark_conversation_read(db, conversation, caller_id)
    return conversation


def get_message(db: Session, message_id: int) -> Message:
    message = db.query(Message).filter(Message.id == message_id).first()
    if not message:
        raise NotFound("Message not found", code="MESSAGE_NOT_FOUND")
    return message


def mark_message_read(db: Session, message_id: int, caller_id: int) -> Message:
    message = get_message(db, message_id)
    conversation = db.query(Conversation).filter(Conversation.id == message.conversation_id).first()
    if not conversation or not conversation.has_participant(caller_id):
        raise Forbidden()
    if message.sender_id == caller_id:
        raise InvalidRequest("Cannot mark own message as read")

    if not message.read:
        message.read = True
        _adjust_unread(db, conversation.id, caller_id, -1)
        db.commit()
        db.refresh(message)
    return message


def delete_message(db: Session, message_id: int, caller_id: int) -> None:
    message = get_message(db, message_id)
    if message.sender_id != caller_id:
        raise Forbidden("Not authorized to delete this message")

    conversation = db.query(Conversation).filter(Conversation.id == message.conversation_id).first()
    if conversation is not None:
        if not message.read:
            _adjust_unread(db, conversation.id, conversation.other_participant_id(caller_id), -1)

        if conversation.last_message_id == message.id:
            previous = db.query(Message)\
                .filter(Message.conversation_id == conversation.id, Message.id != message.id)\
                .order_by(Message.created_at.desc(), Message.id.desc())\
                .first()
            conversation.last_message_id = previous.id if previous else None
        db.flush()

    db.delete(message)
    db.commit()
