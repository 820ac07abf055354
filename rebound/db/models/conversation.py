from datetime import datetime
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from rebound.db.base import Base


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_conversations_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_conversations_two_users"),
    )

    id = Column(Integer, primary_key=True)
    user_low_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_high_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    last_message_id = Column(
        Integer,
        ForeignKey("messages.id", use_alter=True, name="fk_conversations_last_message", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, index=True)

    participants = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
    )
    last_message = relationship("Message", foreign_keys=[last_message_id], post_update=True)

    @property
    def participant_ids(self) -> tuple:
        return (self.user_low_id, self.user_high_id)

    def has_participant(self, user_id: int) -> bool:
        return user_id in self.participant_ids

    def other_participant_id(self, user_id: int) -> int:
        return self.user_high_id if self.user_low_id == user_id else self.user_low_id

    def unread_count_for(self, user_id: int) -> int:
        for participant in self.participants:
            if participant.user_id == user_id:
                return participant.unread_count
        return 0


class ConversationParticipant(Base):
    """Per-user unread counter for a conversation."""

    __tablename__ = "conversation_participants"

    conversation_id = Column(Integer, ForeignKey("conversations.id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    unread_count = Column(Integer, nullable=False, default=0)

    conversation = relationship("Conversation", back_populates="participants")
    user = relationship("User")
