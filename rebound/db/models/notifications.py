from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, Boolean, Index
from sqlalchemy.orm import relationship
from rebound.db.base import Base

NOTIFICATION_TYPES = (
    "connection_request",
    "connection_accepted",
    "message",
    "post_like",
    "post_comment",
    "job_application",
    "mention",
    "pitch_status",
)

ENTITY_TYPES = ("post", "comment", "job", "message", "connection", "pitch")


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "read"),
    )

    id = Column(Integer, primary_key=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(*NOTIFICATION_TYPES, name="notification_type"), nullable=False)
    actor_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    entity_type = Column(Enum(*ENTITY_TYPES, name="notification_entity_type"), nullable=True)
    entity_id = Column(Integer, nullable=True)
    message = Column(String)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    recipient = relationship("User", foreign_keys=[recipient_id])
    actor = relationship("User", foreign_keys=[actor_id])

    @property
    def related_entity(self):
        if self.entity_type is None or self.entity_id is None:
            return None
        return {"entity_type": self.entity_type, "entity_id": self.entity_id}
