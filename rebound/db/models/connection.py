from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from rebound.db.base import Base

CONNECTION_STATUSES = ("pending", "accepted", "rejected")


class Connection(Base):
    __tablename__ = "connections"
    __table_args__ = (
        # One row per unordered pair, whichever side sent the request
        UniqueConstraint("user_low_id", "user_high_id", name="uq_connections_pair"),
        Index("ix_connections_status", "status"),
    )

    id = Column(Integer, primary_key=True)
    requester_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_low_id = Column(Integer, nullable=False)
    user_high_id = Column(Integer, nullable=False)
    status = Column(Enum(*CONNECTION_STATUSES, name="connection_status"), nullable=False, default="pending")
    message = Column(String(300), default="")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    requester = relationship("User", foreign_keys=[requester_id])
    recipient = relationship("User", foreign_keys=[recipient_id])

    def involves(self, user_id: int) -> bool:
        return user_id in (self.requester_id, self.recipient_id)

    def other_user_id(self, user_id: int) -> int:
        return self.recipient_id if self.requester_id == user_id else self.requester_id
