import logging
from typing import Optional, Tuple, List
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from rebound.db.models.notifications import Notification
from rebound.core.errors import NotFound, Forbidden


def notify(
    db: Session,
    recipient_id: int,
    type: str,
    actor_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    message: str = "",
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        type=type,
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity_id,
        message=message,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def notify_safely(db: Session, recipient_id: int, type: str, **kwargs) -> Optional[Notification]:
    """Write a notification after the triggering change has committed.

    The triggering change is never undone: a failed write is rolled back,
    logged and dropped.
    """
    try:
        return notify(db, recipient_id, type, **kwargs)
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Failed to write {type} notification for user {recipient_id}: {str(e)}")
        return None


def unread_count(db: Session, recipient_id: int) -> int:
    return db.query(Notification)\
        .filter(Notification.recipient_id == recipient_id, Notification.read == False)\
        .count()


def list_notifications(
    db: Session,
    recipient_id: int,
    unread_only: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> Tuple[List[Notification], int]:
    query = db.query(Notification).filter(Notification.recipient_id == recipient_id)
    if unread_only:
        query = query.filter(Notification.read == False)

    total = query.count()
    notifications = query\
        .order_by(Notification.created_at.desc(), Notification.id.desc())\
        .offset((page - 1) * page_size)\
        .limit(page_size)\
        .all()
    return notifications, total


def _get_owned(db: Session, notification_id: int, caller_id: int) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotFound("Notification not found", code="NOTIFICATION_NOT_FOUND")
    if notification.recipient_id != caller_id:
        raise Forbidden()
    return notification


def mark_read(db: Session, notification_id: int, caller_id: int) -> Notification:
    notification = _get_owned(db, notification_id, caller_id)
    notification.read = True
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, recipient_id: int) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.recipient_id == recipient_id, Notification.read == False)
        .values(read=True)
    )
    db.commit()
    return result.rowcount


def delete_notification(db: Session, notification_id: int, caller_id: int) -> None:
    notification = _get_owned(db, notification_id, caller_id)
    db.delete(notification)
    db.commit()
