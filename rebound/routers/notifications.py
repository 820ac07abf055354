from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from rebound.db.session import get_db
from rebound.db.models.user import User
from rebound.core.security import get_current_user
from rebound.crud import notifications as crud
from rebound.schemas.common import Envelope, Pagination
from rebound.schemas.notifications import NotificationList, NotificationResponse, UnreadCount

router = APIRouter()


@router.get("", response_model=NotificationList)
def get_notifications(
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    notifications, total = crud.list_notifications(db, current_user.id, unread_only, page, limit)
    return {
        "data": notifications,
        "unread_count": crud.unread_count(db, current_user.id),
        "pagination": Pagination.build(page, limit, total),
    }


@router.get("/unread-count", response_model=Envelope[UnreadCount])
def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"data": {"count": crud.unread_count(db, current_user.id)}}


@router.put("/read-all", response_model=Envelope[UnreadCount])
def mark_all_notifications_read(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    updated = crud.mark_all_read(db, current_user.id)
    return {"data": {"count": updated}, "message": "All notifications marked as read"}


@router.put("/{notification_id}/read", response_model=Envelope[NotificationResponse])
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"data": crud.mark_read(db, notification_id, current_user.id)}


@router.delete("/{notification_id}", response_model=Envelope)
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    crud.delete_notification(db, notification_id, current_user.id)
    return {"message": "Notification deleted successfully"}
