from typing import Optional
from sqlalchemy.orm import Session
from rebound.db.models.user import User


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_users(db: Session, user_ids) -> list:
    if not user_ids:
        return []
    return db.query(User).filter(User.id.in_(list(user_ids))).order_by(User.id).all()
