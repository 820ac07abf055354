from typing import List, Optional
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from rebound.db.models.user import User
from rebound.db.models.connection import Connection
from rebound.crud import users
from rebound.crud.notifications import notify_safely
from rebound.core.errors import (
    AlreadyConnected,
    Forbidden,
    InvalidStatus,
    NotFound,
    RequestPending,
    SelfConnection,
    UserNotFound,
)

ACTIVE_STATUSES = ("pending", "accepted")


def pair_key(user_a: int, user_b: int):
    return (min(user_a, user_b), max(user_a, user_b))


def find_between(db: Session, user_a: int, user_b: int) -> Optional[Connection]:
    low, high = pair_key(user_a, user_b)
    return db.query(Connection)\
        .filter(Connection.user_low_id == low, Connection.user_high_id == high)\
        .first()


def get_connection(db: Session, connection_id: int) -> Connection:
    connection = db.query(Connection).filter(Connection.id == connection_id).first()
    if not connection:
        raise NotFound("Connection not found", code="CONNECTION_NOT_FOUND")
    return connection


def _raise_for_existing(connection: Connection):
    if connection.status == "accepted":
        raise AlreadyConnected()
    if connection.status == "pending":
        raise RequestPending()


def send_request(db: Session, requester_id: int, recipient_id: int, message: str = "") -> Connection:
    if requester_id == recipient_id:
        raise SelfConnection()

    if not users.get_user(db, recipient_id):
        raise UserNotFound()

    existing = find_between(db, requester_id, recipient_id)
    if existing:
        _raise_for_existing(existing)

        # A rejected request is reopened in place, possibly in the other direction
        existing.requester_id = requester_id
        existing.recipient_id = recipient_id
        existing.message = message or ""
        existing.status = "pending"
        connection = existing
    else:
        low, high = pair_key(requester_id, recipient_id)
        connection = Connection(
            requester_id=requester_id,
            recipient_id=recipient_id,
            user_low_id=low,
            user_high_id=high,
            message=message or "",
            status="pending",
        )
        db.add(connection)

    try:
        db.commit()
    except IntegrityError:
        # Another request for the same pair committed first
        db.rollback()
        winner = find_between(db, requester_id, recipient_id)
        if winner:
            _raise_for_existing(winner)
        raise RequestPending()
    db.refresh(connection)

    notify_safely(
        db,
        recipient_id,
        "connection_request",
        actor_id=requester_id,
        entity_type="connection",
        entity_id=connection.id,
        message="sent you a connection request",
    )
    return connection


def respond(db: Session, connection_id: int, caller_id: int, decision: str) -> Connection:
    if decision not in ("accepted", "rejected"):
        raise ValueError(f"Unknown decision: {decision}")

    connection = get_connection(db, connection_id)
    if connection.recipient_id != caller_id:
        raise Forbidden(f"Not authorized to {'accept' if decision == 'accepted' else 'reject'} this request")
    if connection.status != "pending":
        raise InvalidStatus()

    connection.status = decision
    db.commit()
    db.refresh(connection)

    # Rejections are silent
    if decision == "accepted":
        notify_safely(
            db,
            connection.requester_id,
            "connection_accepted",
            actor_id=caller_id,
            entity_type="connection",
            entity_id=connection.id,
            message="accepted your connection request",
        )
    return connection


def remove(db: Session, connection_id: int, caller_id: int) -> None:
    connection = get_connection(db, connection_id)
    if not connection.involves(caller_id):
        raise Forbidden("Not authorized to remove this connection")

    db.delete(connection)
    db.commit()


def list_connections(db: Session, user_id: int) -> List[dict]:
    connections = db.query(Connection)\
        .options(joinedload(Connection.requester), joinedload(Connection.recipient))\
        .filter(
            or_(Connection.requester_id == user_id, Connection.recipient_id == user_id),
            Connection.status == "accepted"
        )\
        .order_by(Connection.updated_at.desc(), Connection.id.desc())\
        .all()

    return [
        {
            "id": conn.id,
            "other_user": conn.recipient if conn.requester_id == user_id else conn.requester,
            "connected_at": conn.updated_at,
        }
        for conn in connections
    ]


def list_requests(db: Session, user_id: int) -> List[Connection]:
    return db.query(Connection)\
        .options(joinedload(Connection.requester))\
        .filter(Connection.recipient_id == user_id, Connection.status == "pending")\
        .order_by(Connection.created_at.desc(), Connection.id.desc())\
        .all()


def list_suggestions(db: Session, user_id: int, limit: int = 10) -> List[User]:
    # Everyone the user already has a pending or accepted row with
    linked = (
        select(Connection.recipient_id.label("user_id"))
        .where(Connection.requester_id == user_id, Connection.status.in_(ACTIVE_STATUSES))
        .union_all(
            select(Connection.requester_id.label("user_id"))
            .where(Connection.recipient_id == user_id, Connection.status.in_(ACTIVE_STATUSES))
        )
        .subquery()
    )

    return db.query(User)\
        .filter(User.id != user_id, ~User.id.in_(select(linked.c.user_id)))\
        .order_by(User.id)\
        .limit(limit)\
        .all()


def connected_user_ids(db: Session, user_id: int) -> set:
    connections = db.query(Connection)\
        .filter(
            or_(Connection.requester_id == user_id, Connection.recipient_id == user_id),
            Connection.status == "accepted"
        )\
        .all()
    return {conn.other_user_id(user_id) for conn in connections}


def list_mutual(db: Session, user_id: int, other_id: int) -> List[User]:
    if not users.get_user(db, other_id):
        raise UserNotFound()
    mutual = connected_user_ids(db, user_id) & connected_user_ids(db, other_id)
    return users.get_users(db, mutual)
