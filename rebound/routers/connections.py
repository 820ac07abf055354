from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List
from rebound.db.session import get_db
from rebound.db.models.user import User
from rebound.core.security import get_current_user
from rebound.crud import connections as crud
from rebound.schemas.common import Envelope
from rebound.schemas.connection import (
    ConnectionOut,
    ConnectionRequestCreate,
    ConnectionWithUser,
    IncomingRequest,
)
from rebound.schemas.user import UserSummary

router = APIRouter()


# Accepted connections of the current user
@router.get("", response_model=Envelope[List[ConnectionWithUser]])
def get_connections(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"data": crud.list_connections(db, current_user.id)}


# Pending requests sent to the current user
@router.get("/requests", response_model=Envelope[List[IncomingRequest]])
def get_connection_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"data": crud.list_requests(db, current_user.id)}


@router.get("/suggestions", response_model=Envelope[List[UserSummary]])
def get_suggestions(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"data": crud.list_suggestions(db, current_user.id, limit)}


@router.get("/mutual/{user_id}", response_model=Envelope[List[UserSummary]])
def get_mutual_connections(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return {"data": crud.list_mutual(db, current_user.id, user_id)}


# Send connection request
@router.post("/request", response_model=Envelope[ConnectionOut], status_code=status.HTTP_201_CREATED)
def send_connection_request(
    payload: ConnectionRequestCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    connection = crud.send_request(db, current_user.id, payload.recipient_id, payload.message)
    return {"data": connection}


@router.post("/accept/{connection_id}", response_model=Envelope[ConnectionOut])
def accept_connection_request(
    connection_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    connection = crud.respond(db, connection_id, current_user.id, "accepted")
    return {"data": connection}


@router.post("/reject/{connection_id}", response_model=Envelope[ConnectionOut])
def reject_connection_request(
    connection_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    connection = crud.respond(db, connection_id, current_user.id, "rejected")
    return {"data": connection, "message": "Connection request rejected"}


@router.delete("/{connection_id}", response_model=Envelope)
def remove_connection(
    connection_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    crud.remove(db, connection_id, current_user.id)
    return {"message": "Connection removed successfully"}
