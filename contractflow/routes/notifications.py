"""Notification inbox endpoints."""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from contractflow.database import get_db
from contractflow.schemas import (
    MarkAllReadResponse,
    NotificationCreate,
    NotificationReadUpdate,
    NotificationResponse,
)
from contractflow.services.notifications import (
    create_notification,
    get_notifications,
    mark_all_read,
    mark_notification,
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
def list_notifications(
    user_id: str = Query(...),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Get notifications for a user."""
    return get_notifications(db, user_id, unread_only)


@router.post("", response_model=NotificationResponse, status_code=201)
def create_notification_endpoint(
    data: NotificationCreate, db: Session = Depends(get_db)
):
    return create_notification(db, data)


@router.post("/read-all", response_model=MarkAllReadResponse)
def mark_all_read_endpoint(user_id: str = Query(...), db: Session = Depends(get_db)):
    return {"updated": mark_all_read(db, user_id)}


@router.patch("/{notification_id}", response_model=NotificationResponse)
def mark_notification_endpoint(
    notification_id: int,
    data: NotificationReadUpdate,
    db: Session = Depends(get_db),
):
    return mark_notification(db, notification_id, data.read)
