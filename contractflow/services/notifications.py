"""Notification inbox operations."""

from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from contractflow.config import settings
from contractflow.models import Contract, Notification, NotificationType, utcnow
from contractflow.schemas import NotificationCreate
from contractflow.services.common import get_user


def contract_url(contract_id: int) -> str:
    return f"/contracts/{contract_id}"


def notify(
    db: Session,
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    contract: Optional[Contract] = None,
) -> Notification:
    """Queue a notification on the session; the caller commits."""
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        contract_id=contract.id if contract is not None else None,
        action_url=contract_url(contract.id) if contract is not None else None,
    )
    db.add(notification)
    return notification


def get_notifications(
    db: Session, user_id: str, unread_only: bool = False
) -> List[Notification]:
    """Get the latest notifications for a user, newest first."""
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    return (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(settings.NOTIFICATION_LIMIT)
        .all()
    )


def create_notification(db: Session, data: NotificationCreate) -> Notification:
    get_user(db, data.user_id)
    if data.contract_id is not None and not db.get(Contract, data.contract_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Contract {data.contract_id} not found",
        )
    notification = Notification(
        user_id=data.user_id,
        type=data.type,
        title=data.title,
        message=data.message,
        contract_id=data.contract_id,
        action_url=data.action_url,
    )
    db.add(notification)
    db.commit()
    db.refresh(notification)
    return notification


def mark_notification(db: Session, notification_id: int, read: bool) -> Notification:
    notification = db.get(Notification, notification_id)
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification {notification_id} not found",
        )
    notification.read = read
    notification.read_at = utcnow() if read else None
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: str) -> int:
    """Mark every unread notification of a user as read; returns how many changed."""
    now = utcnow()
    unread = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read.is_(False))
        .all()
    )
    for notification in unread:
        notification.read = True
        notification.read_at = now
    db.commit()
    return len(unread)
