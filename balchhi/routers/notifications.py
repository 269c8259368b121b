from datetime import datetime, timezone
from typing import Optional
import uuid
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import update
from sqlmodel import Session, func, select

from balchhi.db.db import get_session
from balchhi.models.notification import Notification
from balchhi.models.user import User
from balchhi.utils.auth_helper import require_user


router = APIRouter()


def _unread(user_id: int):
    return (
        Notification.user_id == user_id,
        Notification.read_at == None,  # noqa: E711
    )


@router.get("")
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    type: Optional[str] = None,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    query = select(Notification).where(Notification.user_id == user.id)

    if unread_only:
        query = query.where(*_unread(user.id))

    if type:
        query = query.where(Notification.type == type)

    notifications = session.exec(
        query.order_by(Notification.created_at.desc()).limit(limit)
    ).all()

    return {"notifications": notifications}


@router.get("/count")
def unread_count(
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    count = session.exec(select(func.count(Notification.id)).where(*_unread(user.id))).one()

    return {"count": count}


@router.post("/mark-all-read")
def mark_all_read(
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    result = session.execute(
        update(Notification)
        .where(*_unread(user.id))
        .values(read_at=datetime.now(timezone.utc))
    )
    session.commit()

    return {"updated": result.rowcount}


@router.post("/{notification_id}/mark-read")
def mark_read(
    notification_id: uuid.UUID,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    notification = session.get(Notification, notification_id)

    # Someone else's notification looks the same as a missing one
    if not notification or notification.user_id != user.id:
        raise HTTPException(status_code=404, detail="Notification not found")

    # Keep the first read time
    if notification.read_at is None:
        notification.read_at = datetime.now(timezone.utc)
        session.add(notification)
        session.commit()
        session.refresh(notification)

    return {"notification": notification}
