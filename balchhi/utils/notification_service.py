import logging
from typing import Optional
from sqlmodel import Session

from balchhi.models.notification import Notification

logger = logging.getLogger(__name__)


def emit_notification(
    session: Session,
    user_id: int,
    type: str,
    title: str,
    body: str,
    data: Optional[dict] = None,
) -> Optional[Notification]:
    """Write a notification after the caller's transaction has committed.

    Uses its own session on the caller's engine so a failure here can never
    roll back or surface through the primary write. Returns None on failure.
    """
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        body=body,
        data=jsonable(data or {}),
    )

    try:
        with Session(session.get_bind()) as side_session:
            side_session.add(notification)
            side_session.commit()
            side_session.refresh(notification)
    except Exception:
        logger.exception("Failed to emit %s notification to user %s", type, user_id)
        return None

    return notification


def jsonable(data: dict) -> dict:
    # UUIDs and datetimes are stored as strings in the JSON payload
    return {
        key: value if isinstance(value, (str, int, float, bool, type(None), list, dict)) else str(value)
        for key, value in data.items()
    }
