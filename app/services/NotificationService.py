"""In-app notifications created as side effects of other mutations."""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.constants import NotificationType
from app.core.config import settings
from app.models.notifications import Notification
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


def build_notification(
    recipient_id: str,
    type: NotificationType,
    title: str,
    message: str,
    data: Optional[dict] = None,
) -> Notification:
    now = utcnow()
    return Notification(
        user_id=recipient_id,
        type=type,
        title=title[:100],
        message=message[:500],
        data=data or {},
        is_read=False,
        expires_at=now + timedelta(days=settings.NOTIFICATION_EXPIRY_DAYS),
    )


async def create_notification(db: AsyncSession, recipient_id: str, type: NotificationType,
                              title: str, message: str, data: Optional[dict] = None) -> Notification:
    notification = build_notification(recipient_id, type, title, message, data)
    db.add(notification)
    await db.commit()
    return notification


async def notify_safely(db: AsyncSession, recipient_id: str, type: NotificationType,
                        title: str, message: str, data: Optional[dict] = None) -> Optional[Notification]:
    """
    Best-effort notification.

    Runs in its own session on the same engine so a failure can neither roll
    back nor poison the caller's already committed work. Errors are logged.
    """
    try:
        async with AsyncSession(db.bind, expire_on_commit=False) as side_session:
            return await create_notification(side_session, recipient_id, type, title, message, data)
    except Exception as e:
        logger.error(f"❌ Failed to create {type.value} notification for {recipient_id}: {e}")
        return None


async def purge_expired_notifications(db: AsyncSession) -> int:
    result = await db.execute(delete(Notification).where(Notification.expires_at < utcnow()))
    await db.commit()
    return result.rowcount or 0
