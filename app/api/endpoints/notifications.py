from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.core.database import aget_db
from app.core.errors import NotFoundError
from app.core.security import get_current_user
from app.models.notifications import Notification
from app.models.user import User
from app.utils.dates import utcnow
from app.utils.response import clamp_pagination, paginated_response, success_response
from app.utils.serializers import serialize_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


async def unread_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count(Notification.notification_id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
    )
    return result.scalar() or 0


async def get_own_notification(db: AsyncSession, notification_id: str, user: User) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.notification_id == notification_id,
            Notification.user_id == user.user_id,
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification not found", "NOTIFICATION_NOT_FOUND")
    return notification


@router.get("/")
async def get_notifications(
    page: int = 1,
    limit: int = 20,
    read: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Get notifications for the current user, newest first."""
    page, limit = clamp_pagination(page, limit)
    conditions = [Notification.user_id == current_user.user_id]
    if read is not None:
        conditions.append(Notification.is_read.is_(read))

    total = (await db.execute(select(func.count(Notification.notification_id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    notifications = [serialize_notification(n) for n in result.scalars().all()]
    return paginated_response(
        notifications, page, limit, total,
        unreadCount=await unread_count(db, current_user.user_id),
    )


@router.get("/unread/count")
async def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    return success_response({"count": await unread_count(db, current_user.user_id)})


@router.put("/read/all")
async def mark_all_notifications_as_read(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Mark all notifications as read. Calling it again changes nothing."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == current_user.user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=utcnow())
    )
    await db.commit()
    logger.info(f"📭 {current_user.username} marked {result.rowcount or 0} notifications as read")
    return success_response({"modifiedCount": result.rowcount or 0}, "All notifications marked as read")


@router.put("/{notification_id}/read")
async def mark_notification_as_read(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    notification = await get_own_notification(db, notification_id, current_user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = utcnow()
        await db.commit()
    return success_response(serialize_notification(notification), "Notification marked as read")


@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    notification = await get_own_notification(db, notification_id, current_user)
    await db.delete(notification)
    await db.commit()
    logger.info(f"🗑️ Notification {notification_id} deleted by {current_user.username}")
    return success_response(message="Notification deleted successfully")


@router.delete("/")
async def delete_all_notifications(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    result = await db.execute(delete(Notification).where(Notification.user_id == current_user.user_id))
    await db.commit()
    logger.info(f"🗑️ {current_user.username} cleared {result.rowcount or 0} notifications")
    return success_response({"deletedCount": result.rowcount or 0}, "All notifications deleted")
