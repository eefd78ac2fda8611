"""Overdue task sweep scheduler for Taskly."""

import asyncio
from datetime import datetime
from typing import Optional
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.constants.constants import TaskStatus
from app.core.config import settings
from app.core.database import aget_db
from app.models.task import Task
from app.services.NotificationService import purge_expired_notifications
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)

# Initial delay so startup finishes before the first sweep
STARTUP_DELAY_SECONDS = 10


async def sweep_overdue_tasks(db: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Rewrite stored in-progress tasks whose due date has passed to failed.

    Idempotent: a second run at the same instant changes nothing. Reads
    never depend on it having run since the effective status is computed
    from the due date anyway.

    Returns:
        int: number of tasks rewritten
    """
    now = now or utcnow()
    result = await db.execute(
        update(Task)
        .where(Task.status == TaskStatus.in_progress, Task.due < now)
        .values(status=TaskStatus.failed, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount or 0


async def overdue_sweep_scheduler():
    """
    Background task that periodically fails overdue tasks and purges
    expired notifications.
    """
    interval = settings.OVERDUE_SWEEP_INTERVAL_SECONDS
    logger.info(f"⏰ Overdue sweep scheduler starting, every {interval} seconds")
    await asyncio.sleep(STARTUP_DELAY_SECONDS)

    while True:
        try:
            async for db in aget_db():
                failed = await sweep_overdue_tasks(db)
                purged = await purge_expired_notifications(db)
                if failed or purged:
                    logger.info(f"🧹 Sweep: {failed} overdue tasks failed, {purged} notifications purged")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ Error in overdue sweep scheduler: {str(e)}")

        await asyncio.sleep(interval)
