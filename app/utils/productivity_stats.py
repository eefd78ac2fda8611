"""Per-user productivity statistics, recomputed from the task table on every call."""

from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.constants import TaskStatus
from app.models.task import Task
from app.utils.dates import utcnow
from app.utils.task_status import effective_status


def completion_rate(completed: int, failed: int) -> float:
    denominator = completed + failed
    if denominator == 0:
        return 0
    return round(completed / denominator * 100, 2)


def average_completion_hours(completed_tasks: Iterable) -> float:
    """Mean of updated_at - created_at over completed tasks, in hours."""
    durations = [
        (t.updated_at - t.created_at).total_seconds()
        for t in completed_tasks
        if t.updated_at and t.created_at
    ]
    if not durations:
        return 0
    return round(sum(durations) / len(durations) / 3600, 2)


def completion_streak(dates: Iterable[date]) -> int:
    """
    Count consecutive calendar days ending at the most recent completion.

    The run stops at the first gap of more than one day.
    """
    distinct = sorted(set(dates), reverse=True)
    if not distinct:
        return 0
    streak = 1
    for previous, current in zip(distinct, distinct[1:]):
        if (previous - current).days == 1:
            streak += 1
        else:
            break
    return streak


def compute_productivity_stats(counts: dict, completed_tasks: List) -> dict:
    completed = counts.get(TaskStatus.completed, 0)
    failed = counts.get(TaskStatus.failed, 0)
    ongoing = counts.get(TaskStatus.in_progress, 0)
    return {
        "completed": completed,
        "failed": failed,
        "ongoing": ongoing,
        "completionRate": completion_rate(completed, failed),
        "streak": completion_streak(t.updated_at.date() for t in completed_tasks if t.updated_at),
        "avgTime": average_completion_hours(completed_tasks),
    }


async def count_tasks_by_status(db: AsyncSession, user_id: str) -> dict:
    result = await db.execute(
        select(Task.status, func.count(Task.task_id))
        .where(Task.user_id == user_id)
        .group_by(Task.status)
    )
    return {TaskStatus(row[0]): row[1] for row in result.all()}


async def calculate_productivity_stats(db: AsyncSession, user_id: str) -> dict:
    """
    Live statistics for one user.

    Counts use the stored status, so an overdue task only counts as failed
    once it has been written back by an explicit save or the overdue sweep.
    """
    counts = await count_tasks_by_status(db, user_id)
    result = await db.execute(
        select(Task).where(Task.user_id == user_id, Task.status == TaskStatus.completed)
    )
    completed_tasks = result.scalars().all()
    return compute_productivity_stats(counts, completed_tasks)


def summarize_task_statuses(tasks: Iterable, now: Optional[datetime] = None) -> dict:
    """Status counts using the effective status of each task."""
    now = now or utcnow()
    summary = {"total": 0, "inProgress": 0, "failed": 0, "completed": 0}
    for task in tasks:
        summary["total"] += 1
        status = effective_status(task, now)
        if status == TaskStatus.completed:
            summary["completed"] += 1
        elif status == TaskStatus.failed:
            summary["failed"] += 1
        else:
            summary["inProgress"] += 1
    total = summary["total"]
    summary["completionRate"] = round(summary["completed"] / total * 100, 2) if total else 0
    summary["failureRate"] = round(summary["failed"] / total * 100, 2) if total else 0
    return summary


async def calculate_task_status_summary(db: AsyncSession, user_id: str, now: Optional[datetime] = None) -> dict:
    result = await db.execute(select(Task).where(Task.user_id == user_id))
    return summarize_task_statuses(result.scalars().all(), now)

