"""Effective (dynamic) task status.

Stored status is authoritative at rest. Display paths derive the status the
client sees with effective_status(), which never writes anything back.
"""

from datetime import datetime
from typing import Optional

from app.constants.constants import TaskStatus
from app.utils.dates import utcnow
from app.utils.recurrence import advance_recurrence


def _status(value) -> TaskStatus:
    return value if isinstance(value, TaskStatus) else TaskStatus(value)


def effective_status(task, now: Optional[datetime] = None) -> TaskStatus:
    """Completed stays completed; in-progress past its due date reads as failed."""
    now = now or utcnow()
    stored = _status(task.status)
    if stored == TaskStatus.completed:
        return TaskStatus.completed
    if stored == TaskStatus.in_progress and task.due is not None and task.due < now:
        return TaskStatus.failed
    return stored


def time_remaining_days(task, now: Optional[datetime] = None) -> Optional[int]:
    """Whole days until due, negative when overdue. None for completed tasks."""
    now = now or utcnow()
    if _status(task.status) == TaskStatus.completed or task.due is None:
        return None
    return (task.due - now).days


def progress_percent(task) -> int:
    """Subtask completion percentage; 100/0 by status when there are no subtasks."""
    subtasks = list(task.subtasks or [])
    if not subtasks:
        return 100 if _status(task.status) == TaskStatus.completed else 0
    done = sum(1 for s in subtasks if s.completed)
    return round(done / len(subtasks) * 100)


def mark_completed(task, now: Optional[datetime] = None):
    """Set completion bookkeeping on a task being completed."""
    now = now or utcnow()
    task.status = TaskStatus.completed
    task.completed_at = now
    if task.created_at:
        task.completion_time = int((now - task.created_at).total_seconds() // 60)
    task.actual_time = sum(entry.duration or 0 for entry in (task.time_entries or []))


def apply_save_rules(task, status_changed: bool, now: Optional[datetime] = None):
    """
    Bookkeeping run on an explicit save of a task.

    When the caller did not set the status and the task is not completed, the
    stored status is re-derived from the due date. Apart from the overdue
    sweep this is the only write that turns an overdue task into failed.
    """
    now = now or utcnow()
    if status_changed:
        if _status(task.status) == TaskStatus.completed and task.completed_at is None:
            mark_completed(task, now)
            advance_recurrence(task)
        elif _status(task.status) != TaskStatus.completed:
            task.completed_at = None
            task.completion_time = None
        return
    if _status(task.status) != TaskStatus.completed:
        task.status = TaskStatus.failed if task.due < now else TaskStatus.in_progress
