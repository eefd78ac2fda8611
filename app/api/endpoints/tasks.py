"""Task management router for Taskly."""

from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.constants.constants import NotificationType, TaskStatus
from app.core.database import aget_db
from app.core.errors import BadRequestError, ForbiddenError, NotFoundError
from app.core.security import get_current_user, is_admin
from app.models.project import Project
from app.models.task import Subtask, Task, TaskComment, TimeEntry
from app.models.user import User
from app.schemas.taskSchema import (
    CommentCreateRequest,
    SubtaskCreateRequest,
    TaskCreateRequest,
    TaskStatusUpdateRequest,
    TaskUpdateRequest,
    TimeEntryCreateRequest,
)
from app.services.NotificationService import notify_safely
from app.utils.dates import utcnow
from app.utils.lookups import get_task_or_404
from app.utils.permissions import has_permission
from app.utils.productivity_stats import calculate_productivity_stats
from app.utils.response import success_response
from app.utils.serializers import serialize_comment, serialize_subtask, serialize_task, serialize_time_entry
from app.utils.task_queries import apply_recurring, check_due_date, create_task_for, resolve_project_for_task
from app.utils.task_status import apply_save_rules

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/tasks",
    tags=["tasks"]
)


async def get_accessible_task(db: AsyncSession, task_id: str, user: User, action: Optional[str] = None) -> Task:
    """
    Fetch a task the user may act on.

    The owner and admins may do anything. With an `action`, the assignee and
    members of the task's project holding that project permission are let
    in as well; without one the task is owner-only.
    """
    task = await get_task_or_404(db, task_id)
    if task.user_id == user.user_id or is_admin(user):
        return task
    if action:
        if task.assignee_id == user.user_id:
            return task
        if task.project_id:
            project = await db.get(Project, task.project_id)
            if project and has_permission(user.user_id, project, action):
                return task
    raise ForbiddenError("Not authorized to access this task")


async def save_task(db: AsyncSession, task: Task, status_changed: bool = False, now: Optional[datetime] = None):
    apply_save_rules(task, status_changed, now or utcnow())
    await db.commit()


async def notify_completion(db: AsyncSession, task: Task, actor: User):
    if task.user_id == actor.user_id:
        return
    await notify_safely(
        db,
        task.user_id,
        NotificationType.task_completed,
        "Task completed",
        f"{actor.fullname} completed \"{task.title}\"",
        {"taskId": task.task_id, "projectId": task.project_id, "completedBy": actor.user_id},
    )


# -----------------------------
# CRUD
# -----------------------------
@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_task(
    body: TaskCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Create a task owned by the caller."""
    task = await create_task_for(db, current_user.user_id, body, current_user)
    return success_response(serialize_task(task), "Task created successfully")


@router.get("/{task_id}")
async def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Single task. `status` is what is stored, `dynamicStatus` what the client should show."""
    task = await get_accessible_task(db, task_id, current_user, "view_project")
    return success_response(serialize_task(task, utcnow()))


@router.put("/{task_id}")
async def update_task(
    task_id: str,
    body: TaskUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    task = await get_accessible_task(db, task_id, current_user, "manage_tasks")
    fields = body.model_dump(exclude_unset=True)
    now = utcnow()

    if "due" in fields:
        if body.due is None:
            raise BadRequestError("Due date is required", "INVALID_DUE_DATE")
        check_due_date(body.due, now)
        task.due = body.due

    if "project" in fields:
        project = await resolve_project_for_task(db, body.project, current_user)
        task.project_id = project.project_id if project else None

    previous_assignee = task.assignee_id
    if "assignee" in fields:
        if body.assignee and not await db.get(User, body.assignee):
            raise NotFoundError("Assignee not found", "USER_NOT_FOUND")
        task.assignee_id = body.assignee

    for name in ("title", "priority"):
        if fields.get(name) is not None:
            setattr(task, name, fields[name])
    for name in ("description", "category", "estimated_time"):
        if name in fields:
            setattr(task, name, fields[name])
    for name in ("tags", "labels"):
        if fields.get(name) is not None:
            setattr(task, name, [item.strip() for item in fields[name] if item and item.strip()])
    if "recurring" in fields:
        apply_recurring(task, body.recurring)

    status_changed = body.status is not None and body.status != task.status
    if status_changed:
        task.status = body.status
    await save_task(db, task, status_changed, now)
    logger.info(f"✏️ Task {task.task_id} updated by {current_user.username}")

    if task.assignee_id and task.assignee_id not in (previous_assignee, current_user.user_id):
        await notify_safely(
            db,
            task.assignee_id,
            NotificationType.task_assigned,
            "New task assigned",
            f"{current_user.fullname} assigned you \"{task.title}\"",
            {"taskId": task.task_id, "projectId": task.project_id, "assignedBy": current_user.user_id},
        )
    if status_changed and task.status == TaskStatus.completed:
        await notify_completion(db, task, current_user)

    return success_response(serialize_task(task, now), "Task updated successfully")


@router.delete("/{task_id}")
async def delete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    task = await get_accessible_task(db, task_id, current_user)
    await db.delete(task)
    await db.commit()
    logger.info(f"🗑️ Task {task_id} deleted by {current_user.username}")
    return success_response(message="Task deleted successfully")


# -----------------------------
# Status
# -----------------------------
@router.patch("/{task_id}/complete")
async def complete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Mark a task completed. Recurring tasks get their next due date scheduled."""
    task = await get_accessible_task(db, task_id, current_user, "manage_tasks")
    now = utcnow()
    status_changed = task.status != TaskStatus.completed
    task.status = TaskStatus.completed
    await save_task(db, task, status_changed, now)
    if status_changed:
        await notify_completion(db, task, current_user)
    return success_response(serialize_task(task, now), "Task marked as completed")


@router.patch("/{task_id}/status")
async def update_task_status(
    task_id: str,
    body: TaskStatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Set the stored status and return the task with the owner's refreshed statistics."""
    task = await get_accessible_task(db, task_id, current_user, "manage_tasks")
    now = utcnow()
    status_changed = body.status != task.status
    task.status = body.status
    await save_task(db, task, status_changed, now)
    if status_changed and task.status == TaskStatus.completed:
        await notify_completion(db, task, current_user)

    stats = await calculate_productivity_stats(db, task.user_id)
    return success_response(
        {"task": serialize_task(task, now), "stats": stats},
        "Task status updated successfully",
    )


# -----------------------------
# Archive
# -----------------------------
@router.post("/{task_id}/archive")
async def archive_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    task = await get_accessible_task(db, task_id, current_user)
    now = utcnow()
    task.archived = True
    task.archived_at = now
    await save_task(db, task, now=now)
    return success_response(serialize_task(task, now), "Task archived successfully")


@router.post("/{task_id}/restore")
async def restore_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    task = await get_accessible_task(db, task_id, current_user)
    now = utcnow()
    task.archived = False
    task.archived_at = None
    await save_task(db, task, now=now)
    return success_response(serialize_task(task, now), "Task restored successfully")


# -----------------------------
# Subtasks, time entries, comments
# -----------------------------
@router.post("/{task_id}/subtasks", status_code=status.HTTP_201_CREATED)
async def add_subtask(
    task_id: str,
    body: SubtaskCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    task = await get_accessible_task(db, task_id, current_user, "manage_tasks")
    subtask = Subtask(title=body.title.strip(), completed=False)
    task.subtasks.append(subtask)
    await save_task(db, task)
    return success_response(serialize_subtask(subtask), "Subtask added successfully")


@router.patch("/{task_id}/subtasks/{subtask_id}/complete")
async def complete_subtask(
    task_id: str,
    subtask_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Completing the last open subtask completes the task itself."""
    task = await get_accessible_task(db, task_id, current_user, "manage_tasks")
    subtask = next((s for s in task.subtasks if s.subtask_id == subtask_id), None)
    if not subtask:
        raise NotFoundError("Subtask not found", "SUBTASK_NOT_FOUND")

    now = utcnow()
    if not subtask.completed:
        subtask.completed = True
        subtask.completed_at = now

    status_changed = False
    if all(s.completed for s in task.subtasks) and task.status != TaskStatus.completed:
        task.status = TaskStatus.completed
        status_changed = True
    await save_task(db, task, status_changed, now)
    if status_changed:
        await notify_completion(db, task, current_user)
    return success_response(serialize_task(task, now), "Subtask completed successfully")


@router.post("/{task_id}/time-entries", status_code=status.HTTP_201_CREATED)
async def add_time_entry(
    task_id: str,
    body: TimeEntryCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Log work on a task. Duration defaults to the whole minutes between start and end."""
    task = await get_accessible_task(db, task_id, current_user, "manage_tasks")
    if body.end_time and body.end_time < body.start_time:
        raise BadRequestError("End time cannot be before start time", "INVALID_TIME_RANGE")

    duration = body.duration
    if duration is None:
        duration = round((body.end_time - body.start_time).total_seconds() / 60) if body.end_time else 0

    entry = TimeEntry(
        user_id=current_user.user_id,
        start_time=body.start_time,
        end_time=body.end_time,
        duration=duration,
        description=body.description,
    )
    task.time_entries.append(entry)
    task.actual_time = sum(e.duration or 0 for e in task.time_entries)
    await save_task(db, task)
    return success_response(serialize_time_entry(entry), "Time entry added successfully")


@router.post("/{task_id}/comments", status_code=status.HTTP_201_CREATED)
async def add_comment(
    task_id: str,
    body: CommentCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    task = await get_accessible_task(db, task_id, current_user, "add_comments")
    content = body.content.strip()
    if not content:
        raise BadRequestError("Comment cannot be empty", "VALIDATION_ERROR")
    comment = TaskComment(user_id=current_user.user_id, content=content)
    task.comments.append(comment)
    await save_task(db, task)
    return success_response(serialize_comment(comment), "Comment added successfully")
