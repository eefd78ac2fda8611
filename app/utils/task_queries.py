"""Task listing and creation shared by the task and user routers."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.constants import NotificationType, TaskPriority, TaskStatus
from app.core.errors import BadRequestError, ForbiddenError, NotFoundError
from app.models.project import Project
from app.models.task import Task
from app.models.user import User
from app.schemas.taskSchema import TaskCreateRequest
from app.services.NotificationService import notify_safely
from app.utils.dates import start_of_day, utcnow
from app.utils.permissions import has_permission
from app.utils.recurrence import advance_recurrence
from app.utils.task_status import mark_completed

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "due": Task.due,
    "createdAt": Task.created_at,
    "updatedAt": Task.updated_at,
    "title": Task.title,
    "status": Task.status,
    "priority": case(
        (Task.priority == TaskPriority.high, 3),
        (Task.priority == TaskPriority.medium, 2),
        else_=1,
    ),
}


def effective_status_clause(status: TaskStatus, now: datetime):
    """SQL equivalent of effective_status() == status."""
    if status == TaskStatus.completed:
        return Task.status == TaskStatus.completed
    if status == TaskStatus.failed:
        return or_(
            Task.status == TaskStatus.failed,
            and_(Task.status == TaskStatus.in_progress, Task.due < now),
        )
    return and_(Task.status == TaskStatus.in_progress, Task.due >= now)


async def list_tasks(
    db: AsyncSession,
    *criteria,
    page: int = 1,
    limit: int = 8,
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
    sort_by: str = "due",
    sort_order: str = "asc",
    include_archived: bool = False,
    now: Optional[datetime] = None,
) -> tuple[list, int]:
    """Filtered, sorted page of tasks plus the total match count."""
    now = now or utcnow()
    conditions = list(criteria)
    if not include_archived:
        conditions.append(Task.archived.is_(False))
    if status:
        conditions.append(effective_status_clause(status, now))
    if priority:
        conditions.append(Task.priority == priority)
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

    total = (await db.execute(select(func.count(Task.task_id)).where(*conditions))).scalar() or 0

    column = SORT_COLUMNS.get(sort_by, Task.due)
    ordering = column.desc() if sort_order == "desc" else column.asc()
    result = await db.execute(
        select(Task)
        .where(*conditions)
        .order_by(ordering, Task.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return result.scalars().all(), total


def check_due_date(due: datetime, now: Optional[datetime] = None):
    """Due dates may not fall before today's midnight."""
    now = now or utcnow()
    if due < start_of_day(now):
        raise BadRequestError("Due date cannot be in the past", "INVALID_DUE_DATE")


async def resolve_project_for_task(db: AsyncSession, project_id: Optional[str], actor: User) -> Optional[Project]:
    if not project_id:
        return None
    project = await db.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found", "PROJECT_NOT_FOUND")
    if not has_permission(actor.user_id, project, "manage_tasks"):
        raise ForbiddenError("You cannot add tasks to this project")
    return project


def apply_recurring(task: Task, recurring):
    if recurring is None:
        return
    task.recurring_enabled = recurring.enabled and recurring.pattern is not None
    task.recurring_pattern = recurring.pattern
    task.recurring_interval = recurring.interval
    task.recurring_end_date = recurring.end_date
    task.recurring_next_due = None


async def create_task_for(db: AsyncSession, owner_id: str, body: TaskCreateRequest, actor: User) -> Task:
    """Create a task owned by `owner_id`. Assigning someone else notifies them."""
    now = utcnow()
    check_due_date(body.due, now)
    project = await resolve_project_for_task(db, body.project, actor)

    if body.assignee and not await db.get(User, body.assignee):
        raise NotFoundError("Assignee not found", "USER_NOT_FOUND")

    task = Task(
        user_id=owner_id,
        project_id=project.project_id if project else None,
        assignee_id=body.assignee,
        title=body.title,
        description=body.description,
        due=body.due,
        priority=body.priority,
        status=body.status,
        category=body.category,
        tags=body.tags,
        labels=body.labels,
        estimated_time=body.estimated_time,
        actual_time=0,
        subtasks=[],
        time_entries=[],
        comments=[],
    )
    apply_recurring(task, body.recurring)
    if task.status == TaskStatus.completed:
        mark_completed(task, now)
        advance_recurrence(task)
    db.add(task)
    await db.commit()
    logger.info(f"📝 Task {task.task_id} created for {owner_id}")

    if task.assignee_id and task.assignee_id != actor.user_id:
        await notify_safely(
            db,
            task.assignee_id,
            NotificationType.task_assigned,
            "New task assigned",
            f"{actor.fullname} assigned you \"{task.title}\"",
            {"taskId": task.task_id, "projectId": task.project_id, "assignedBy": actor.user_id},
        )
    return task
