"""Project router: projects inside teams, project membership, project tasks and statistics."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.constants.constants import NotificationType, ProjectRole, ProjectStatus, TaskPriority, TaskStatus
from app.core.database import aget_db
from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.security import get_current_user
from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.team import Team
from app.models.user import User
from app.schemas.projectSchema import (
    ProjectCreateRequest,
    ProjectMemberRequest,
    ProjectMemberRoleRequest,
    ProjectSettings,
    ProjectUpdateRequest,
)
from app.services.NotificationService import notify_safely
from app.utils.aggregate_stats import compute_project_progress, compute_project_stats
from app.utils.dates import utcnow
from app.utils.lookups import delete_project_cascade, get_project_or_404, get_team_or_404, load_users, member_ids
from app.utils.permissions import can_delete_project, find_member, has_permission, role_of
from app.utils.response import clamp_pagination, paginated_response, success_response
from app.utils.serializers import serialize_project, serialize_task
from app.utils.task_queries import list_tasks

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/projects",
    tags=["projects"]
)


# -----------------------------
# Helpers
# -----------------------------
async def get_project_for(db: AsyncSession, project_id: str, user: User, action: str = "view_project") -> Project:
    """
    Fetch a project the user may perform `action` on.

    Project roles decide first; owners and admins of the owning team keep
    authority over every project of the team.
    """
    project = await get_project_or_404(db, project_id)
    if has_permission(user.user_id, project, action):
        return project
    if project.team_id:
        team = await db.get(Team, project.team_id)
        if team and has_permission(user.user_id, team, "manage_projects"):
            return project
    raise ForbiddenError("Insufficient permissions for this project")


def apply_project_settings(project: Project, project_settings: Optional[ProjectSettings]):
    if project_settings is None:
        return
    if project_settings.default_priority is not None:
        project.default_priority = project_settings.default_priority
    if project_settings.visibility is not None:
        project.visibility = project_settings.visibility
    if project_settings.require_approval is not None:
        project.require_approval = project_settings.require_approval


async def project_tasks(db: AsyncSession, project_id: str):
    result = await db.execute(select(Task).where(Task.project_id == project_id))
    return result.scalars().all()


async def serialize_project_full(db: AsyncSession, project: Project) -> dict:
    users = await load_users(db, member_ids(project))
    return serialize_project(project, users)


async def notify_project_members(db: AsyncSession, project: Project, actor: User, type: NotificationType,
                                 title: str, message: str):
    for user_id in member_ids(project) - {actor.user_id}:
        await notify_safely(db, user_id, type, title, message, {"projectId": project.project_id, "teamId": project.team_id})


# -----------------------------
# Projects
# -----------------------------
@router.get("/")
async def list_projects(
    team_id: Optional[str] = Query(None, alias="teamId"),
    status_filter: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = None,
    archived: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Projects the caller owns or belongs to. `all` disables a status or priority filter."""
    memberships = select(ProjectMember.project_id).where(ProjectMember.user_id == current_user.user_id)
    query = select(Project).where(
        or_(Project.owner_id == current_user.user_id, Project.project_id.in_(memberships)),
        Project.archived.is_(archived),
    )
    if team_id:
        query = query.where(Project.team_id == team_id)
    if status_filter and status_filter != "all":
        try:
            query = query.where(Project.status == ProjectStatus(status_filter))
        except ValueError:
            raise BadRequestError(f"Invalid status: {status_filter}", "VALIDATION_ERROR")
    if priority and priority != "all":
        try:
            query = query.where(Project.priority == TaskPriority(priority))
        except ValueError:
            raise BadRequestError(f"Invalid priority: {priority}", "VALIDATION_ERROR")

    result = await db.execute(query.order_by(Project.created_at.desc()))
    projects = result.scalars().all()
    users = await load_users(db, member_ids(*projects))
    return success_response([serialize_project(p, users) for p in projects])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_project(
    body: ProjectCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Create a project, optionally inside a team. The creator becomes its manager."""
    team = None
    if body.team:
        team = await get_team_or_404(db, body.team)
        if not has_permission(current_user.user_id, team, "manage_projects"):
            raise ForbiddenError("Insufficient permissions to create project in this team")

    project = Project(
        name=body.name.strip(),
        description=body.description,
        owner_id=current_user.user_id,
        team_id=team.team_id if team else None,
        status=body.status or ProjectStatus.planning,
        priority=body.priority or TaskPriority.medium,
        start_date=body.start_date,
        end_date=body.end_date,
        members=[ProjectMember(user_id=current_user.user_id, role=ProjectRole.manager, joined_at=utcnow())],
    )
    if body.color:
        project.color = body.color
    if body.icon:
        project.icon = body.icon
    apply_project_settings(project, body.settings)
    db.add(project)
    await db.commit()
    logger.info(f"📁 Project {project.project_id} created by {current_user.username}")

    if team:
        for user_id in member_ids(team) - {current_user.user_id}:
            await notify_safely(
                db,
                user_id,
                NotificationType.project_created,
                f"New project in {team.name}",
                f"{current_user.fullname} created the project {project.name}",
                {"projectId": project.project_id, "teamId": team.team_id},
            )

    return success_response(await serialize_project_full(db, project), "Project created successfully")


@router.get("/{project_id}")
async def get_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    project = await get_project_for(db, project_id, current_user)
    data = await serialize_project_full(db, project)
    if project.team_id:
        team = await db.get(Team, project.team_id)
        data["team"] = {"id": team.team_id, "name": team.name} if team else {"id": project.team_id}
    data["taskCount"] = len(await project_tasks(db, project_id))
    return success_response(data)


@router.put("/{project_id}")
async def update_project(
    project_id: str,
    body: ProjectUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    project = await get_project_for(db, project_id, current_user, "edit_project")
    fields = body.model_dump(exclude_unset=True)

    start_date = body.start_date if "start_date" in fields else project.start_date
    end_date = body.end_date if "end_date" in fields else project.end_date
    if start_date and end_date and start_date > end_date:
        raise BadRequestError("Start date cannot be after end date", "INVALID_DATE_RANGE")
    project.start_date = start_date
    project.end_date = end_date

    if body.name is not None:
        project.name = body.name.strip()
    if "description" in fields:
        project.description = body.description
    for name in ("color", "icon", "status", "priority"):
        if fields.get(name) is not None:
            setattr(project, name, fields[name])
    apply_project_settings(project, body.settings)
    await db.commit()

    await notify_project_members(
        db, project, current_user, NotificationType.project_updated,
        f"{project.name} was updated", f"{current_user.fullname} updated the project {project.name}",
    )
    return success_response(await serialize_project_full(db, project), "Project updated successfully")


@router.delete("/{project_id}")
async def delete_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Allowed for the project owner and the owner of the project's team. Tasks go with it."""
    project = await get_project_or_404(db, project_id)
    team = await db.get(Team, project.team_id) if project.team_id else None
    if not can_delete_project(current_user.user_id, project, team):
        raise ForbiddenError("Insufficient permissions to delete project")

    removed = await delete_project_cascade(db, project)
    await db.commit()
    logger.info(f"🗑️ Project {project_id} deleted by {current_user.username} with {removed} tasks")
    return success_response(message="Project deleted successfully")


@router.post("/{project_id}/archive")
async def archive_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    project = await get_project_for(db, project_id, current_user, "archive_project")
    if project.archived:
        raise BadRequestError("Project is already archived", "ALREADY_ARCHIVED")
    project.archived = True
    project.archived_at = utcnow()
    project.archived_by = current_user.user_id
    await db.commit()
    return success_response(await serialize_project_full(db, project), "Project archived successfully")


@router.post("/{project_id}/unarchive")
async def unarchive_project(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    project = await get_project_for(db, project_id, current_user, "archive_project")
    if not project.archived:
        raise BadRequestError("Project is not archived", "NOT_ARCHIVED")
    project.archived = False
    project.archived_at = None
    project.archived_by = None
    await db.commit()
    return success_response(await serialize_project_full(db, project), "Project restored successfully")


# -----------------------------
# Members
# -----------------------------
@router.post("/{project_id}/members", status_code=status.HTTP_201_CREATED)
async def add_project_member(
    project_id: str,
    body: ProjectMemberRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Add a user to the project. Team projects only accept members of the team."""
    project = await get_project_for(db, project_id, current_user, "manage_members")
    if not await db.get(User, body.user_id):
        raise NotFoundError("User not found", "USER_NOT_FOUND")
    if project.team_id:
        team = await db.get(Team, project.team_id)
        if not team or role_of(body.user_id, team) is None:
            raise BadRequestError("User must be a team member to join project", "NOT_TEAM_MEMBER")
    if role_of(body.user_id, project):
        raise ConflictError("User is already a project member", "ALREADY_MEMBER")

    project.members.append(ProjectMember(user_id=body.user_id, role=body.role, joined_at=utcnow()))
    await db.commit()

    await notify_safely(
        db,
        body.user_id,
        NotificationType.member_added,
        f"Added to {project.name}",
        f"{current_user.fullname} added you to the project {project.name}",
        {"projectId": project.project_id, "teamId": project.team_id, "addedBy": current_user.user_id},
    )
    return success_response(await serialize_project_full(db, project), "Member added successfully")


@router.put("/{project_id}/members/{user_id}")
async def update_project_member_role(
    project_id: str,
    user_id: str,
    body: ProjectMemberRoleRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    project = await get_project_for(db, project_id, current_user, "manage_members")
    member = find_member(user_id, project)
    if not member:
        raise NotFoundError("Member not found in project", "MEMBER_NOT_FOUND")
    if user_id == project.owner_id:
        raise BadRequestError("Cannot change project owner role", "INVALID_ROLE")

    member.role = body.role
    await db.commit()
    return success_response(await serialize_project_full(db, project), "Member role updated successfully")


@router.delete("/{project_id}/members/{user_id}")
async def remove_project_member(
    project_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    project = await get_project_or_404(db, project_id)
    if user_id != current_user.user_id:
        project = await get_project_for(db, project_id, current_user, "manage_members")

    member = find_member(user_id, project)
    if not member:
        raise NotFoundError("Member not found in project", "MEMBER_NOT_FOUND")
    if user_id == project.owner_id:
        raise BadRequestError("Cannot remove project owner", "INVALID_ROLE")

    project.members.remove(member)
    await db.commit()
    return success_response(await serialize_project_full(db, project), "Member removed successfully")


# -----------------------------
# Tasks and statistics
# -----------------------------
@router.get("/{project_id}/tasks")
async def get_project_tasks(
    project_id: str,
    page: int = 1,
    limit: int = 20,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    assignee: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    await get_project_for(db, project_id, current_user)
    page, limit = clamp_pagination(page, limit, max_limit=100)
    now = utcnow()
    criteria = [Task.project_id == project_id]
    if assignee:
        criteria.append(Task.assignee_id == assignee)
    tasks, total = await list_tasks(
        db, *criteria,
        page=page, limit=limit, status=status_filter, priority=priority, search=search,
        sort_by=sort_by, sort_order=sort_order, now=now,
    )
    return paginated_response([serialize_task(t, now) for t in tasks], page, limit, total)


@router.get("/{project_id}/progress")
async def get_project_progress(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    await get_project_for(db, project_id, current_user)
    tasks = await project_tasks(db, project_id)
    return success_response(compute_project_progress(tasks, utcnow()))


@router.get("/{project_id}/stats")
async def get_project_stats(
    project_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Breakdown by priority and status, member contribution, timeline and health."""
    project = await get_project_for(db, project_id, current_user)
    tasks = await project_tasks(db, project_id)
    stats = compute_project_stats(project, tasks, list(project.members), utcnow())
    stats["memberCount"] = len(project.members)
    stats["status"] = project.status.value
    stats["priority"] = project.priority.value
    return success_response(stats)
