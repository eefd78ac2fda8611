import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.endpoints.auth import clear_auth_cookie
from app.api.endpoints.invitations import list_invitations
from app.constants.constants import InvitationStatus, TaskPriority, TaskStatus
from app.core.config import settings
from app.core.database import aget_db
from app.core.errors import BadRequestError, UnauthorizedError
from app.core.limiter import limiter
from app.core.security import ensure_self_or_admin, get_current_user, hash_password, verify_password
from app.models.invitation import Invitation
from app.models.project import Project, ProjectMember
from app.models.task import Task
from app.models.team import Team, TeamMember
from app.models.user import User
from app.schemas.taskSchema import TaskCreateRequest
from app.schemas.userSchema import AvatarUrlRequest, PasswordChangeRequest, ProfileUpdateRequest, UserUpdateRequest
from app.services.S3Service import delete_file_from_s3
from app.utils.dates import utcnow
from app.utils.lookups import delete_project_cascade, delete_tasks, delete_team_cascade, get_user_or_404
from app.utils.productivity_stats import calculate_productivity_stats, calculate_task_status_summary
from app.utils.response import clamp_pagination, pagination_meta, paginated_response, success_response
from app.utils.serializers import serialize_task, serialize_user
from app.utils.task_queries import create_task_for, list_tasks

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["users"]
)


async def ensure_unique_identity(db: AsyncSession, user: User, username: Optional[str], email: Optional[str]):
    if username and username != user.username:
        taken = await db.execute(select(User.user_id).where(User.username == username))
        if taken.first():
            raise BadRequestError("Username already exists", "USER_EXISTS")
    if email and email.lower() != user.email:
        taken = await db.execute(select(User.user_id).where(User.email == email.lower()))
        if taken.first():
            raise BadRequestError("Email already exists", "USER_EXISTS")


def apply_profile_changes(user: User, body: ProfileUpdateRequest):
    if body.fullname is not None:
        user.fullname = body.fullname
    if body.username is not None:
        user.username = body.username
    if body.email is not None:
        user.email = body.email.lower()
    if body.bio is not None:
        user.bio = body.bio
    if body.avatar is not None:
        user.avatar = body.avatar


async def delete_account(db: AsyncSession, user: User):
    """Remove a user with their tasks, memberships and the teams and projects they own."""
    owned_teams = await db.execute(select(Team).where(Team.owner_id == user.user_id))
    for team in owned_teams.scalars().all():
        await delete_team_cascade(db, team)
    owned_projects = await db.execute(select(Project).where(Project.owner_id == user.user_id))
    for project in owned_projects.scalars().all():
        await delete_project_cascade(db, project)
    await db.flush()

    removed = await delete_tasks(db, Task.user_id == user.user_id)
    for model in (TeamMember, ProjectMember):
        rows = await db.execute(select(model).where(model.user_id == user.user_id))
        for row in rows.scalars().all():
            await db.delete(row)
    await db.flush()
    if user.avatar_public_id:
        delete_file_from_s3(user.avatar_public_id)
    await db.delete(user)
    await db.commit()
    logger.info(f"🗑️ Deleted user {user.user_id} and {removed} tasks")


# -----------------------------
# Directory
# -----------------------------
@router.get("/")
async def list_users(
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Paginated user directory for picking collaborators."""
    page, limit = clamp_pagination(page, limit)
    conditions = []
    if search:
        pattern = f"%{search.strip()}%"
        conditions.append(or_(User.username.ilike(pattern), User.fullname.ilike(pattern)))

    total = (await db.execute(select(func.count(User.user_id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(User).where(*conditions).order_by(User.username).offset((page - 1) * limit).limit(limit)
    )
    users = [serialize_user(u, public=True) for u in result.scalars().all()]
    return paginated_response(users, page, limit, total)


# -----------------------------
# Own profile
# -----------------------------
@router.get("/invitations")
async def my_invitations(
    page: int = 1,
    limit: int = 10,
    status_filter: Optional[InvitationStatus] = Query(InvitationStatus.pending, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Invitations received by the current user."""
    page, limit = clamp_pagination(page, limit)
    items, total = await list_invitations(
        db, Invitation.invitee_id == current_user.user_id, status=status_filter, page=page, limit=limit
    )
    return paginated_response(items, page, limit, total)


@router.put("/profile")
@limiter.limit(settings.RATE_LIMIT_USER)
async def update_profile(
    request: Request,
    body: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    await ensure_unique_identity(db, current_user, body.username, body.email)
    apply_profile_changes(current_user, body)
    await db.commit()
    return success_response(serialize_user(current_user), "Profile updated successfully")


@router.put("/profile/password")
@limiter.limit(settings.RATE_LIMIT_USER)
async def change_password(
    request: Request,
    body: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    if not verify_password(body.current_password, current_user.hashed_password):
        raise UnauthorizedError("Current password is incorrect", "INVALID_CURRENT_PASSWORD")
    current_user.hashed_password = hash_password(body.new_password)
    await db.commit()
    return success_response(message="Password updated successfully")


@router.put("/profile/avatar")
async def set_avatar_url(
    body: AvatarUrlRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Point the avatar at an external URL. Uploaded images go through /upload/avatar."""
    if current_user.avatar_public_id:
        delete_file_from_s3(current_user.avatar_public_id)
        current_user.avatar_public_id = None
    current_user.avatar = body.avatar
    await db.commit()
    return success_response(serialize_user(current_user), "Avatar updated successfully")


@router.delete("/profile")
async def delete_profile(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    await delete_account(db, current_user)
    clear_auth_cookie(response)
    return success_response(message="Account deleted successfully")


# -----------------------------
# By id
# -----------------------------
@router.get("/{user_id}")
async def get_user(
    user_id: str,
    page: int = 1,
    limit: int = 8,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """User with a page of their tasks (with dynamicStatus) and live statistics."""
    ensure_self_or_admin(current_user, user_id)
    user = await get_user_or_404(db, user_id)
    page, limit = clamp_pagination(page, limit)
    now = utcnow()
    tasks, total = await list_tasks(db, Task.user_id == user_id, page=page, limit=limit, now=now)
    stats = await calculate_productivity_stats(db, user_id)
    return success_response({
        "user": serialize_user(user),
        "tasks": [serialize_task(t, now) for t in tasks],
        "stats": stats,
        "pagination": pagination_meta(page, limit, total),
    })


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    body: UserUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    ensure_self_or_admin(current_user, user_id)
    user = await get_user_or_404(db, user_id)

    if body.new_password:
        if not body.current_password:
            raise BadRequestError("Current password is required to set a new password", "CURRENT_PASSWORD_REQUIRED")
        if not verify_password(body.current_password, user.hashed_password):
            raise UnauthorizedError("Current password is incorrect", "INVALID_CURRENT_PASSWORD")
        user.hashed_password = hash_password(body.new_password)

    await ensure_unique_identity(db, user, body.username, body.email)
    apply_profile_changes(user, body)
    await db.commit()
    return success_response(serialize_user(user), "User updated successfully")


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    ensure_self_or_admin(current_user, user_id)
    user = await get_user_or_404(db, user_id)
    is_self = user.user_id == current_user.user_id
    await delete_account(db, user)
    if is_self:
        clear_auth_cookie(response)
    return success_response(message="User and associated tasks deleted successfully")


@router.get("/{user_id}/tasks")
async def get_user_tasks(
    user_id: str,
    page: int = 1,
    limit: int = 8,
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    search: Optional[str] = None,
    sort_by: str = Query("due", alias="sortBy"),
    sort_order: str = Query("asc", alias="sortOrder"),
    archived: bool = False,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    ensure_self_or_admin(current_user, user_id)
    await get_user_or_404(db, user_id)
    page, limit = clamp_pagination(page, limit)
    now = utcnow()
    criteria = [Task.user_id == user_id]
    if archived:
        criteria.append(Task.archived.is_(True))
    tasks, total = await list_tasks(
        db, *criteria,
        page=page, limit=limit, status=status_filter, priority=priority, search=search,
        sort_by=sort_by, sort_order=sort_order, include_archived=archived, now=now,
    )
    return paginated_response([serialize_task(t, now) for t in tasks], page, limit, total)


@router.post("/{user_id}/tasks", status_code=status.HTTP_201_CREATED)
async def create_user_task(
    user_id: str,
    body: TaskCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Create a task for a user; admins may create on behalf of others."""
    ensure_self_or_admin(current_user, user_id)
    await get_user_or_404(db, user_id)
    task = await create_task_for(db, user_id, body, current_user)
    return success_response(serialize_task(task), "Task created successfully")


@router.get("/{user_id}/stats")
async def get_user_stats(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    ensure_self_or_admin(current_user, user_id)
    await get_user_or_404(db, user_id)
    return success_response(await calculate_productivity_stats(db, user_id))


@router.get("/{user_id}/tasks/summary")
async def get_task_summary(
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Status counts using each task's effective status."""
    ensure_self_or_admin(current_user, user_id)
    await get_user_or_404(db, user_id)
    return success_response(await calculate_task_status_summary(db, user_id))
