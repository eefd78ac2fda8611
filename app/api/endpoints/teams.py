"""Team collaboration router: teams, membership, invite codes, invitations and team analytics."""

import secrets
from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.api.endpoints.invitations import ensure_team_capacity, list_invitations, send_invitation
from app.constants.constants import InvitationStatus, NotificationType, TeamRole, TaskStatus
from app.core.config import settings
from app.core.database import aget_db
from app.core.errors import APIError, BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.security import get_current_user
from app.models.invitation import Invitation
from app.models.project import Project
from app.models.task import Task
from app.models.team import Team, TeamMember
from app.models.user import User
from app.schemas.teamSchema import (
    AddMemberRequest,
    SendInvitationRequest,
    TeamCreateRequest,
    TeamSettings,
    TeamUpdateRequest,
    UpdateMemberRoleRequest,
)
from app.services.NotificationService import notify_safely
from app.utils.aggregate_stats import compute_team_overview, compute_team_stats, percent
from app.utils.dates import utcnow
from app.utils.lookups import delete_team_cascade, get_team_or_404, load_users, member_ids
from app.utils.permissions import OWNER, find_member, has_permission, role_of
from app.utils.response import clamp_pagination, paginated_response, success_response
from app.utils.serializers import serialize_invitation, serialize_member, serialize_team
from app.utils.task_status import effective_status

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/teams",
    tags=["teams"]
)

INVITE_CODE_ATTEMPTS = 5


# -----------------------------
# Helpers
# -----------------------------
async def get_team_for(db: AsyncSession, team_id: str, user: User, action: str = "view_team") -> Team:
    team = await get_team_or_404(db, team_id)
    if not has_permission(user.user_id, team, action):
        if role_of(user.user_id, team) is None:
            raise ForbiddenError("You are not a member of this team")
        raise ForbiddenError("Insufficient permissions for this team")
    return team


async def generate_invite_code(db: AsyncSession) -> str:
    """16 hex characters, retried a few times against existing codes."""
    for _ in range(INVITE_CODE_ATTEMPTS):
        code = secrets.token_hex(8)
        taken = await db.execute(select(Team.team_id).where(Team.invite_code == code))
        if not taken.first():
            return code
    raise APIError(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to generate unique invite code", "INVITE_CODE_ERROR")


def apply_team_settings(team: Team, team_settings: Optional[TeamSettings]):
    if team_settings is None:
        return
    if team_settings.max_members is not None:
        if team_settings.max_members < len(team.members or []):
            raise BadRequestError("Maximum members cannot be lower than the current member count", "INVALID_SETTINGS")
        team.max_members = team_settings.max_members
    if team_settings.allow_invites is not None:
        team.allow_invites = team_settings.allow_invites
    if team_settings.default_role is not None:
        if team_settings.default_role == TeamRole.owner:
            raise BadRequestError("Default role cannot be owner", "INVALID_SETTINGS")
        team.default_role = team_settings.default_role
    if team_settings.visibility is not None:
        team.visibility = team_settings.visibility


async def team_projects(db: AsyncSession, team_id: str) -> List[Project]:
    result = await db.execute(select(Project).where(Project.team_id == team_id))
    return result.scalars().all()


async def tasks_in_projects(db: AsyncSession, projects: List[Project]) -> List[Task]:
    project_ids = [p.project_id for p in projects]
    if not project_ids:
        return []
    result = await db.execute(select(Task).where(Task.project_id.in_(project_ids)))
    return result.scalars().all()


async def serialize_team_for(db: AsyncSession, team: Team, viewer: User) -> dict:
    users = await load_users(db, member_ids(team))
    return serialize_team(team, users, include_invite_code=has_permission(viewer.user_id, team, "invite_members"))


async def ensure_unique_team_name(db: AsyncSession, name: str, user_id: str, exclude_team_id: Optional[str] = None):
    """Team names are unique among the teams a user owns or belongs to."""
    memberships = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
    query = select(Team.team_id).where(
        Team.name == name,
        or_(Team.owner_id == user_id, Team.team_id.in_(memberships)),
    )
    if exclude_team_id:
        query = query.where(Team.team_id != exclude_team_id)
    if (await db.execute(query)).first():
        raise ConflictError("Team name already exists", "TEAM_EXISTS")


# -----------------------------
# Teams
# -----------------------------
@router.get("/")
async def list_teams(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Teams the caller owns or belongs to, newest first."""
    memberships = select(TeamMember.team_id).where(TeamMember.user_id == current_user.user_id)
    result = await db.execute(
        select(Team)
        .where(or_(Team.owner_id == current_user.user_id, Team.team_id.in_(memberships)))
        .order_by(Team.created_at.desc())
    )
    teams = result.scalars().all()
    users = await load_users(db, member_ids(*teams))
    return success_response([
        serialize_team(t, users, include_invite_code=has_permission(current_user.user_id, t, "invite_members"))
        for t in teams
    ])


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_team(
    body: TeamCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Create a team. The creator becomes its owner member."""
    name = body.name.strip()
    await ensure_unique_team_name(db, name, current_user.user_id)

    team = Team(
        name=name,
        description=body.description,
        owner_id=current_user.user_id,
        invite_code=await generate_invite_code(db),
        max_members=settings.TEAM_MAX_MEMBERS,
        allow_invites=True,
        default_role=TeamRole.member,
        members=[TeamMember(user_id=current_user.user_id, role=TeamRole.owner, joined_at=utcnow())],
    )
    apply_team_settings(team, body.settings)
    db.add(team)
    await db.commit()
    logger.info(f"👥 Team {team.team_id} created by {current_user.username}")

    return success_response(await serialize_team_for(db, team, current_user), "Team created successfully")


@router.post("/join/{invite_code}")
async def join_team(
    invite_code: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    result = await db.execute(select(Team).where(Team.invite_code == invite_code))
    team = result.scalars().first()
    if not team:
        raise NotFoundError("Invalid invite code", "INVALID_INVITE_CODE")

    now = utcnow()
    if team.invite_code_expires and team.invite_code_expires < now:
        raise BadRequestError("Invite code has expired", "INVITE_CODE_EXPIRED")
    if not team.allow_invites:
        raise ForbiddenError("This team is not accepting new members")
    if role_of(current_user.user_id, team):
        raise ConflictError("You are already a member of this team", "ALREADY_MEMBER")
    ensure_team_capacity(team)

    role = team.default_role if team.default_role != TeamRole.owner else TeamRole.member
    team.members.append(TeamMember(user_id=current_user.user_id, role=role, joined_at=now))
    await db.commit()
    logger.info(f"✅ {current_user.username} joined team {team.team_id} with invite code")

    await notify_safely(
        db,
        team.owner_id,
        NotificationType.member_added,
        f"{current_user.fullname} joined {team.name}",
        f"{current_user.fullname} joined {team.name} with the invite code",
        {"teamId": team.team_id, "userId": current_user.user_id},
    )
    return success_response(await serialize_team_for(db, team, current_user), "Successfully joined team")


@router.get("/{team_id}")
async def get_team(
    team_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    team = await get_team_for(db, team_id, current_user)
    data = await serialize_team_for(db, team, current_user)
    projects = await team_projects(db, team_id)
    data["projects"] = [{"id": p.project_id, "name": p.name, "status": p.status.value} for p in projects]
    return success_response(data)


@router.put("/{team_id}")
async def update_team(
    team_id: str,
    body: TeamUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    team = await get_team_for(db, team_id, current_user, "manage_settings")
    if body.name is not None and body.name.strip() != team.name:
        await ensure_unique_team_name(db, body.name.strip(), current_user.user_id, exclude_team_id=team_id)
        team.name = body.name.strip()
    if body.description is not None:
        team.description = body.description
    apply_team_settings(team, body.settings)
    await db.commit()

    for member in list(team.members):
        if member.user_id == current_user.user_id:
            continue
        await notify_safely(
            db,
            member.user_id,
            NotificationType.team_updated,
            f"{team.name} was updated",
            f"{current_user.fullname} updated the team settings of {team.name}",
            {"teamId": team.team_id},
        )
    return success_response(await serialize_team_for(db, team, current_user), "Team updated successfully")


@router.delete("/{team_id}")
async def delete_team(
    team_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Only the owner may delete a team. Its projects and their tasks go with it."""
    team = await get_team_for(db, team_id, current_user, "delete_team")
    removed = await delete_team_cascade(db, team)
    await db.commit()
    logger.info(f"🗑️ Team {team_id} deleted by {current_user.username} with {removed} projects")
    return success_response(message="Team deleted successfully")


@router.post("/{team_id}/regenerate-invite")
async def regenerate_invite_code(
    team_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    team = await get_team_for(db, team_id, current_user, "invite_members")
    team.invite_code = await generate_invite_code(db)
    team.invite_code_expires = None
    await db.commit()
    return success_response({"inviteCode": team.invite_code}, "Invite code regenerated successfully")


# -----------------------------
# Members
# -----------------------------
@router.get("/{team_id}/members")
async def list_members(
    team_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Members with their task counts across the team's projects."""
    team = await get_team_for(db, team_id, current_user, "view_team_members")
    tasks = await tasks_in_projects(db, await team_projects(db, team_id))
    users = await load_users(db, member_ids(team))
    now = utcnow()

    members = []
    for member in team.members:
        member_tasks = [t for t in tasks if (t.assignee_id or t.user_id) == member.user_id]
        completed = sum(1 for t in member_tasks if effective_status(t, now) == TaskStatus.completed)
        data = serialize_member(member, users, "team")
        user = users.get(member.user_id)
        data["lastActive"] = user.last_active if user else None
        data.update({
            "taskCount": len(member_tasks),
            "completedTaskCount": completed,
            "completionRate": percent(completed, len(member_tasks)),
        })
        members.append(data)

    return success_response({"members": members, "memberCount": len(team.members)})


@router.post("/{team_id}/members", status_code=status.HTTP_201_CREATED)
async def add_member(
    team_id: str,
    body: AddMemberRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    team = await get_team_for(db, team_id, current_user, "manage_members")
    if body.role == TeamRole.owner:
        raise BadRequestError("Cannot add a member with the owner role", "INVALID_ROLE")
    if not await db.get(User, body.user_id):
        raise NotFoundError("User not found", "USER_NOT_FOUND")
    if role_of(body.user_id, team):
        raise ConflictError("User is already a team member", "ALREADY_MEMBER")
    ensure_team_capacity(team)

    team.members.append(TeamMember(
        user_id=body.user_id,
        role=body.role,
        invited_by=current_user.user_id,
        joined_at=utcnow(),
    ))
    await db.commit()

    await notify_safely(
        db,
        body.user_id,
        NotificationType.member_added,
        f"Added to {team.name}",
        f"{current_user.fullname} added you to {team.name}",
        {"teamId": team.team_id, "addedBy": current_user.user_id},
    )
    return success_response(await serialize_team_for(db, team, current_user), "Member added successfully")


@router.put("/{team_id}/members/{user_id}")
async def update_member_role(
    team_id: str,
    user_id: str,
    body: UpdateMemberRoleRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    team = await get_team_or_404(db, team_id)
    if role_of(current_user.user_id, team) != OWNER:
        raise ForbiddenError("Only team owner can update member roles")

    member = find_member(user_id, team)
    if not member:
        raise NotFoundError("Member not found in team", "MEMBER_NOT_FOUND")
    if member.role == TeamRole.owner or user_id == team.owner_id:
        raise BadRequestError("Cannot change owner role", "INVALID_ROLE")
    if body.role == TeamRole.owner:
        raise BadRequestError("Cannot promote member to owner role", "INVALID_ROLE")

    member.role = body.role
    await db.commit()
    return success_response(await serialize_team_for(db, team, current_user), "Member role updated successfully")


@router.delete("/{team_id}/members/{user_id}")
async def remove_member(
    team_id: str,
    user_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Owners and admins remove others; anyone may leave. The owner stays. Removal also covers the team's projects."""
    team = await get_team_or_404(db, team_id)
    removing_self = user_id == current_user.user_id
    if not removing_self and not has_permission(current_user.user_id, team, "manage_members"):
        raise ForbiddenError("Insufficient permissions to remove members")

    member = find_member(user_id, team)
    if not member:
        raise NotFoundError("Member not found in team", "MEMBER_NOT_FOUND")
    if member.role == TeamRole.owner or user_id == team.owner_id:
        raise BadRequestError("Cannot remove team owner", "INVALID_ROLE")

    for project in await team_projects(db, team_id):
        project_member = find_member(user_id, project)
        if project_member:
            project.members.remove(project_member)
    team.members.remove(member)
    await db.commit()
    logger.info(f"👋 User {user_id} removed from team {team_id}")

    if not removing_self:
        await notify_safely(
            db,
            user_id,
            NotificationType.member_removed,
            f"Removed from {team.name}",
            f"{current_user.fullname} removed you from {team.name}",
            {"teamId": team.team_id, "removedBy": current_user.user_id},
        )
    return success_response(await serialize_team_for(db, team, current_user), "Member removed successfully")


# -----------------------------
# Invitations
# -----------------------------
@router.post("/{team_id}/invitations", status_code=status.HTTP_201_CREATED)
async def invite_to_team(
    team_id: str,
    body: SendInvitationRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    team = await get_team_or_404(db, team_id)
    invitation = await send_invitation(db, team, current_user, body, background_tasks)
    users = await load_users(db, [invitation.inviter_id, invitation.invitee_id])
    return success_response(serialize_invitation(invitation, users, team), "Invitation sent successfully")


@router.get("/{team_id}/invitations")
async def get_team_invitations(
    team_id: str,
    page: int = 1,
    limit: int = 10,
    status_filter: Optional[InvitationStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Members see pending invitations; owners and admins see the full history."""
    team = await get_team_for(db, team_id, current_user)
    can_see_history = has_permission(current_user.user_id, team, "invite_members")
    if not can_see_history:
        if status_filter and status_filter != InvitationStatus.pending:
            raise ForbiddenError("Members can only view pending invitations")
        status_filter = InvitationStatus.pending

    page, limit = clamp_pagination(page, limit)
    items, total = await list_invitations(
        db, Invitation.team_id == team_id, status=status_filter, page=page, limit=limit
    )
    return paginated_response(items, page, limit, total)


# -----------------------------
# Statistics
# -----------------------------
@router.get("/{team_id}/stats")
async def get_team_stats(
    team_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Headline counters over the team's projects and their tasks."""
    team = await get_team_for(db, team_id, current_user)
    projects = await team_projects(db, team_id)
    tasks = await tasks_in_projects(db, projects)
    users = await load_users(db, member_ids(team))
    return success_response(compute_team_overview(team, tasks, projects, users, utcnow()))


@router.get("/{team_id}/analytics")
async def get_team_analytics(
    team_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Completion, trend, per-member activity and health over every task owned by a team member."""
    team = await get_team_for(db, team_id, current_user)
    projects = await team_projects(db, team_id)
    result = await db.execute(select(Task).where(Task.user_id.in_(member_ids(team))))
    stats = compute_team_stats(result.scalars().all(), list(team.members), projects, utcnow())
    return success_response(stats)
