from datetime import timedelta
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.constants.constants import InvitationStatus, NotificationType, TeamRole
from app.core.config import settings
from app.core.database import aget_db
from app.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from app.core.security import get_current_user
from app.models.invitation import Invitation
from app.models.team import Team, TeamMember
from app.models.user import User
from app.schemas.teamSchema import SendInvitationRequest
from app.services.EmailService import send_email_safely
from app.services.NotificationService import notify_safely
from app.services.email_templates import invitation_accepted_email, team_invite_email
from app.utils.dates import utcnow
from app.utils.lookups import get_invitation_or_404, get_team_or_404, load_users, member_ids
from app.utils.permissions import OWNER, has_permission, role_of
from app.utils.response import success_response
from app.utils.serializers import serialize_invitation, serialize_team

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/invitations",
    tags=["invitations"]
)


# -----------------------------
# Helpers shared with the team router
# -----------------------------
async def list_invitations(
    db: AsyncSession,
    *criteria,
    status: Optional[InvitationStatus] = None,
    page: int = 1,
    limit: int = 10,
) -> tuple[list, int]:
    """Newest first page of invitations with inviter, invitee and team resolved."""
    conditions = list(criteria)
    if status:
        conditions.append(Invitation.status == status)

    total = (await db.execute(select(func.count(Invitation.invitation_id)).where(*conditions))).scalar() or 0
    result = await db.execute(
        select(Invitation)
        .where(*conditions)
        .order_by(Invitation.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    invitations = result.scalars().all()

    users = await load_users(db, [uid for inv in invitations for uid in (inv.inviter_id, inv.invitee_id)])
    teams = {}
    team_ids = {inv.team_id for inv in invitations}
    if team_ids:
        rows = await db.execute(select(Team).where(Team.team_id.in_(team_ids)))
        teams = {team.team_id: team for team in rows.scalars().all()}

    return [serialize_invitation(inv, users, teams.get(inv.team_id)) for inv in invitations], total


def ensure_team_capacity(team: Team):
    if len(team.members) >= team.max_members:
        raise BadRequestError(f"Team has reached maximum member limit of {team.max_members}", "TEAM_FULL")


async def resolve_invitee(db: AsyncSession, body: SendInvitationRequest) -> User:
    if body.user_id:
        invitee = await db.get(User, body.user_id)
    elif body.username:
        result = await db.execute(select(User).where(User.username == body.username))
        invitee = result.scalars().first()
    elif body.email:
        result = await db.execute(select(User).where(User.email == body.email.lower()))
        invitee = result.scalars().first()
    else:
        raise BadRequestError("Provide the userId, username or email of the user to invite", "INVITEE_REQUIRED")

    if not invitee:
        raise NotFoundError("User not found", "USER_NOT_FOUND")
    return invitee


async def send_invitation(
    db: AsyncSession,
    team: Team,
    inviter: User,
    body: SendInvitationRequest,
    background_tasks: BackgroundTasks,
) -> Invitation:
    """
    Create a pending invitation for an existing user.

    Only owners and admins may invite. The invitee must not already be a
    member, must not hold another pending invitation for the team, and the
    team must have room for one more member.
    """
    if not has_permission(inviter.user_id, team, "invite_members"):
        raise ForbiddenError("Insufficient permissions to send invitations")
    if not team.allow_invites and role_of(inviter.user_id, team) != OWNER:
        raise ForbiddenError("Invitations are disabled for this team")

    invitee = await resolve_invitee(db, body)
    if role_of(invitee.user_id, team):
        raise ConflictError("User is already a team member", "ALREADY_MEMBER")

    pending = await db.execute(
        select(Invitation.invitation_id).where(
            Invitation.team_id == team.team_id,
            Invitation.invitee_id == invitee.user_id,
            Invitation.status == InvitationStatus.pending,
        )
    )
    if pending.first():
        raise ConflictError("Pending invitation already exists for this user", "INVITATION_EXISTS")

    ensure_team_capacity(team)

    invitation = Invitation(
        team_id=team.team_id,
        inviter_id=inviter.user_id,
        invitee_id=invitee.user_id,
        role=body.role,
        message=body.message,
        status=InvitationStatus.pending,
        expires_at=utcnow() + timedelta(days=settings.INVITATION_EXPIRY_DAYS),
    )
    db.add(invitation)
    await db.commit()
    logger.info(f"📨 {inviter.username} invited {invitee.username} to team {team.team_id}")

    await notify_safely(
        db,
        invitee.user_id,
        NotificationType.invitation_received,
        f"Invited to {team.name}",
        f"{inviter.fullname or 'Someone'} invited you to join {team.name}",
        {"invitationId": invitation.invitation_id, "teamId": team.team_id, "inviterId": inviter.user_id},
    )
    background_tasks.add_task(send_email_safely, team_invite_email(inviter.fullname, team.name, invitee.email))
    return invitation


def ensure_pending(invitation: Invitation, action: str):
    if invitation.status != InvitationStatus.pending:
        raise BadRequestError(f"Cannot {action} {invitation.status.value} invitation", "INVALID_INVITATION_STATE")


# -----------------------------
# Invitation by id
# -----------------------------
@router.get("/{invitation_id}")
async def get_invitation(
    invitation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Visible to the invitee, the inviter and the team's owners and admins."""
    invitation = await get_invitation_or_404(db, invitation_id)
    team = await db.get(Team, invitation.team_id)
    involved = current_user.user_id in (invitation.invitee_id, invitation.inviter_id)
    if not involved and not (team and has_permission(current_user.user_id, team, "invite_members")):
        raise ForbiddenError("You cannot view this invitation")

    users = await load_users(db, [invitation.inviter_id, invitation.invitee_id])
    return success_response(serialize_invitation(invitation, users, team))


@router.post("/{invitation_id}/accept")
async def accept_invitation(
    invitation_id: str,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    invitation = await get_invitation_or_404(db, invitation_id)
    if invitation.invitee_id != current_user.user_id:
        raise ForbiddenError("You cannot accept this invitation")
    ensure_pending(invitation, "accept")

    now = utcnow()
    if invitation.expires_at < now:
        raise BadRequestError("Invitation has expired", "INVITATION_EXPIRED")

    team = await get_team_or_404(db, invitation.team_id)
    if role_of(current_user.user_id, team):
        raise ConflictError("You are already a team member", "ALREADY_MEMBER")
    ensure_team_capacity(team)

    team.members.append(TeamMember(
        user_id=current_user.user_id,
        role=TeamRole(invitation.role.value),
        invited_by=invitation.inviter_id,
        joined_at=now,
    ))
    invitation.status = InvitationStatus.accepted
    invitation.responded_at = now
    await db.commit()
    logger.info(f"✅ {current_user.username} joined team {team.team_id}")

    await notify_safely(
        db,
        team.owner_id,
        NotificationType.invitation_accepted,
        f"{current_user.fullname} joined {team.name}",
        f"{current_user.fullname} accepted your invitation to join {team.name}",
        {"invitationId": invitation.invitation_id, "teamId": team.team_id, "userId": current_user.user_id},
    )

    users = await load_users(db, member_ids(team) | {invitation.inviter_id})
    owner = users.get(team.owner_id)
    if owner:
        background_tasks.add_task(
            send_email_safely,
            invitation_accepted_email(owner.fullname, current_user.fullname, team.name, owner.email),
        )

    return success_response({
        "team": serialize_team(team, users),
        "invitation": serialize_invitation(invitation, users, team),
    }, "Invitation accepted successfully")


@router.post("/{invitation_id}/deny")
async def deny_invitation(
    invitation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    invitation = await get_invitation_or_404(db, invitation_id)
    if invitation.invitee_id != current_user.user_id:
        raise ForbiddenError("You cannot deny this invitation")
    ensure_pending(invitation, "deny")

    invitation.status = InvitationStatus.denied
    invitation.responded_at = utcnow()
    await db.commit()

    team = await db.get(Team, invitation.team_id)
    team_name = team.name if team else "the team"
    await notify_safely(
        db,
        invitation.inviter_id,
        NotificationType.invitation_denied,
        "Invitation declined",
        f"{current_user.fullname} declined your invitation to join {team_name}",
        {"invitationId": invitation.invitation_id, "teamId": invitation.team_id, "userId": current_user.user_id},
    )

    users = await load_users(db, [invitation.inviter_id, invitation.invitee_id])
    return success_response(serialize_invitation(invitation, users, team), "Invitation denied successfully")


@router.delete("/{invitation_id}")
async def cancel_invitation(
    invitation_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Cancel a pending invitation. Allowed for the inviter and the team owner."""
    invitation = await get_invitation_or_404(db, invitation_id)
    team = await get_team_or_404(db, invitation.team_id)
    is_inviter = invitation.inviter_id == current_user.user_id
    if not is_inviter and role_of(current_user.user_id, team) != OWNER:
        raise ForbiddenError("You cannot cancel this invitation")
    ensure_pending(invitation, "cancel")

    invitation.status = InvitationStatus.cancelled
    invitation.responded_at = utcnow()
    await db.commit()

    users = await load_users(db, [invitation.inviter_id, invitation.invitee_id])
    return success_response(serialize_invitation(invitation, users, team), "Invitation cancelled successfully")
