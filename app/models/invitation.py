import uuid
from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, Text
from app.constants.constants import InvitationRole, InvitationStatus
from app.models.base import Base, TimestampMixin


class Invitation(Base, TimestampMixin):
    """Team invitation. Only one pending row may exist per (team, invitee)."""

    __tablename__ = "invitations"

    invitation_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    team_id = Column(String, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False, index=True)
    inviter_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    invitee_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(Enum(InvitationRole), nullable=False, default=InvitationRole.member)
    message = Column(Text, nullable=True)
    status = Column(Enum(InvitationStatus), nullable=False, default=InvitationStatus.pending)
    responded_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
