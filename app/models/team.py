"""Team models for collaboration."""

import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, Text, ForeignKey, Integer, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from app.constants.constants import TeamRole, Visibility
from app.models.base import Base, TimestampMixin


class Team(Base, TimestampMixin):
    """Model representing a team. Exactly one member row carries the owner role."""

    __tablename__ = "teams"
    team_id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    owner_id = Column(String, ForeignKey("users.user_id"), nullable=False)
    invite_code = Column(String, unique=True, index=True, nullable=False)
    invite_code_expires = Column(DateTime, nullable=True)
    max_members = Column(Integer, nullable=False, default=50)
    allow_invites = Column(Boolean, nullable=False, default=True)
    default_role = Column(Enum(TeamRole), nullable=False, default=TeamRole.member)
    visibility = Column(Enum(Visibility), nullable=False, default=Visibility.private)
    archived = Column(Boolean, nullable=False, default=False)
    members = relationship(
        "TeamMember",
        back_populates="team",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TeamMember.joined_at",
    )


class TeamMember(Base, TimestampMixin):
    """Model representing team membership."""

    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uq_team_member"),)
    membership_id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    team_id = Column(String, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    role = Column(Enum(TeamRole), nullable=False, default=TeamRole.member)
    invited_by = Column(String, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    joined_at = Column(DateTime, default=datetime.utcnow)
    team = relationship("Team", back_populates="members")
