"""Project models. A project may belong to a team and holds its own member list."""

import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, Text, ForeignKey, Enum, UniqueConstraint
from sqlalchemy.orm import relationship
from app.constants.constants import ProjectRole, ProjectStatus, TaskPriority, Visibility
from app.models.base import Base, TimestampMixin


class Project(Base, TimestampMixin):
    __tablename__ = "projects"
    project_id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    color = Column(String(7), nullable=False, default="#3B82F6")
    icon = Column(String, nullable=False, default="folder")
    owner_id = Column(String, ForeignKey("users.user_id"), nullable=False)
    team_id = Column(String, ForeignKey("teams.team_id", ondelete="CASCADE"), nullable=True, index=True)
    status = Column(Enum(ProjectStatus), nullable=False, default=ProjectStatus.planning)
    priority = Column(Enum(TaskPriority), nullable=False, default=TaskPriority.medium)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)

    default_priority = Column(Enum(TaskPriority), nullable=False, default=TaskPriority.medium)
    visibility = Column(Enum(Visibility), nullable=False, default=Visibility.team)
    require_approval = Column(Boolean, nullable=False, default=False)

    archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime, nullable=True)
    archived_by = Column(String, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)

    members = relationship(
        "ProjectMember",
        back_populates="project",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="ProjectMember.joined_at",
    )


class ProjectMember(Base, TimestampMixin):
    __tablename__ = "project_members"
    __table_args__ = (UniqueConstraint("project_id", "user_id", name="uq_project_member"),)
    membership_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    project_id = Column(String, ForeignKey("projects.project_id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    role = Column(Enum(ProjectRole), nullable=False, default=ProjectRole.contributor)
    joined_at = Column(DateTime, default=datetime.utcnow)
    project = relationship("Project", back_populates="members")
