"""Task model for the Users of the Taskly system."""

import uuid
from datetime import datetime
from sqlalchemy import (
    Boolean, Column, Text, String, DateTime, Integer, JSON,
    Enum as SQLEnum, ForeignKey
)
from sqlalchemy.orm import relationship
from app.constants.constants import TaskStatus, TaskPriority, RecurrencePattern
from app.models.base import Base, TimestampMixin


class Task(Base, TimestampMixin):
    """Model representing a task owned by a user, optionally inside a project."""

    __tablename__ = "tasks"
    task_id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    project_id = Column(String, ForeignKey("projects.project_id", ondelete="SET NULL"), nullable=True, index=True)
    assignee_id = Column(String, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    due = Column(DateTime, nullable=False)
    priority = Column(SQLEnum(TaskPriority), nullable=False, default=TaskPriority.medium)
    status = Column(SQLEnum(TaskStatus), nullable=False, default=TaskStatus.in_progress)
    category = Column(String, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    labels = Column(JSON, nullable=False, default=list)

    estimated_time = Column(Integer, nullable=True)  # minutes
    actual_time = Column(Integer, nullable=False, default=0)  # minutes
    completed_at = Column(DateTime, nullable=True)
    completion_time = Column(Integer, nullable=True)  # minutes from creation to completion

    archived = Column(Boolean, nullable=False, default=False)
    archived_at = Column(DateTime, nullable=True)

    recurring_enabled = Column(Boolean, nullable=False, default=False)
    recurring_pattern = Column(SQLEnum(RecurrencePattern), nullable=True)
    recurring_interval = Column(Integer, nullable=False, default=1)
    recurring_end_date = Column(DateTime, nullable=True)
    recurring_next_due = Column(DateTime, nullable=True)

    subtasks = relationship(
        "Subtask",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Subtask.created_at",
    )
    time_entries = relationship(
        "TimeEntry",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TimeEntry.start_time",
    )
    comments = relationship(
        "TaskComment",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TaskComment.created_at",
    )


class Subtask(Base, TimestampMixin):
    __tablename__ = "subtasks"
    subtask_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id = Column(String, ForeignKey("tasks.task_id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    task = relationship("Task", back_populates="subtasks")


class TimeEntry(Base, TimestampMixin):
    """A tracked block of work on a task. Duration is in minutes."""

    __tablename__ = "time_entries"
    entry_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id = Column(String, ForeignKey("tasks.task_id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    start_time = Column(DateTime, nullable=False, default=datetime.utcnow)
    end_time = Column(DateTime, nullable=True)
    duration = Column(Integer, nullable=False, default=0)
    description = Column(String(200), nullable=True)
    task = relationship("Task", back_populates="time_entries")


class TaskComment(Base, TimestampMixin):
    __tablename__ = "task_comments"
    comment_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    task_id = Column(String, ForeignKey("tasks.task_id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    edited_at = Column(DateTime, nullable=True)
    task = relationship("Task", back_populates="comments")
