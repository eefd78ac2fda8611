from datetime import datetime
from typing import List, Optional
from pydantic import Field, field_validator

from app.constants.constants import RecurrencePattern, TaskPriority, TaskStatus
from app.schemas.baseSchema import CamelModel, reject_html


class RecurringSettings(CamelModel):
    enabled: bool = False
    pattern: Optional[RecurrencePattern] = None
    interval: int = Field(1, ge=1, le=365)
    end_date: Optional[datetime] = None


class TaskCreateRequest(CamelModel):
    """Request schema for creating a new task."""
    title: str = Field(..., min_length=1, max_length=100)
    due: datetime
    priority: TaskPriority = TaskPriority.medium
    description: Optional[str] = Field(None, max_length=1000)
    tags: List[str] = Field(default_factory=list)
    labels: List[str] = Field(default_factory=list)
    status: TaskStatus = TaskStatus.in_progress
    category: Optional[str] = None
    project: Optional[str] = None
    assignee: Optional[str] = None
    estimated_time: Optional[int] = Field(None, ge=0)
    recurring: Optional[RecurringSettings] = None

    @field_validator("title", "description")
    @classmethod
    def no_html(cls, value):
        return reject_html(value)

    @field_validator("tags", "labels")
    @classmethod
    def no_html_items(cls, value):
        return [reject_html(item.strip()) for item in value if item and item.strip()]


class TaskUpdateRequest(CamelModel):
    """Request schema for updating a task. Only fields present are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=100)
    due: Optional[datetime] = None
    priority: Optional[TaskPriority] = None
    description: Optional[str] = Field(None, max_length=1000)
    tags: Optional[List[str]] = None
    labels: Optional[List[str]] = None
    status: Optional[TaskStatus] = None
    category: Optional[str] = None
    project: Optional[str] = None
    assignee: Optional[str] = None
    estimated_time: Optional[int] = Field(None, ge=0)
    recurring: Optional[RecurringSettings] = None

    @field_validator("title", "description")
    @classmethod
    def no_html(cls, value):
        return reject_html(value)


class TaskStatusUpdateRequest(CamelModel):
    """Request schema for updating task status."""
    status: TaskStatus


class SubtaskCreateRequest(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)

    @field_validator("title")
    @classmethod
    def no_html(cls, value):
        return reject_html(value)


class TimeEntryCreateRequest(CamelModel):
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = Field(None, ge=0)
    description: Optional[str] = Field(None, max_length=200)


class CommentCreateRequest(CamelModel):
    content: str = Field(..., min_length=1, max_length=1000)

    @field_validator("content")
    @classmethod
    def no_html(cls, value):
        return reject_html(value)
