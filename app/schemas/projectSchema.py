from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator, model_validator

from app.constants.constants import ProjectRole, ProjectStatus, TaskPriority, Visibility
from app.schemas.baseSchema import CamelModel, reject_html


class ProjectSettings(CamelModel):
    default_priority: Optional[TaskPriority] = None
    visibility: Optional[Visibility] = None
    require_approval: Optional[bool] = None


class _ProjectFields(CamelModel):
    description: Optional[str] = Field(None, max_length=500)
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    icon: Optional[str] = Field(None, max_length=50)
    status: Optional[ProjectStatus] = None
    priority: Optional[TaskPriority] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    settings: Optional[ProjectSettings] = None

    @field_validator("description")
    @classmethod
    def no_html(cls, value):
        return reject_html(value)

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class ProjectCreateRequest(_ProjectFields):
    name: str = Field(..., min_length=1, max_length=100)
    team: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_no_html(cls, value):
        return reject_html(value)


class ProjectUpdateRequest(_ProjectFields):
    name: Optional[str] = Field(None, min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def name_no_html(cls, value):
        return reject_html(value)


class ProjectMemberRequest(CamelModel):
    user_id: str
    role: ProjectRole = ProjectRole.contributor


class ProjectMemberRoleRequest(CamelModel):
    role: ProjectRole
