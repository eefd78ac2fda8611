from typing import Optional
from pydantic import EmailStr, Field, field_validator

from app.constants.constants import InvitationRole, TeamRole, Visibility
from app.schemas.baseSchema import CamelModel, reject_html


class TeamSettings(CamelModel):
    max_members: Optional[int] = Field(None, ge=1, le=500)
    allow_invites: Optional[bool] = None
    default_role: Optional[TeamRole] = None
    visibility: Optional[Visibility] = None


class TeamCreateRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    settings: Optional[TeamSettings] = None

    @field_validator("name", "description")
    @classmethod
    def no_html(cls, value):
        return reject_html(value)


class TeamUpdateRequest(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    settings: Optional[TeamSettings] = None

    @field_validator("name", "description")
    @classmethod
    def no_html(cls, value):
        return reject_html(value)


class AddMemberRequest(CamelModel):
    user_id: str
    role: TeamRole = TeamRole.member


class UpdateMemberRoleRequest(CamelModel):
    role: TeamRole


class SendInvitationRequest(CamelModel):
    """Invite an existing user by id, username or email."""
    user_id: Optional[str] = None
    username: Optional[str] = None
    email: Optional[EmailStr] = None
    role: InvitationRole = InvitationRole.member
    message: Optional[str] = Field(None, max_length=500)

    @field_validator("message")
    @classmethod
    def no_html(cls, value):
        return reject_html(value)
