from typing import Optional
from pydantic import EmailStr, Field, field_validator

from app.schemas.baseSchema import CamelModel, reject_html


class RegisterRequest(CamelModel):
    fullname: str = Field(..., min_length=2, max_length=50)
    username: str = Field(..., min_length=3, max_length=30, pattern=r"^[A-Za-z0-9]+$")
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    avatar: Optional[str] = None

    @field_validator("fullname", "username", mode="before")
    @classmethod
    def strip_and_check(cls, value):
        if isinstance(value, str):
            value = value.strip()
        return reject_html(value)


class LoginRequest(CamelModel):
    """`username` accepts either a username or an email address."""
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdateRequest(CamelModel):
    fullname: Optional[str] = Field(None, min_length=2, max_length=50)
    username: Optional[str] = Field(None, min_length=3, max_length=30, pattern=r"^[A-Za-z0-9]+$")
    email: Optional[EmailStr] = None
    bio: Optional[str] = Field(None, max_length=500)
    avatar: Optional[str] = None

    @field_validator("fullname", "username", "bio")
    @classmethod
    def no_html(cls, value):
        return reject_html(value)


class UserUpdateRequest(ProfileUpdateRequest):
    """Profile fields plus an optional password change, which needs the current password."""
    current_password: Optional[str] = None
    new_password: Optional[str] = Field(None, min_length=6, max_length=128)


class PasswordChangeRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


class AvatarUrlRequest(CamelModel):
    avatar: str = Field(..., min_length=1)
