"""User model for the Taskly system."""

import uuid
from sqlalchemy import Column, String, Text, DateTime, Enum

from app.constants.constants import UserRole
from app.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"
    user_id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    username = Column(String(30), unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    fullname = Column(String(100), nullable=False)
    avatar = Column(String, nullable=True)
    avatar_public_id = Column(String, nullable=True)  # S3 object key of the current avatar
    bio = Column(Text, nullable=True)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.user)
    last_active = Column(DateTime, nullable=True)
