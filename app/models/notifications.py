import uuid
from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, JSON, String, Text
from app.constants.constants import NotificationType
from app.models.base import Base, TimestampMixin


class Notification(Base, TimestampMixin):
    """Model for in-app notifications."""

    __tablename__ = "notifications"

    notification_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(100), nullable=False)
    message = Column(String(500), nullable=False)
    type = Column(Enum(NotificationType), nullable=False)

    # Payload, e.g. team_id / invitation_id / task_id
    data = Column(JSON, nullable=False, default=dict)
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
