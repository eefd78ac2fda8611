"""Achievement catalog and per-user unlock records."""

import uuid
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, Enum, ForeignKey, Integer, JSON, String, UniqueConstraint
from app.constants.constants import AchievementCategory, AchievementRarity, ConditionType, Timeframe
from app.models.base import Base, TimestampMixin


class Achievement(Base, TimestampMixin):
    __tablename__ = "achievements"

    achievement_id = Column(String, primary_key=True)  # catalog slug, e.g. "first-task"
    name = Column(String, nullable=False)
    description = Column(String, nullable=False)
    icon = Column(String, nullable=False, default="trophy")
    category = Column(Enum(AchievementCategory), nullable=False)
    rarity = Column(Enum(AchievementRarity), nullable=False, default=AchievementRarity.common)
    points = Column(Integer, nullable=False, default=10)

    condition_type = Column(Enum(ConditionType), nullable=False)
    condition_target = Column(Integer, nullable=False, default=1)
    condition_timeframe = Column(Enum(Timeframe), nullable=False, default=Timeframe.all_time)
    sub_conditions = Column(JSON, nullable=False, default=list)

    is_active = Column(Boolean, nullable=False, default=True)
    is_secret = Column(Boolean, nullable=False, default=False)
    available_from = Column(DateTime, nullable=True)
    available_until = Column(DateTime, nullable=True)
    is_limited = Column(Boolean, nullable=False, default=False)

    total_unlocks = Column(Integer, nullable=False, default=0)
    first_unlocked_by = Column(String, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    first_unlocked_at = Column(DateTime, nullable=True)
    last_unlocked_at = Column(DateTime, nullable=True)


class UserAchievement(Base, TimestampMixin):
    __tablename__ = "user_achievements"
    __table_args__ = (UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),)

    record_id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    achievement_id = Column(String, ForeignKey("achievements.achievement_id", ondelete="CASCADE"), nullable=False)
    unlocked_at = Column(DateTime, nullable=False, default=datetime.utcnow)
