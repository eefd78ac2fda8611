from fastapi import APIRouter, Depends
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.constants.constants import AchievementCategory, AchievementRarity, ConditionType, TaskStatus, Timeframe
from app.core.database import aget_db
from app.core.security import get_current_user
from app.models.achievement import Achievement, UserAchievement
from app.models.task import Task
from app.models.team import Team, TeamMember
from app.models.user import User
from app.utils.achievements import DEFAULT_ACHIEVEMENTS, build_achievement_stats, check_conditions, is_available, record_unlock
from app.utils.dates import utcnow
from app.utils.productivity_stats import calculate_productivity_stats
from app.utils.response import success_response
from app.utils.serializers import serialize_achievement

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/achievements", tags=["achievements"])


async def seed_achievements(db: AsyncSession) -> int:
    """Insert the default catalog when the achievements table is empty."""
    existing = (await db.execute(select(func.count(Achievement.achievement_id)))).scalar() or 0
    if existing:
        return 0
    for entry in DEFAULT_ACHIEVEMENTS:
        achievement = Achievement(**entry)
        achievement.category = AchievementCategory(entry["category"])
        achievement.rarity = AchievementRarity(entry["rarity"])
        achievement.condition_type = ConditionType(entry["condition_type"])
        achievement.condition_timeframe = Timeframe(entry.get("condition_timeframe", Timeframe.all_time))
        db.add(achievement)
    await db.commit()
    logger.info(f"🏆 Seeded {len(DEFAULT_ACHIEVEMENTS)} achievements")
    return len(DEFAULT_ACHIEVEMENTS)


async def unlocked_for(db: AsyncSession, user_id: str) -> dict:
    result = await db.execute(select(UserAchievement).where(UserAchievement.user_id == user_id))
    return {row.achievement_id: row.unlocked_at for row in result.scalars().all()}


async def count_collaborations(db: AsyncSession, user_id: str) -> int:
    """Teams the user owns or belongs to."""
    memberships = select(TeamMember.team_id).where(TeamMember.user_id == user_id)
    result = await db.execute(
        select(func.count(Team.team_id)).where(or_(Team.owner_id == user_id, Team.team_id.in_(memberships)))
    )
    return result.scalar() or 0


@router.get("/")
async def get_achievements(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Active, currently available catalog. Secret entries only show once unlocked."""
    now = utcnow()
    unlocked = await unlocked_for(db, current_user.user_id)
    result = await db.execute(
        select(Achievement).where(Achievement.is_active.is_(True)).order_by(Achievement.points, Achievement.name)
    )
    catalog = [
        serialize_achievement(a, unlocked.get(a.achievement_id))
        for a in result.scalars().all()
        if is_available(a, now) and (not a.is_secret or a.achievement_id in unlocked)
    ]
    return success_response(catalog)


@router.get("/me")
async def get_my_achievements(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    unlocked = await unlocked_for(db, current_user.user_id)
    if not unlocked:
        return success_response({"achievements": [], "totalPoints": 0})

    result = await db.execute(select(Achievement).where(Achievement.achievement_id.in_(unlocked.keys())))
    achievements = sorted(result.scalars().all(), key=lambda a: unlocked[a.achievement_id], reverse=True)
    return success_response({
        "achievements": [serialize_achievement(a, unlocked[a.achievement_id]) for a in achievements],
        "totalPoints": sum(a.points for a in achievements),
    })


@router.post("/check")
async def check_achievements(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(aget_db)
):
    """Evaluate the caller's live statistics against the catalog and unlock what is newly met."""
    now = utcnow()
    user_id = current_user.user_id

    completed = await db.execute(select(Task).where(Task.user_id == user_id, Task.status == TaskStatus.completed))
    productivity = await calculate_productivity_stats(db, user_id)
    stats = build_achievement_stats(
        completed.scalars().all(),
        productivity,
        now,
        collaborations=await count_collaborations(db, user_id),
    )

    unlocked_ids = set((await unlocked_for(db, user_id)).keys())
    result = await db.execute(select(Achievement).where(Achievement.is_active.is_(True)))
    newly_unlocked = []
    for achievement in result.scalars().all():
        if not check_conditions(achievement, stats, unlocked_ids, now):
            continue
        record_unlock(achievement, user_id, now)
        db.add(UserAchievement(user_id=user_id, achievement_id=achievement.achievement_id, unlocked_at=now))
        unlocked_ids.add(achievement.achievement_id)
        newly_unlocked.append(achievement)

    if newly_unlocked:
        await db.commit()
        logger.info(f"🏆 {current_user.username} unlocked {[a.achievement_id for a in newly_unlocked]}")

    return success_response({
        "newlyUnlocked": [serialize_achievement(a, now) for a in newly_unlocked],
        "stats": stats,
    })
