"""Achievement unlock evaluation against a user's live statistics."""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from app.constants.constants import ConditionType, Timeframe

# Seeded into an empty catalog at startup.
DEFAULT_ACHIEVEMENTS = [
    {
        "achievement_id": "first-task",
        "name": "First Steps",
        "description": "Complete your first task",
        "icon": "check-circle",
        "category": "milestone",
        "rarity": "common",
        "points": 10,
        "condition_type": "task_count",
        "condition_target": 1,
    },
    {
        "achievement_id": "task-master-10",
        "name": "Getting Things Done",
        "description": "Complete 10 tasks",
        "icon": "list-check",
        "category": "productivity",
        "rarity": "uncommon",
        "points": 25,
        "condition_type": "task_count",
        "condition_target": 10,
    },
    {
        "achievement_id": "productive-day",
        "name": "Productive Day",
        "description": "Complete 5 tasks in a single day",
        "icon": "zap",
        "category": "productivity",
        "rarity": "rare",
        "points": 30,
        "condition_type": "task_count",
        "condition_target": 5,
        "condition_timeframe": "daily",
    },
    {
        "achievement_id": "streak-7",
        "name": "On a Roll",
        "description": "Complete tasks 7 days in a row",
        "icon": "flame",
        "category": "consistency",
        "rarity": "rare",
        "points": 50,
        "condition_type": "streak_days",
        "condition_target": 7,
    },
    {
        "achievement_id": "reliable-90",
        "name": "Reliable",
        "description": "Keep a completion rate of 90% or more",
        "icon": "target",
        "category": "productivity",
        "rarity": "epic",
        "points": 75,
        "condition_type": "completion_rate",
        "condition_target": 90,
    },
    {
        "achievement_id": "team-player",
        "name": "Team Player",
        "description": "Join 3 teams",
        "icon": "users",
        "category": "collaboration",
        "rarity": "uncommon",
        "points": 20,
        "condition_type": "collaboration",
        "condition_target": 3,
    },
    {
        "achievement_id": "overachiever",
        "name": "Overachiever",
        "description": "Complete 50 tasks with a 14 day streak",
        "icon": "crown",
        "category": "special",
        "rarity": "legendary",
        "points": 200,
        "condition_type": "combo",
        "condition_target": 1,
        "is_secret": True,
        "sub_conditions": [
            {"type": "task_count", "target": 50, "timeframe": "all-time"},
            {"type": "streak_days", "target": 14},
        ],
    },
]


def build_achievement_stats(
    completed_tasks: Iterable,
    productivity: dict,
    now: datetime,
    collaborations: int = 0,
) -> dict:
    """Counters the unlock conditions read. Completion time is taken from completed_at, else updated_at."""
    today = now.date()
    week_start = today - timedelta(days=today.weekday())
    stats = {
        "totalCompleted": 0,
        "tasksCompletedToday": 0,
        "tasksCompletedThisWeek": 0,
        "tasksCompletedThisMonth": 0,
        "tasksCompletedThisYear": 0,
        "streakCurrent": productivity.get("streak", 0),
        "consistentDays": productivity.get("streak", 0),
        "completionRate": productivity.get("completionRate", 0),
        "collaborations": collaborations,
    }
    for task in completed_tasks:
        stats["totalCompleted"] += 1
        finished = task.completed_at or task.updated_at
        if not finished:
            continue
        day = finished.date()
        if day == today:
            stats["tasksCompletedToday"] += 1
        if day >= week_start:
            stats["tasksCompletedThisWeek"] += 1
        if (day.year, day.month) == (today.year, today.month):
            stats["tasksCompletedThisMonth"] += 1
        if day.year == today.year:
            stats["tasksCompletedThisYear"] += 1
    return stats


def is_available(achievement, now: datetime) -> bool:
    if not achievement.is_limited:
        return True
    if achievement.available_from and now < achievement.available_from:
        return False
    if achievement.available_until and now > achievement.available_until:
        return False
    return True


def _task_count(stats: dict, target: int, timeframe) -> bool:
    timeframe = Timeframe(timeframe or Timeframe.all_time)
    key = {
        Timeframe.daily: "tasksCompletedToday",
        Timeframe.weekly: "tasksCompletedThisWeek",
        Timeframe.monthly: "tasksCompletedThisMonth",
        Timeframe.yearly: "tasksCompletedThisYear",
    }.get(timeframe, "totalCompleted")
    return stats[key] >= target


def _single_condition(condition_type, target: int, timeframe, stats: dict) -> bool:
    condition_type = ConditionType(condition_type)
    if condition_type == ConditionType.task_count:
        return _task_count(stats, target, timeframe)
    if condition_type == ConditionType.streak_days:
        return stats["streakCurrent"] >= target
    if condition_type == ConditionType.completion_rate:
        return stats["completionRate"] >= target
    if condition_type == ConditionType.collaboration:
        return stats["collaborations"] >= target
    if condition_type == ConditionType.consistency:
        return stats["consistentDays"] >= target
    return False


def check_conditions(achievement, stats: dict, unlocked_ids: Iterable[str], now: datetime) -> bool:
    """True when the achievement is active, available, not yet unlocked and its condition holds."""
    if not achievement.is_active or not is_available(achievement, now):
        return False
    if achievement.achievement_id in set(unlocked_ids):
        return False
    if ConditionType(achievement.condition_type) == ConditionType.combo:
        subs: List[dict] = achievement.sub_conditions or []
        if not subs:
            return False
        return all(
            ConditionType(sub.get("type")) != ConditionType.combo
            and _single_condition(sub.get("type"), sub.get("target", 1), sub.get("timeframe"), stats)
            for sub in subs
        )
    return _single_condition(
        achievement.condition_type,
        achievement.condition_target,
        achievement.condition_timeframe,
        stats,
    )


def record_unlock(achievement, user_id: str, now: Optional[datetime] = None):
    """Update aggregate unlock statistics on the catalog entry."""
    now = now or datetime.utcnow()
    achievement.total_unlocks = (achievement.total_unlocks or 0) + 1
    if not achievement.first_unlocked_by:
        achievement.first_unlocked_by = user_id
        achievement.first_unlocked_at = now
    achievement.last_unlocked_at = now
