"""Unit tests for achievement unlock evaluation."""

from datetime import datetime, timedelta
from types import SimpleNamespace

from app.constants.constants import ConditionType, Timeframe
from app.utils.achievements import DEFAULT_ACHIEVEMENTS, build_achievement_stats, check_conditions, record_unlock

NOW = datetime(2024, 6, 12, 15, 0, 0)  # a Wednesday


def achievement(**overrides):
    fields = dict(
        achievement_id="ach",
        is_active=True,
        is_limited=False,
        available_from=None,
        available_until=None,
        condition_type=ConditionType.task_count,
        condition_target=1,
        condition_timeframe=Timeframe.all_time,
        sub_conditions=[],
        total_unlocks=0,
        first_unlocked_by=None,
        first_unlocked_at=None,
        last_unlocked_at=None,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def completed(days_ago):
    finished = NOW - timedelta(days=days_ago)
    return SimpleNamespace(completed_at=finished, updated_at=finished)


def stats(**overrides):
    base = build_achievement_stats([], {"streak": 0, "completionRate": 0}, NOW)
    base.update(overrides)
    return base


class TestBuildStats:

    def test_buckets_by_completion_time(self):
        tasks = [completed(0), completed(1), completed(5), completed(40)]
        result = build_achievement_stats(tasks, {"streak": 2, "completionRate": 80.0}, NOW, collaborations=3)
        assert result["totalCompleted"] == 4
        assert result["tasksCompletedToday"] == 1
        assert result["tasksCompletedThisWeek"] == 2
        assert result["tasksCompletedThisMonth"] == 3
        assert result["tasksCompletedThisYear"] == 4
        assert result["streakCurrent"] == 2
        assert result["completionRate"] == 80.0
        assert result["collaborations"] == 3

    def test_falls_back_to_updated_at(self):
        task = SimpleNamespace(completed_at=None, updated_at=NOW)
        assert build_achievement_stats([task], {}, NOW)["tasksCompletedToday"] == 1


class TestCheckConditions:

    def test_task_count_all_time(self):
        assert check_conditions(achievement(condition_target=3), stats(totalCompleted=3), [], NOW)
        assert not check_conditions(achievement(condition_target=3), stats(totalCompleted=2), [], NOW)

    def test_task_count_by_timeframe(self):
        daily = achievement(condition_target=5, condition_timeframe=Timeframe.daily)
        assert not check_conditions(daily, stats(totalCompleted=10, tasksCompletedToday=4), [], NOW)
        assert check_conditions(daily, stats(tasksCompletedToday=5), [], NOW)

    def test_streak_and_rate(self):
        streak = achievement(condition_type=ConditionType.streak_days, condition_target=7)
        rate = achievement(condition_type=ConditionType.completion_rate, condition_target=90)
        assert check_conditions(streak, stats(streakCurrent=7), [], NOW)
        assert not check_conditions(rate, stats(completionRate=89.99), [], NOW)

    def test_already_unlocked_never_matches(self):
        assert not check_conditions(achievement(), stats(totalCompleted=5), ["ach"], NOW)

    def test_inactive_never_matches(self):
        assert not check_conditions(achievement(is_active=False), stats(totalCompleted=5), [], NOW)

    def test_limited_window(self):
        expired = achievement(is_limited=True, available_until=NOW - timedelta(days=1))
        upcoming = achievement(is_limited=True, available_from=NOW + timedelta(days=1))
        current = achievement(is_limited=True, available_from=NOW - timedelta(days=1), available_until=NOW + timedelta(days=1))
        assert not check_conditions(expired, stats(totalCompleted=1), [], NOW)
        assert not check_conditions(upcoming, stats(totalCompleted=1), [], NOW)
        assert check_conditions(current, stats(totalCompleted=1), [], NOW)

    def test_combo_requires_every_sub_condition(self):
        combo = achievement(
            condition_type=ConditionType.combo,
            sub_conditions=[
                {"type": "task_count", "target": 50, "timeframe": "all-time"},
                {"type": "streak_days", "target": 14},
            ],
        )
        assert check_conditions(combo, stats(totalCompleted=50, streakCurrent=14), [], NOW)
        assert not check_conditions(combo, stats(totalCompleted=50, streakCurrent=13), [], NOW)

    def test_combo_without_sub_conditions(self):
        assert not check_conditions(achievement(condition_type=ConditionType.combo), stats(totalCompleted=9), [], NOW)


class TestRecordUnlock:

    def test_first_and_last_unlock(self):
        ach = achievement()
        record_unlock(ach, "u1", NOW)
        later = NOW + timedelta(hours=1)
        record_unlock(ach, "u2", later)
        assert ach.total_unlocks == 2
        assert ach.first_unlocked_by == "u1"
        assert ach.first_unlocked_at == NOW
        assert ach.last_unlocked_at == later


def test_default_catalog_ids_are_unique():
    ids = [entry["achievement_id"] for entry in DEFAULT_ACHIEVEMENTS]
    assert len(ids) == len(set(ids))
