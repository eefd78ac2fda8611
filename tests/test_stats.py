"""Unit tests for the productivity and team/project aggregators."""

from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from app.constants.constants import ProjectRole, ProjectStatus, TaskPriority, TaskStatus, TeamRole
from app.utils.aggregate_stats import (
    compute_project_progress,
    compute_project_stats,
    compute_team_overview,
    compute_team_stats,
    compute_timeline,
    health_status,
    percent,
    project_health,
    round_half_up,
)
from app.utils.productivity_stats import (
    completion_rate,
    completion_streak,
    compute_productivity_stats,
    summarize_task_statuses,
)

NOW = datetime(2024, 6, 15, 12, 0, 0)


def task(user_id="u1", status=TaskStatus.in_progress, due_in_days=3, updated_days_ago=0,
         priority=TaskPriority.medium, assignee_id=None):
    return SimpleNamespace(
        user_id=user_id,
        assignee_id=assignee_id,
        status=status,
        priority=priority,
        due=NOW + timedelta(days=due_in_days),
        created_at=NOW - timedelta(days=10),
        updated_at=NOW - timedelta(days=updated_days_ago),
    )


def member(user_id, role=TeamRole.member):
    return SimpleNamespace(user_id=user_id, role=role)


class TestProductivity:

    def test_completion_rate(self):
        assert completion_rate(0, 0) == 0
        assert completion_rate(2, 1) == 66.67
        assert completion_rate(3, 0) == 100

    def test_streak_counts_consecutive_days(self):
        days = [date(2024, 6, 15), date(2024, 6, 14), date(2024, 6, 14), date(2024, 6, 13), date(2024, 6, 10)]
        assert completion_streak(days) == 3

    def test_streak_empty(self):
        assert completion_streak([]) == 0

    def test_nothing_completed(self):
        stats = compute_productivity_stats({TaskStatus.failed: 2}, [])
        assert stats["avgTime"] == 0
        assert stats["streak"] == 0
        assert stats["completionRate"] == 0
        assert stats["failed"] == 2

    def test_compute_productivity_stats(self):
        completed = [
            SimpleNamespace(created_at=NOW - timedelta(hours=4), updated_at=NOW),
            SimpleNamespace(created_at=NOW - timedelta(days=1, hours=2), updated_at=NOW - timedelta(days=1)),
        ]
        counts = {TaskStatus.completed: 2, TaskStatus.failed: 2, TaskStatus.in_progress: 5}
        stats = compute_productivity_stats(counts, completed)
        assert stats == {
            "completed": 2,
            "failed": 2,
            "ongoing": 5,
            "completionRate": 50.0,
            "streak": 2,
            "avgTime": 3.0,
        }

    def test_summary_uses_effective_status(self):
        tasks = [task(due_in_days=-1), task(), task(status=TaskStatus.completed, due_in_days=-5)]
        summary = summarize_task_statuses(tasks, NOW)
        assert summary["failed"] == 1
        assert summary["inProgress"] == 1
        assert summary["completed"] == 1
        assert summary["completionRate"] == 33.33


class TestRounding:

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.5, 2), (2.5, 3), (2.49, 2), (-0.5, -1)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_percent(self):
        assert percent(1, 8) == 13
        assert percent(0, 0) == 0


class TestTeamStats:

    def test_overview_and_health(self):
        tasks = [
            task("u1", TaskStatus.completed, updated_days_ago=2),
            task("u1", TaskStatus.completed, updated_days_ago=20),
            task("u2", due_in_days=-1),
            task("u2"),
        ]
        members = [member("u1", TeamRole.owner), member("u2")]
        projects = [
            SimpleNamespace(status=ProjectStatus.active),
            SimpleNamespace(status=ProjectStatus.on_hold),
        ]
        stats = compute_team_stats(tasks, members, projects, NOW)

        assert stats["overview"]["totalTasks"] == 4
        assert stats["overview"]["completedTasks"] == 2
        assert stats["overview"]["failedTasks"] == 1
        assert stats["overview"]["completionRate"] == 50
        assert stats["overview"]["failureRate"] == 25
        assert stats["projectStatusDistribution"]["onHold"] == 1
        assert stats["productivityTrend"]["thisWeek"] == 1
        assert stats["productivityTrend"]["thisMonth"] == 2
        # 2 / 4 = 0.5 rounds half up
        assert stats["productivityTrend"]["weeklyAverage"] == 1
        assert stats["memberActivity"]["u2"]["tasksFailed"] == 1
        assert stats["teamHealth"] == {
            "score": 75,
            "status": "fair",
            "activeMembers": 2,
            "avgTasksPerMember": 2,
        }

    def test_empty_team(self):
        stats = compute_team_stats([], [], [], NOW)
        assert stats["overview"]["completionRate"] == 0
        assert stats["teamHealth"]["avgTasksPerMember"] == 0
        assert stats["teamHealth"]["status"] == "excellent"

    @pytest.mark.parametrize("rate,expected", [(0, "excellent"), (10, "good"), (25, "fair"), (30, "needs-improvement")])
    def test_health_status(self, rate, expected):
        assert health_status(rate) == expected

    def test_overview_counts_recently_active_members(self):
        team = SimpleNamespace(
            members=[member("u1"), member("u2")],
            created_at=NOW,
            updated_at=NOW,
        )
        users = {
            "u1": SimpleNamespace(last_active=NOW - timedelta(days=1)),
            "u2": SimpleNamespace(last_active=NOW - timedelta(days=30)),
        }
        projects = [SimpleNamespace(status=ProjectStatus.active)]
        overview = compute_team_overview(team, [task(due_in_days=-2)], projects, users, NOW)
        assert overview["activeMembers"] == 1
        assert overview["overdueTasks"] == 1
        assert overview["activeProjects"] == 1


class TestProjectStats:

    def test_stats_match_members_by_assignee(self):
        project = SimpleNamespace(start_date=NOW - timedelta(days=5), end_date=NOW + timedelta(days=5))
        tasks = [
            task("owner", TaskStatus.completed, priority=TaskPriority.high, assignee_id="u2"),
            task("owner", priority=TaskPriority.low),
            task("owner", due_in_days=-1, assignee_id="u2"),
        ]
        members = [member("owner", ProjectRole.manager), member("u2", ProjectRole.contributor)]
        stats = compute_project_stats(project, tasks, members, NOW)

        assert stats["overview"]["completionRate"] == 33
        assert stats["tasksByPriority"] == {"high": 1, "medium": 1, "low": 1}
        assert stats["memberContribution"]["u2"]["tasksAssigned"] == 2
        assert stats["memberContribution"]["u2"]["role"] == "contributor"
        assert stats["memberContribution"]["owner"]["tasksAssigned"] == 1
        assert stats["timeline"]["timelineProgress"] == 50
        assert stats["timeline"]["daysRemaining"] == 5
        assert stats["health"] == {"score": 95, "status": "behind-schedule", "riskLevel": "low"}

    def test_timeline_without_dates(self):
        timeline = compute_timeline(None, None, NOW)
        assert timeline["daysElapsed"] is None
        assert timeline["timelineProgress"] is None

    def test_timeline_exceeds_hundred_when_overdue(self):
        timeline = compute_timeline(NOW - timedelta(days=20), NOW - timedelta(days=10), NOW)
        assert timeline["timelineProgress"] == 200
        assert timeline["daysRemaining"] == 0

    def test_health_levels(self):
        assert project_health(80, 0)["status"] == "on-track"
        assert project_health(60, 3) == {"score": 85, "status": "at-risk", "riskLevel": "medium"}
        assert project_health(10, 30) == {"score": 0, "status": "behind-schedule", "riskLevel": "high"}

    def test_progress_workload(self):
        tasks = [task("u1", TaskStatus.completed), task("u1"), task("u1", assignee_id="u2")]
        progress = compute_project_progress(tasks, NOW)
        assert progress["progress"] == 33
        assert progress["pendingTasks"] == 2
        assert progress["memberWorkload"] == {
            "u1": {"total": 2, "completed": 1, "pending": 1},
            "u2": {"total": 1, "completed": 0, "pending": 1},
        }
