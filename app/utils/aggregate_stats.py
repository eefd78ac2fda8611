"""Team and project statistics computed over already-fetched rows.

Everything here is pure: callers load tasks, members and projects, then
hand them over together with the reference time.
"""

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from app.constants.constants import ProjectStatus, TaskPriority, TaskStatus
from app.utils.dates import as_utc
from app.utils.task_status import effective_status

DAY = timedelta(days=1)


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def percent(part: int, whole: int) -> int:
    return round_half_up(part / whole * 100) if whole else 0


def _enum_value(value):
    return getattr(value, "value", value)


def count_statuses(tasks: Iterable, now: datetime) -> dict:
    counts = {TaskStatus.completed: 0, TaskStatus.failed: 0, TaskStatus.in_progress: 0}
    for task in tasks:
        counts[effective_status(task, now)] += 1
    return counts


def _completed_since(tasks: Iterable, now: datetime, since: datetime) -> int:
    return sum(
        1 for t in tasks
        if effective_status(t, now) == TaskStatus.completed and t.updated_at and t.updated_at > since
    )


def health_status(failure_rate: int) -> str:
    if failure_rate < 10:
        return "excellent"
    if failure_rate < 20:
        return "good"
    if failure_rate < 30:
        return "fair"
    return "needs-improvement"


def compute_team_stats(tasks: List, members: List, projects: List, now: datetime) -> dict:
    """Analytics for a team. `tasks` are the tasks owned by any team member."""
    counts = count_statuses(tasks, now)
    total = len(tasks)
    completed = counts[TaskStatus.completed]
    failed = counts[TaskStatus.failed]
    in_progress = counts[TaskStatus.in_progress]
    completion_rate = percent(completed, total)
    failure_rate = percent(failed, total)

    this_week = _completed_since(tasks, now, now - 7 * DAY)
    this_month = _completed_since(tasks, now, now - 30 * DAY)
    this_quarter = _completed_since(tasks, now, now - 90 * DAY)

    member_activity = {}
    for member in members:
        member_tasks = [t for t in tasks if str(t.user_id) == str(member.user_id)]
        member_counts = count_statuses(member_tasks, now)
        member_activity[str(member.user_id)] = {
            "tasksCompleted": member_counts[TaskStatus.completed],
            "tasksInProgress": member_counts[TaskStatus.in_progress],
            "tasksFailed": member_counts[TaskStatus.failed],
            "completionRate": percent(member_counts[TaskStatus.completed], len(member_tasks)),
            "lastActive": as_utc(max((t.updated_at for t in member_tasks if t.updated_at), default=None)),
        }

    return {
        "overview": {
            "totalTasks": total,
            "completedTasks": completed,
            "failedTasks": failed,
            "inProgressTasks": in_progress,
            "completionRate": completion_rate,
            "failureRate": failure_rate,
        },
        "projectStatusDistribution": {
            "active": sum(1 for p in projects if p.status == ProjectStatus.active),
            "planning": sum(1 for p in projects if p.status == ProjectStatus.planning),
            "completed": sum(1 for p in projects if p.status == ProjectStatus.completed),
            "onHold": sum(1 for p in projects if p.status == ProjectStatus.on_hold),
        },
        "taskProgress": {
            "completed": completed,
            "inProgress": in_progress,
            "failed": failed,
            "total": total,
        },
        "productivityTrend": {
            "thisWeek": this_week,
            "thisMonth": this_month,
            "thisQuarter": this_quarter,
            "weeklyAverage": round_half_up(this_month / 4),
            "monthlyAverage": round_half_up(this_quarter / 3),
        },
        "memberActivity": member_activity,
        "teamHealth": {
            "score": max(0, 100 - failure_rate),
            "status": health_status(failure_rate),
            "activeMembers": len(members),
            "avgTasksPerMember": round_half_up(total / len(members)) if members else 0,
        },
    }


def compute_timeline(start: Optional[datetime], end: Optional[datetime], now: datetime) -> dict:
    """Whole-day timeline of a project. Progress is not clamped, so overdue projects exceed 100."""
    timeline = {
        "startDate": as_utc(start),
        "endDate": as_utc(end),
        "daysElapsed": None,
        "totalDays": None,
        "timelineProgress": None,
        "daysRemaining": None,
    }
    if not start:
        return timeline
    elapsed = (now - start) // DAY
    timeline["daysElapsed"] = elapsed
    if not end:
        return timeline
    total = (end - start) // DAY
    timeline["totalDays"] = total
    timeline["daysRemaining"] = max(0, total - elapsed)
    if total:
        timeline["timelineProgress"] = round_half_up(elapsed / total * 100)
    return timeline


def project_health(completion_rate: int, failed: int) -> dict:
    if completion_rate >= 75:
        status = "on-track"
    elif completion_rate >= 50:
        status = "at-risk"
    else:
        status = "behind-schedule"
    if failed > 5:
        risk = "high"
    elif failed > 2:
        risk = "medium"
    else:
        risk = "low"
    return {"score": max(0, 100 - failed * 5), "status": status, "riskLevel": risk}


def _responsible_user(task) -> str:
    return str(task.assignee_id or task.user_id)


def compute_project_stats(project, tasks: List, members: List, now: datetime) -> dict:
    """Analytics for a project over its tasks. Members are matched by assignee, falling back to owner."""
    counts = count_statuses(tasks, now)
    total = len(tasks)
    completed = counts[TaskStatus.completed]
    failed = counts[TaskStatus.failed]
    in_progress = counts[TaskStatus.in_progress]
    completion_rate = percent(completed, total)

    member_contribution = {}
    for member in members:
        member_tasks = [t for t in tasks if _responsible_user(t) == str(member.user_id)]
        member_counts = count_statuses(member_tasks, now)
        member_contribution[str(member.user_id)] = {
            "tasksAssigned": len(member_tasks),
            "tasksCompleted": member_counts[TaskStatus.completed],
            "tasksInProgress": member_counts[TaskStatus.in_progress],
            "completionRate": percent(member_counts[TaskStatus.completed], len(member_tasks)),
            "role": _enum_value(member.role),
        }

    return {
        "overview": {
            "totalTasks": total,
            "completedTasks": completed,
            "inProgressTasks": in_progress,
            "failedTasks": failed,
            "completionRate": completion_rate,
            "progress": completion_rate,
        },
        "tasksByPriority": {
            priority.value: sum(1 for t in tasks if t.priority == priority)
            for priority in (TaskPriority.high, TaskPriority.medium, TaskPriority.low)
        },
        "tasksByStatus": {
            "completed": completed,
            "inProgress": in_progress,
            "failed": failed,
        },
        "memberContribution": member_contribution,
        "timeline": compute_timeline(project.start_date, project.end_date, now),
        "health": project_health(completion_rate, failed),
    }


def compute_project_progress(tasks: List, now: datetime) -> dict:
    """Completion percentage and per-assignee workload of a project."""
    total = len(tasks)
    completed = sum(1 for t in tasks if effective_status(t, now) == TaskStatus.completed)
    workload: Dict[str, dict] = {}
    for task in tasks:
        key = _responsible_user(task)
        entry = workload.setdefault(key, {"total": 0, "completed": 0, "pending": 0})
        entry["total"] += 1
        if effective_status(task, now) == TaskStatus.completed:
            entry["completed"] += 1
        else:
            entry["pending"] += 1
    return {
        "progress": percent(completed, total),
        "totalTasks": total,
        "completedTasks": completed,
        "pendingTasks": total - completed,
        "memberWorkload": workload,
    }


def compute_team_overview(team, tasks: List, projects: List, users: Dict[str, object], now: datetime) -> dict:
    """
    Headline counters for a team. `tasks` are the tasks of the team's projects,
    `users` maps member ids to loaded users for last-activity checks.
    """
    week_ago = now - 7 * DAY
    active_members = 0
    for member in team.members:
        user = users.get(str(member.user_id))
        last_active = getattr(user, "last_active", None)
        if last_active and last_active >= week_ago:
            active_members += 1
    return {
        "memberCount": len(team.members),
        "projectCount": len(projects),
        "activeProjects": sum(1 for p in projects if p.status == ProjectStatus.active),
        "completedProjects": sum(1 for p in projects if p.status == ProjectStatus.completed),
        "taskCount": len(tasks),
        "completedTasks": sum(1 for t in tasks if effective_status(t, now) == TaskStatus.completed),
        "overdueTasks": sum(1 for t in tasks if effective_status(t, now) == TaskStatus.failed),
        "activeMembers": active_members,
        "createdAt": as_utc(team.created_at),
        "updatedAt": as_utc(team.updated_at),
    }
