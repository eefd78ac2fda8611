"""Constants for user roles, task states, team and project roles, invitations, notifications and achievements."""

from enum import Enum


class UserRole(str, Enum):
    """Enumeration of account roles."""

    user = "user"
    admin = "admin"


class TaskStatus(str, Enum):
    """Enumeration of stored task statuses."""

    in_progress = "in-progress"
    failed = "failed"
    completed = "completed"


class TaskPriority(str, Enum):
    """Enumeration of task priorities."""

    low = "low"
    medium = "medium"
    high = "high"


class RecurrencePattern(str, Enum):
    """Enumeration of recurrence patterns for repeating tasks."""

    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"


class TeamRole(str, Enum):
    """Enumeration of team membership roles."""

    owner = "owner"
    admin = "admin"
    member = "member"


class ProjectRole(str, Enum):
    """Enumeration of project membership roles."""

    manager = "manager"
    contributor = "contributor"
    viewer = "viewer"


class ProjectStatus(str, Enum):
    """Enumeration of project lifecycle states."""

    planning = "planning"
    active = "active"
    on_hold = "on-hold"
    completed = "completed"
    archived = "archived"


class Visibility(str, Enum):
    private = "private"
    team = "team"
    public = "public"


class InvitationRole(str, Enum):
    """Roles that can be offered through an invitation."""

    admin = "admin"
    member = "member"


class InvitationStatus(str, Enum):
    """Enumeration of invitation states. Transitions only leave pending."""

    pending = "pending"
    accepted = "accepted"
    denied = "denied"
    cancelled = "cancelled"


class NotificationType(str, Enum):
    """Enumeration of in-app notification kinds."""

    invitation_received = "invitation_received"
    invitation_accepted = "invitation_accepted"
    invitation_denied = "invitation_denied"
    member_added = "member_added"
    member_removed = "member_removed"
    task_assigned = "task_assigned"
    task_completed = "task_completed"
    project_created = "project_created"
    project_updated = "project_updated"
    team_updated = "team_updated"


class AchievementCategory(str, Enum):
    productivity = "productivity"
    consistency = "consistency"
    collaboration = "collaboration"
    milestone = "milestone"
    special = "special"


class AchievementRarity(str, Enum):
    common = "common"
    uncommon = "uncommon"
    rare = "rare"
    epic = "epic"
    legendary = "legendary"


class ConditionType(str, Enum):
    """Unlock condition kinds for achievements."""

    task_count = "task_count"
    streak_days = "streak_days"
    completion_rate = "completion_rate"
    collaboration = "collaboration"
    consistency = "consistency"
    combo = "combo"


class Timeframe(str, Enum):
    all_time = "all-time"
    daily = "daily"
    weekly = "weekly"
    monthly = "monthly"
    yearly = "yearly"
