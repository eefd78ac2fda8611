"""Response shapes for the API entities (camelCase JSON)."""

from datetime import datetime
from typing import Dict, Optional

from app.utils.dates import as_utc
from app.utils.permissions import member_permissions
from app.utils.task_status import effective_status, progress_percent, time_remaining_days


def _value(value):
    return getattr(value, "value", value)


def serialize_user(user, public: bool = False) -> Optional[dict]:
    """User without credentials. `public` trims it to what other members may see."""
    if user is None:
        return None
    data = {
        "id": user.user_id,
        "username": user.username,
        "fullname": user.fullname,
        "avatar": user.avatar,
    }
    if public:
        return data
    data.update({
        "email": user.email,
        "bio": user.bio,
        "role": _value(user.role),
        "lastActive": as_utc(user.last_active),
        "createdAt": as_utc(user.created_at),
        "updatedAt": as_utc(user.updated_at),
    })
    return data


def serialize_subtask(subtask) -> dict:
    return {
        "id": subtask.subtask_id,
        "title": subtask.title,
        "completed": subtask.completed,
        "completedAt": as_utc(subtask.completed_at),
    }


def serialize_time_entry(entry) -> dict:
    return {
        "id": entry.entry_id,
        "userId": entry.user_id,
        "startTime": as_utc(entry.start_time),
        "endTime": as_utc(entry.end_time),
        "duration": entry.duration,
        "description": entry.description,
    }


def serialize_comment(comment) -> dict:
    return {
        "id": comment.comment_id,
        "userId": comment.user_id,
        "content": comment.content,
        "createdAt": as_utc(comment.created_at),
        "editedAt": as_utc(comment.edited_at),
    }


def serialize_task(task, now: Optional[datetime] = None) -> dict:
    """Task with its stored status and the derived dynamicStatus."""
    return {
        "id": task.task_id,
        "title": task.title,
        "description": task.description,
        "due": as_utc(task.due),
        "priority": _value(task.priority),
        "status": _value(task.status),
        "dynamicStatus": _value(effective_status(task, now)),
        "category": task.category,
        "tags": list(task.tags or []),
        "labels": list(task.labels or []),
        "user": task.user_id,
        "project": task.project_id,
        "assignee": task.assignee_id,
        "estimatedTime": task.estimated_time,
        "actualTime": task.actual_time,
        "completedAt": as_utc(task.completed_at),
        "completionTime": task.completion_time,
        "archived": task.archived,
        "archivedAt": as_utc(task.archived_at),
        "progress": progress_percent(task),
        "timeRemaining": time_remaining_days(task, now),
        "recurring": {
            "enabled": task.recurring_enabled,
            "pattern": _value(task.recurring_pattern),
            "interval": task.recurring_interval,
            "endDate": as_utc(task.recurring_end_date),
            "nextDue": as_utc(task.recurring_next_due),
        },
        "subtasks": [serialize_subtask(s) for s in task.subtasks or []],
        "timeEntries": [serialize_time_entry(e) for e in task.time_entries or []],
        "comments": [serialize_comment(c) for c in task.comments or []],
        "createdAt": as_utc(task.created_at),
        "updatedAt": as_utc(task.updated_at),
    }


def serialize_member(member, users: Dict[str, object], kind: str = "team") -> dict:
    return {
        "user": serialize_user(users.get(member.user_id), public=True) or {"id": member.user_id},
        "role": _value(member.role),
        "permissions": member_permissions(member.role, kind),
        "joinedAt": as_utc(member.joined_at),
    }


def serialize_team(team, users: Optional[Dict[str, object]] = None, include_invite_code: bool = False) -> dict:
    users = users or {}
    data = {
        "id": team.team_id,
        "name": team.name,
        "description": team.description,
        "owner": serialize_user(users.get(team.owner_id), public=True) or {"id": team.owner_id},
        "members": [serialize_member(m, users, "team") for m in team.members],
        "memberCount": len(team.members),
        "settings": {
            "maxMembers": team.max_members,
            "allowInvites": team.allow_invites,
            "defaultRole": _value(team.default_role),
            "visibility": _value(team.visibility),
        },
        "archived": team.archived,
        "createdAt": as_utc(team.created_at),
        "updatedAt": as_utc(team.updated_at),
    }
    if include_invite_code:
        data["inviteCode"] = team.invite_code
        data["inviteCodeExpires"] = as_utc(team.invite_code_expires)
    return data


def serialize_project(project, users: Optional[Dict[str, object]] = None) -> dict:
    users = users or {}
    return {
        "id": project.project_id,
        "name": project.name,
        "description": project.description,
        "color": project.color,
        "icon": project.icon,
        "owner": serialize_user(users.get(project.owner_id), public=True) or {"id": project.owner_id},
        "team": project.team_id,
        "members": [serialize_member(m, users, "project") for m in project.members],
        "status": _value(project.status),
        "priority": _value(project.priority),
        "startDate": as_utc(project.start_date),
        "endDate": as_utc(project.end_date),
        "settings": {
            "defaultPriority": _value(project.default_priority),
            "visibility": _value(project.visibility),
            "requireApproval": project.require_approval,
        },
        "archived": project.archived,
        "archivedAt": as_utc(project.archived_at),
        "archivedBy": project.archived_by,
        "createdAt": as_utc(project.created_at),
        "updatedAt": as_utc(project.updated_at),
    }


def serialize_invitation(invitation, users: Optional[Dict[str, object]] = None, team=None) -> dict:
    users = users or {}
    return {
        "id": invitation.invitation_id,
        "team": {"id": team.team_id, "name": team.name} if team else {"id": invitation.team_id},
        "inviter": serialize_user(users.get(invitation.inviter_id), public=True) or {"id": invitation.inviter_id},
        "invitee": serialize_user(users.get(invitation.invitee_id), public=True) or {"id": invitation.invitee_id},
        "role": _value(invitation.role),
        "message": invitation.message,
        "status": _value(invitation.status),
        "createdAt": as_utc(invitation.created_at),
        "respondedAt": as_utc(invitation.responded_at),
        "expiresAt": as_utc(invitation.expires_at),
    }


def serialize_notification(notification) -> dict:
    return {
        "id": notification.notification_id,
        "type": _value(notification.type),
        "title": notification.title,
        "message": notification.message,
        "data": notification.data or {},
        "read": bool(notification.is_read),
        "readAt": as_utc(notification.read_at),
        "createdAt": as_utc(notification.created_at),
        "expiresAt": as_utc(notification.expires_at),
    }


def serialize_achievement(achievement, unlocked_at: Optional[datetime] = None) -> dict:
    return {
        "id": achievement.achievement_id,
        "name": achievement.name,
        "description": achievement.description,
        "icon": achievement.icon,
        "category": _value(achievement.category),
        "rarity": _value(achievement.rarity),
        "points": achievement.points,
        "conditions": {
            "type": _value(achievement.condition_type),
            "target": achievement.condition_target,
            "timeframe": _value(achievement.condition_timeframe),
            "subConditions": achievement.sub_conditions or [],
        },
        "isSecret": achievement.is_secret,
        "stats": {
            "totalUnlocks": achievement.total_unlocks,
            "firstUnlockedAt": as_utc(achievement.first_unlocked_at),
            "lastUnlockedAt": as_utc(achievement.last_unlocked_at),
        },
        "unlocked": unlocked_at is not None,
        "unlockedAt": as_utc(unlocked_at),
    }
