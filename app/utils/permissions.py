"""Role based permission checks for teams and projects.

Both aggregates carry an `owner_id` and a `members` list of rows with
`user_id` and `role`, so a single resolver serves both. Absence from the
member list resolves to None / False; callers turn that into a 403.
"""

from typing import Optional

from app.constants.constants import ProjectRole, TeamRole

OWNER = "owner"

TEAM_ACTIONS = {
    "view_team",
    "view_team_members",
    "create_projects",
    "invite_members",
    "manage_members",
    "manage_projects",
    "manage_settings",
    "delete_team",
}

PROJECT_ACTIONS = {
    "view_project",
    "add_comments",
    "manage_tasks",
    "manage_members",
    "edit_project",
    "archive_project",
    "delete_project",
}

TEAM_ROLE_ACTIONS = {
    TeamRole.member.value: {"view_team", "create_projects", "view_team_members"},
    TeamRole.admin.value: {
        "view_team", "create_projects", "view_team_members",
        "manage_members", "manage_projects", "manage_settings", "invite_members",
    },
}

PROJECT_ROLE_ACTIONS = {
    ProjectRole.viewer.value: {"view_project"},
    ProjectRole.contributor.value: {"view_project", "manage_tasks", "add_comments"},
    ProjectRole.manager.value: {
        "view_project", "manage_tasks", "add_comments",
        "manage_members", "edit_project", "archive_project",
    },
}


def _role_value(role) -> str:
    return getattr(role, "value", role)


def _actions_for(entity) -> tuple[dict, set]:
    if hasattr(entity, "project_id"):
        return PROJECT_ROLE_ACTIONS, PROJECT_ACTIONS
    return TEAM_ROLE_ACTIONS, TEAM_ACTIONS


def find_member(principal_id, entity):
    """Linear scan of the member list, comparing identifiers as strings."""
    principal_id = str(principal_id)
    for member in entity.members or []:
        if str(member.user_id) == principal_id:
            return member
    return None


def role_of(principal_id, entity) -> Optional[str]:
    if principal_id is None or entity is None:
        return None
    if str(entity.owner_id) == str(principal_id):
        return OWNER
    member = find_member(principal_id, entity)
    return _role_value(member.role) if member else None


def has_permission(principal_id, entity, action: str) -> bool:
    role = role_of(principal_id, entity)
    if role is None:
        return False
    role_actions, all_actions = _actions_for(entity)
    if role == OWNER:
        return action in all_actions
    return action in role_actions.get(role, set())


def member_permissions(role, entity_kind: str = "team") -> dict:
    """Role-implied permission flags, as exposed in member listings."""
    role = _role_value(role)
    if entity_kind == "project":
        role_actions, all_actions = PROJECT_ROLE_ACTIONS, PROJECT_ACTIONS
    else:
        role_actions, all_actions = TEAM_ROLE_ACTIONS, TEAM_ACTIONS
    allowed = all_actions if role == OWNER else role_actions.get(role, set())
    return {action: action in allowed for action in sorted(all_actions)}


def can_delete_project(principal_id, project, team=None) -> bool:
    """Only the project owner may delete, with the owning team's owner as fallback authority."""
    if role_of(principal_id, project) == OWNER:
        return True
    return team is not None and str(team.owner_id) == str(principal_id)
