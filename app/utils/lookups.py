"""Fetch helpers shared by the routers. Missing rows become 404s."""

from typing import Dict, Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.models.invitation import Invitation
from app.models.project import Project
from app.models.task import Task
from app.models.team import Team
from app.models.user import User


async def load_users(db: AsyncSession, user_ids: Iterable[str]) -> Dict[str, User]:
    ids = {uid for uid in user_ids if uid}
    if not ids:
        return {}
    result = await db.execute(select(User).where(User.user_id.in_(ids)))
    return {user.user_id: user for user in result.scalars().all()}


def member_ids(*entities) -> set:
    ids = set()
    for entity in entities:
        if entity is None:
            continue
        ids.add(entity.owner_id)
        ids.update(m.user_id for m in entity.members)
    return ids


async def get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found", "USER_NOT_FOUND")
    return user


async def get_task_or_404(db: AsyncSession, task_id: str) -> Task:
    task = await db.get(Task, task_id)
    if not task:
        raise NotFoundError("Task not found", "TASK_NOT_FOUND")
    return task


async def get_team_or_404(db: AsyncSession, team_id: str) -> Team:
    team = await db.get(Team, team_id)
    if not team:
        raise NotFoundError("Team not found", "TEAM_NOT_FOUND")
    return team


async def get_project_or_404(db: AsyncSession, project_id: str) -> Project:
    project = await db.get(Project, project_id)
    if not project:
        raise NotFoundError("Project not found", "PROJECT_NOT_FOUND")
    return project


async def get_invitation_or_404(db: AsyncSession, invitation_id: str) -> Invitation:
    invitation = await db.get(Invitation, invitation_id)
    if not invitation:
        raise NotFoundError("Invitation not found", "INVITATION_NOT_FOUND")
    return invitation


async def delete_tasks(db: AsyncSession, *criteria) -> int:
    """Delete tasks (and their subtasks, time entries, comments) through the ORM."""
    result = await db.execute(select(Task).where(*criteria))
    tasks = result.scalars().all()
    for task in tasks:
        await db.delete(task)
    return len(tasks)


async def delete_project_cascade(db: AsyncSession, project: Project) -> int:
    """Delete a project together with its tasks. Does not commit."""
    removed = await delete_tasks(db, Task.project_id == project.project_id)
    await db.flush()
    await db.delete(project)
    return removed


async def delete_team_cascade(db: AsyncSession, team: Team) -> int:
    """Delete a team, its projects with their tasks and its invitations. Does not commit. Returns projects removed."""
    result = await db.execute(select(Project).where(Project.team_id == team.team_id))
    projects = result.scalars().all()
    for project in projects:
        await delete_project_cascade(db, project)
    await db.execute(delete(Invitation).where(Invitation.team_id == team.team_id))
    await db.flush()
    await db.delete(team)
    return len(projects)
