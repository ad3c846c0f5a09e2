"""
Projects repository.

Project lookup by full path, membership management and project removal.
Removing a fork keeps the merge requests it opened against its parent; they
simply lose their source project.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from githarbor.core.logging_config import get_logger
from githarbor.core.models.domain.enums import AccessLevel

from ..entities.merge_requests import MergeRequest
from ..entities.pipelines import Pipeline
from ..entities.projects import Project, ProjectMember
from ..entities.users import Namespace
from .base import AsyncBaseRepository

logger = get_logger(__name__)


class ProjectRepository(AsyncBaseRepository[Project]):
    """Repository for project data access operations using SQLModel."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Project)

    async def find_by_full_path(self, namespace_path: str, project_path: str) -> Optional[Project]:
        full_path = f"{namespace_path}/{project_path}"
        result = await self.session.execute(select(Project).where(Project.full_path == full_path))
        return result.scalars().first()

    async def get_namespace(self, project: Project) -> Optional[Namespace]:
        return await self.session.get(Namespace, project.namespace_id)

    async def member_access_level(self, project_id: int, user_id: int) -> Optional[int]:
        result = await self.session.execute(
            select(ProjectMember.access_level).where(
                (ProjectMember.project_id == project_id) & (ProjectMember.user_id == user_id)
            )
        )
        return result.scalars().first()

    async def add_member(self, project: Project, user_id: int, access_level: AccessLevel) -> ProjectMember:
        """Add a member or change the access level of an existing one."""
        result = await self.session.execute(
            select(ProjectMember).where(
                (ProjectMember.project_id == project.id) & (ProjectMember.user_id == user_id)
            )
        )
        member = result.scalars().first()
        if member is None:
            member = ProjectMember(project_id=project.id, user_id=user_id, access_level=int(access_level))
        else:
            member.access_level = int(access_level)
        self.session.add(member)
        await self.session.commit()
        await self.session.refresh(member)
        return member

    async def truncate_team(self, project: Project) -> None:
        """Remove every member of the project."""
        await self.session.execute(delete(ProjectMember).where(ProjectMember.project_id == project.id))
        await self.session.commit()

    async def destroy(self, project: Project) -> None:
        """Delete a project, its members, pipelines and merge requests.

        Merge requests opened from this project against another one are kept
        with their source project cleared.
        """
        logger.info(f"Destroying project {project.full_path}")
        await self.session.execute(
            update(MergeRequest)
            .where((MergeRequest.source_project_id == project.id) & (MergeRequest.target_project_id != project.id))
            .values(source_project_id=None)
        )
        await self.session.execute(delete(MergeRequest).where(MergeRequest.target_project_id == project.id))
        await self.session.execute(delete(Pipeline).where(Pipeline.project_id == project.id))
        await self.session.execute(delete(ProjectMember).where(ProjectMember.project_id == project.id))
        await self.session.delete(project)
        await self.session.commit()
