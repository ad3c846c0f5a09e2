"""
Pipelines repository.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.pipelines import Pipeline
from .base import AsyncBaseRepository


class PipelineRepository(AsyncBaseRepository[Pipeline]):
    """Repository for CI pipelines using SQLModel."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, Pipeline)

    async def find_for_project(self, project_id: int, pipeline_id: int) -> Optional[Pipeline]:
        pipeline = await self.get_by_id(pipeline_id)
        if pipeline is None or pipeline.project_id != project_id:
            return None
        return pipeline

    async def latest_for(self, project_id: int, ref: str, sha: str) -> Optional[Pipeline]:
        """Most recent pipeline of a project for the given ref and sha."""
        result = await self.session.execute(
            select(Pipeline)
            .where((Pipeline.project_id == project_id) & (Pipeline.ref == ref) & (Pipeline.sha == sha))
            .order_by(Pipeline.id.desc())  # type: ignore
        )
        return result.scalars().first()
