"""PipelineSuccessWorker -- continue merges that waited for a build."""

from __future__ import annotations

from githarbor.core.database.repositories import PipelineRepository, ProjectRepository
from githarbor.core.logging_config import get_logger
from githarbor.server.services.merge_requests.merge_when_build_succeeds import MergeWhenBuildSucceedsService

from .base import Worker

logger = get_logger(__name__)


class PipelineSuccessWorker(Worker):
    """Run ``MergeWhenBuildSucceedsService.trigger`` for a pipeline id."""

    async def perform(self, pipeline_id: int) -> None:
        async with self.session_factory() as session:
            pipeline = await PipelineRepository(session).get_by_id(pipeline_id)
            if pipeline is None:
                logger.warning(f"Pipeline {pipeline_id} no longer exists")
                return
            project = await ProjectRepository(session).get_by_id(pipeline.project_id)
            if project is None:
                return
            scheduled = await MergeWhenBuildSucceedsService(session, project, None).trigger(pipeline)
            logger.info(f"Pipeline {pipeline_id} succeeded; scheduled {scheduled} merges")
