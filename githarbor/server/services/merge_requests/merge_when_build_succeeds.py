"""Merge a merge request once its head pipeline succeeds."""

from __future__ import annotations

from githarbor.core.database.entities import MergeRequest, Pipeline
from githarbor.core.logging_config import get_logger
from githarbor.workers.merge_worker import MergeWorker

from .base import BaseService
from .mergeability import head_pipeline, mergeable

logger = get_logger(__name__)


class MergeWhenBuildSucceedsService(BaseService):
    """Schedule, trigger and cancel merges waiting for a build."""

    async def execute(self, merge_request: MergeRequest) -> MergeRequest:
        """Store the merge params and flag the merge request."""
        merge_params = merge_request.get_merge_params()
        merge_params.update(self.params)
        merge_request.set_merge_params(merge_params)

        if not merge_request.merge_when_build_succeeds:
            merge_request.merge_when_build_succeeds = True
            merge_request.merge_user_id = self.current_user.id if self.current_user else None
            logger.info(f"Merge request {merge_request.to_reference()} will merge when the build succeeds")

        merge_request.touch()
        return await self.merge_requests.update(merge_request)

    async def trigger(self, pipeline: Pipeline) -> int:
        """Hand waiting merge requests to the merge worker after a successful build.

        Returns:
            Number of merges scheduled
        """
        if not pipeline.is_success:
            return 0

        scheduled = 0
        for merge_request in await self.merge_requests.list_open_from_source(pipeline.project_id, pipeline.ref):
            if not merge_request.merge_when_build_succeeds:
                continue
            head = await head_pipeline(self.session, merge_request)
            if head is None or head.id != pipeline.id:
                continue
            if not await mergeable(self.session, merge_request):
                logger.info(f"Merge request {merge_request.to_reference()} is not mergeable after pipeline {pipeline.id}")
                continue
            MergeWorker.perform_async(merge_request.id, merge_request.merge_user_id, merge_request.get_merge_params())
            scheduled += 1
        return scheduled

    async def cancel(self, merge_request: MergeRequest) -> bool:
        """Stop waiting for the build.

        Returns:
            False when the merge request was not waiting for a build.
        """
        if not (merge_request.is_open and merge_request.merge_when_build_succeeds):
            return False
        merge_request.reset_merge_when_build_succeeds()
        merge_request.touch()
        await self.merge_requests.update(merge_request)
        logger.info(f"Canceled merge when build succeeds for {merge_request.to_reference()}")
        return True
