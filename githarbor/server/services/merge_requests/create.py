"""Persist a new merge request."""

from __future__ import annotations

from githarbor.core.logging_config import get_logger

from .base import BaseService
from .build import BuildResult, BuildService

logger = get_logger(__name__)


class CreateService(BaseService):
    """Build a merge request from params and save it.

    The returned ``BuildResult`` carries validation errors instead of a saved
    merge request when the params do not describe a valid comparison.
    """

    async def execute(self) -> BuildResult:
        result = await BuildService(self.session, self.project, self.current_user, self.params).execute()
        if not result.valid:
            return result
        if not result.merge_request.title:
            result.errors.append("Title can't be blank")
            return result
        if result.merge_request.diff_head_sha is None:
            result.errors.append("There are no commits to merge")
            return result

        merge_request = result.merge_request
        merge_request.iid = await self.merge_requests.next_iid(merge_request.target_project_id)
        await self.refresh_diff_refs(merge_request)
        result.merge_request = await self.merge_requests.create(merge_request)
        logger.info(
            f"Created merge request {merge_request.to_reference()} in project {merge_request.target_project_id}"
        )
        return result
