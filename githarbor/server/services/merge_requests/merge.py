"""Merge a merge request into its target branch."""

from __future__ import annotations

import asyncio
from typing import Optional

from githarbor.core.database.entities import MergeRequest, Project
from githarbor.core.errors import MergeError
from githarbor.core.logging_config import get_logger
from githarbor.git import GitError

from ..permissions import load_policy
from .base import BaseService, git_repository
from .mergeability import mergeable

logger = get_logger(__name__)

CONFLICTS_MESSAGE = "Conflicts detected during merge"
NOT_MERGEABLE_MESSAGE = "Merge request is not mergeable"


class MergeService(BaseService):
    """Merge the source head into the target branch.

    Params: ``commit_message`` (defaults to the merge request's default merge
    commit message) and ``should_remove_source_branch``.

    The merge request is locked while git works and unlocked again when the
    merge fails; the failure reason is stored in ``merge_error``.
    """

    async def execute(self, merge_request: MergeRequest) -> Optional[str]:
        """
        Merge and return the merge commit sha, or None when the merge failed.
        """
        if not await mergeable(self.session, merge_request):
            await self._log_merge_error(merge_request, NOT_MERGEABLE_MESSAGE)
            return None

        merge_request.lock_mr()
        merge_request = await self.merge_requests.update(merge_request)

        source = await self.source_project_of(merge_request)
        try:
            merge_sha = await self._commit(merge_request, source)
        except (GitError, MergeError) as e:
            logger.error(f"Merge of {merge_request.to_reference()} failed: {e}", exc_info=True)
            merge_request.unlock_mr()
            await self._log_merge_error(merge_request, f"Something went wrong during merge: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error merging {merge_request.to_reference()}: {e}", exc_info=True)
            merge_request.unlock_mr()
            await self._log_merge_error(merge_request, f"Something went wrong during merge: {e}")
            return None

        if merge_sha is None:
            merge_request.unlock_mr()
            await self._log_merge_error(merge_request, CONFLICTS_MESSAGE)
            return None

        merge_request.merge_commit_sha = merge_sha
        merge_request.merge_error = None
        merge_request.mark_as_merged()
        await self.merge_requests.update(merge_request)
        logger.info(f"Merged {merge_request.to_reference()} as {merge_sha}")

        if self._should_remove_source_branch(merge_request):
            await self._remove_source_branch(merge_request, source)
        return merge_sha

    async def _commit(self, merge_request: MergeRequest, source: Optional[Project]) -> Optional[str]:
        if self.current_user is None:
            raise MergeError("A user is required to merge")
        target = await self.target_project_of(merge_request)
        if target is None or merge_request.diff_head_sha is None:
            raise MergeError("Target project or source commit is missing")

        message = self.params.get("commit_message") or merge_request.merge_commit_message(
            source.full_path if source else None
        )
        return await asyncio.to_thread(
            git_repository(target).merge,
            source_sha=merge_request.diff_head_sha,
            target_branch=merge_request.target_branch,
            message=message,
            author_name=self.current_user.name,
            author_email=self.current_user.email,
        )

    def _should_remove_source_branch(self, merge_request: MergeRequest) -> bool:
        value = self.params.get("should_remove_source_branch")
        if value is None:
            value = merge_request.get_merge_params().get("should_remove_source_branch")
        return value in (True, "1", 1, "true")

    async def _remove_source_branch(self, merge_request: MergeRequest, source: Optional[Project]) -> None:
        if source is None:
            return
        policy = await load_policy(self.session, source, self.current_user)
        if not policy.can("push_code"):
            logger.info(f"User cannot push to {source.full_path}; keeping {merge_request.source_branch}")
            return
        await asyncio.to_thread(git_repository(source).delete_branch, merge_request.source_branch)

    async def _log_merge_error(self, merge_request: MergeRequest, message: str) -> None:
        logger.warning(f"Merge request {merge_request.to_reference()}: {message}")
        merge_request.merge_error = message
        await self.merge_requests.update(merge_request)
