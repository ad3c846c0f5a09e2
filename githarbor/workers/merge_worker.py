"""MergeWorker -- merge a merge request in the background."""

from __future__ import annotations

from typing import Any, Dict, Optional

from githarbor.core.database.repositories import MergeRequestRepository, ProjectRepository, UserRepository
from githarbor.core.logging_config import get_logger
from githarbor.server.services.merge_requests.merge import MergeService

from .base import Worker

logger = get_logger(__name__)


class MergeWorker(Worker):
    """Run ``MergeService`` for ``(merge_request_id, user_id, params)``."""

    async def perform(self, merge_request_id: int, user_id: Optional[int], params: Optional[Dict[str, Any]] = None) -> None:
        async with self.session_factory() as session:
            merge_request = await MergeRequestRepository(session).get_by_id(merge_request_id)
            if merge_request is None:
                logger.warning(f"Merge request {merge_request_id} no longer exists")
                return
            user = await UserRepository(session).get_by_id(user_id) if user_id is not None else None
            project = await ProjectRepository(session).get_by_id(merge_request.target_project_id)
            if project is None:
                logger.warning(f"Target project of merge request {merge_request_id} no longer exists")
                return
            await MergeService(session, project, user, params or {}).execute(merge_request)
