"""Update a merge request."""

from __future__ import annotations

from githarbor.core.database.entities import MergeRequest
from githarbor.core.logging_config import get_logger
from githarbor.core.models.domain.enums import MergeStatus, StateEvent

from .base import BaseService

logger = get_logger(__name__)

UPDATABLE_FIELDS = ("title", "description", "target_branch")


class UpdateService(BaseService):
    """Apply ``title``, ``description``, ``target_branch`` and ``state_event``.

    Closing and reopening never touch git, so a merge request whose source
    fork was deleted can still be closed.
    """

    async def execute(self, merge_request: MergeRequest) -> MergeRequest:
        state_event = self.params.get("state_event")
        if state_event == StateEvent.close.value:
            merge_request.close()
        elif state_event == StateEvent.reopen.value:
            merge_request.reopen()
        elif state_event:
            raise ValueError(f"Unknown state event: {state_event}")

        target_changed = False
        for name in UPDATABLE_FIELDS:
            if name not in self.params or self.params[name] is None:
                continue
            value = self.params[name]
            if name == "target_branch" and value != merge_request.target_branch:
                target_changed = True
            setattr(merge_request, name, value)

        if target_changed:
            await self.refresh_diff_refs(merge_request)
            merge_request.merge_status = MergeStatus.unchecked.value

        merge_request.touch()
        merge_request = await self.merge_requests.update(merge_request)
        logger.info(f"Updated merge request {merge_request.to_reference()} (state={merge_request.state})")
        return merge_request
