"""
Merge requests repository.

Lookup by per-project iid, state filtered listings, iid allocation and the
queries used by merge-when-build-succeeds.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from githarbor.core.models.domain.enums import MergeRequestState

from ..entities.merge_requests import MergeRequest
from .base import AsyncBaseRepository, QueryBuilder

OPEN_STATES = (MergeRequestState.opened.value, MergeRequestState.reopened.value)

# Listing filters accepted by the index page
STATE_FILTERS = {
    "opened": OPEN_STATES,
    "closed": (MergeRequestState.closed.value,),
    "merged": (MergeRequestState.merged.value,),
    "locked": (MergeRequestState.locked.value,),
    "all": None,
}


class MergeRequestRepository(AsyncBaseRepository[MergeRequest]):
    """Repository for merge request data access operations using SQLModel."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, MergeRequest)

    async def find_by_iid(self, target_project_id: int, iid: int) -> Optional[MergeRequest]:
        result = await self.session.execute(
            select(MergeRequest).where(
                (MergeRequest.target_project_id == target_project_id) & (MergeRequest.iid == iid)
            )
        )
        return result.scalars().first()

    async def list_for_project(
        self,
        target_project_id: int,
        state: str = "opened",
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[MergeRequest]:
        """List merge requests targeting a project, newest first.

        Args:
            target_project_id: Project the merge requests target
            state: One of ``opened`` (includes reopened), ``closed``, ``merged``, ``locked`` or ``all``
        """
        stmt = select(MergeRequest).where(MergeRequest.target_project_id == target_project_id)
        states = STATE_FILTERS.get(state, OPEN_STATES)
        if states:
            stmt = QueryBuilder.apply_filters(stmt, MergeRequest, {"state": states})
        stmt = stmt.order_by(MergeRequest.created_at.desc(), MergeRequest.id.desc())  # type: ignore
        stmt = QueryBuilder.apply_pagination(stmt, limit, offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def next_iid(self, target_project_id: int) -> int:
        result = await self.session.execute(
            select(func.max(MergeRequest.iid)).where(MergeRequest.target_project_id == target_project_id)
        )
        return (result.scalar() or 0) + 1

    async def find_open_for_branches(
        self,
        *,
        source_project_id: int,
        source_branch: str,
        target_project_id: int,
        target_branch: str,
        exclude_ids: Iterable[int] = (),
    ) -> Optional[MergeRequest]:
        stmt = select(MergeRequest).where(
            (MergeRequest.source_project_id == source_project_id)
            & (MergeRequest.source_branch == source_branch)
            & (MergeRequest.target_project_id == target_project_id)
            & (MergeRequest.target_branch == target_branch)
            & (MergeRequest.state.in_(OPEN_STATES))  # type: ignore
        )
        excluded = [merge_request_id for merge_request_id in exclude_ids if merge_request_id is not None]
        if excluded:
            stmt = stmt.where(MergeRequest.id.not_in(excluded))  # type: ignore
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def list_open_from_source(self, source_project_id: int, source_branch: str) -> List[MergeRequest]:
        """Open merge requests whose source is the given project branch."""
        result = await self.session.execute(
            select(MergeRequest).where(
                (MergeRequest.source_project_id == source_project_id)
                & (MergeRequest.source_branch == source_branch)
                & (MergeRequest.state.in_(OPEN_STATES))  # type: ignore
            )
        )
        return list(result.scalars().all())
