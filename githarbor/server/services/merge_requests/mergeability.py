"""Whether a merge request can be merged right now."""

from __future__ import annotations

import asyncio
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from githarbor.core.database.entities import MergeRequest, Pipeline, Project
from githarbor.core.database.repositories import (
    MergeRequestRepository,
    PipelineRepository,
    ProjectRepository,
)
from githarbor.core.logging_config import get_logger
from githarbor.core.models.domain.enums import MergeStatus

from .base import git_repository

logger = get_logger(__name__)


async def head_pipeline(session: AsyncSession, merge_request: MergeRequest) -> Optional[Pipeline]:
    """Latest pipeline of the source project for the source branch at the head sha."""
    if merge_request.source_project_id is None or merge_request.diff_head_sha is None:
        return None
    return await PipelineRepository(session).latest_for(
        merge_request.source_project_id, merge_request.source_branch, merge_request.diff_head_sha
    )


async def is_broken(session: AsyncSession, merge_request: MergeRequest) -> bool:
    """A merge request is broken when a branch is gone or there is nothing to merge."""
    if merge_request.has_no_commits:
        return True
    projects = ProjectRepository(session)
    source: Optional[Project] = None
    if merge_request.source_project_id is not None:
        source = await projects.get_by_id(merge_request.source_project_id)
    target = await projects.get_by_id(merge_request.target_project_id)
    if source is None or target is None:
        return True

    source_exists = await asyncio.to_thread(git_repository(source).branch_exists, merge_request.source_branch)
    target_exists = await asyncio.to_thread(git_repository(target).branch_exists, merge_request.target_branch)
    return not (source_exists and target_exists)


async def mergeable_ci_state(session: AsyncSession, merge_request: MergeRequest) -> bool:
    target = await ProjectRepository(session).get_by_id(merge_request.target_project_id)
    if target is None or not target.only_allow_merge_if_build_succeeds:
        return True
    pipeline = await head_pipeline(session, merge_request)
    return pipeline is None or pipeline.is_success or pipeline.is_skipped


async def check_if_can_be_merged(session: AsyncSession, merge_request: MergeRequest) -> bool:
    """Run the conflict check and record the result in ``merge_status``."""
    target = await ProjectRepository(session).get_by_id(merge_request.target_project_id)
    if target is None or merge_request.diff_head_sha is None:
        return False

    clean = await asyncio.to_thread(
        git_repository(target).can_be_merged, merge_request.diff_head_sha, merge_request.target_branch
    )
    status = MergeStatus.can_be_merged if clean else MergeStatus.cannot_be_merged
    if merge_request.merge_status != status.value:
        merge_request.merge_status = status.value
        await MergeRequestRepository(session).update(merge_request)
    return clean


async def mergeable(session: AsyncSession, merge_request: MergeRequest, *, skip_ci_check: bool = False) -> bool:
    """
    Check every merge precondition.

    Args:
        session: Database session
        merge_request: The merge request to check
        skip_ci_check: Ignore the head pipeline even when the target project
            only allows merging after a successful build

    Returns:
        True when the merge request is open, not a work in progress, not
        broken, has an acceptable CI state and merges without conflicts.
    """
    if not merge_request.is_open or merge_request.work_in_progress:
        return False
    if await is_broken(session, merge_request):
        return False
    if not skip_ci_check and not await mergeable_ci_state(session, merge_request):
        return False
    return await check_if_can_be_merged(session, merge_request)
