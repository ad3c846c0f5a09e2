"""Shared plumbing for merge request services."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from githarbor.core.database.entities import MergeRequest, Project, User
from githarbor.core.database.repositories import (
    MergeRequestRepository,
    PipelineRepository,
    ProjectRepository,
)
from githarbor.git import DiffCollection, DiffRefs, Repository
from githarbor.server.core.config import settings


def git_repository(project: Project) -> Repository:
    """Open the bare repository backing a project."""
    return Repository(project.repository_path, git_bin=settings.git.binary, timeout=settings.git.timeout)


async def compare_diff_refs(
    project: Project,
    diff_refs: DiffRefs,
    *,
    ignore_whitespace_change: bool = False,
    paths: Optional[list[str]] = None,
) -> DiffCollection:
    """Diff ``base_sha..head_sha`` in the repository of ``project``."""
    repository = git_repository(project)
    return await asyncio.to_thread(
        repository.compare,
        diff_refs.base_sha,
        diff_refs.head_sha,
        ignore_whitespace_change=ignore_whitespace_change,
        paths=paths,
    )


class BaseService:
    """Base class of the merge request services."""

    def __init__(
        self,
        session: AsyncSession,
        project: Project,
        current_user: Optional[User],
        params: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.session = session
        self.project = project
        self.current_user = current_user
        self.params: Dict[str, Any] = dict(params or {})
        self.merge_requests = MergeRequestRepository(session)
        self.projects = ProjectRepository(session)
        self.pipelines = PipelineRepository(session)

    async def source_project_of(self, merge_request: MergeRequest) -> Optional[Project]:
        if merge_request.source_project_id is None:
            return None
        return await self.projects.get_by_id(merge_request.source_project_id)

    async def target_project_of(self, merge_request: MergeRequest) -> Optional[Project]:
        if merge_request.target_project_id == self.project.id:
            return self.project
        return await self.projects.get_by_id(merge_request.target_project_id)

    async def refresh_diff_refs(self, merge_request: MergeRequest) -> None:
        """Snapshot the base, start and head shas of the merge request.

        The source head is kept reachable from the target repository under
        ``merge_request.head_ref``; fork branches are fetched there first.
        Nothing changes when the source project or a branch is gone.
        """
        source = await self.source_project_of(merge_request)
        target = await self.target_project_of(merge_request)
        if source is None or target is None:
            return

        head_sha = await asyncio.to_thread(
            fetch_source_head, source, target, merge_request.source_branch, merge_request.head_ref
        )
        target_repository = git_repository(target)
        start_sha = await asyncio.to_thread(target_repository.branch_sha, merge_request.target_branch)
        if head_sha is None or start_sha is None:
            return

        merge_request.diff_head_sha = head_sha
        merge_request.diff_start_sha = start_sha
        merge_request.diff_base_sha = await asyncio.to_thread(target_repository.merge_base, start_sha, head_sha)


def fetch_source_head(source: Project, target: Project, branch: str, ref: str) -> Optional[str]:
    """Make the head of ``source``'s ``branch`` available in ``target`` as ``ref``.

    Returns:
        The head sha, or None when the branch does not exist.
    """
    target_repository = git_repository(target)
    if source.id == target.id:
        sha = target_repository.branch_sha(branch)
        if sha is not None:
            target_repository.write_ref(ref, sha)
        return sha
    return target_repository.fetch_ref(source.repository_path, branch, ref)
