"""Build an unsaved merge request by comparing two branches."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, List, Optional

from githarbor.core.database.entities import MergeRequest, Project
from githarbor.core.logging_config import get_logger
from githarbor.git import Commit, DiffRefs

from ..permissions import load_policy
from .base import BaseService, fetch_source_head, git_repository

logger = get_logger(__name__)


@dataclass
class BuildResult:
    """A merge request built from branch params and what the comparison found."""

    merge_request: MergeRequest
    source_project: Optional[Project]
    target_project: Optional[Project]
    errors: List[str] = field(default_factory=list)
    commits: List[Commit] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def diff_refs(self) -> Optional[DiffRefs]:
        return self.merge_request.diff_refs


def compare_ref(source_project_id: int, branch: str) -> str:
    """Ref in the target repository holding a compared source branch head."""
    return f"refs/tmp/source-projects/{source_project_id}/{branch}"


def default_title(source_branch: str, commits: List[Commit]) -> str:
    if len(commits) == 1:
        return commits[0].title
    return source_branch.replace("-", " ").replace("_", " ").strip().capitalize()


class BuildService(BaseService):
    """Compare ``merge_request[source_branch]`` with ``merge_request[target_branch]``.

    Params (all optional): ``source_project`` and ``target_project`` as an id
    or full path, ``source_branch``, ``target_branch``, ``title`` and
    ``description``. The source project defaults to the current project; the
    target project defaults to the project it was forked from, or the current
    project.
    """

    async def _find_project(self, value: Any) -> Optional[Project]:
        if isinstance(value, int) or (isinstance(value, str) and value.isdigit()):
            project = await self.projects.get_by_id(int(value))
        elif isinstance(value, str) and "/" in value:
            namespace_path, project_path = value.rsplit("/", 1)
            project = await self.projects.find_by_full_path(namespace_path, project_path)
        else:
            return None
        if project is None:
            return None
        # Unreadable projects are reported the same way as missing ones
        policy = await load_policy(self.session, project, self.current_user)
        return project if policy.can("read_project") else None

    async def _resolve_projects(self, errors: List[str]) -> tuple[Optional[Project], Optional[Project]]:
        source: Optional[Project] = self.project
        if self.params.get("source_project"):
            source = await self._find_project(self.params["source_project"])
            if source is None:
                errors.append("Source project not found")

        if self.params.get("target_project"):
            target = await self._find_project(self.params["target_project"])
            if target is None:
                errors.append("Target project not found")
        elif self.project.forked_from_project_id is not None:
            target = await self.projects.get_by_id(self.project.forked_from_project_id)
            target = target or self.project
        else:
            target = self.project
        return source, target

    async def execute(self) -> BuildResult:
        errors: List[str] = []
        source, target = await self._resolve_projects(errors)
        source_branch = (self.params.get("source_branch") or "").strip()
        target_branch = (self.params.get("target_branch") or "").strip()
        if target is not None and not target_branch:
            target_branch = target.default_branch

        merge_request = MergeRequest(
            iid=0,
            title=(self.params.get("title") or "").strip(),
            description=self.params.get("description"),
            source_project_id=source.id if source else None,
            source_branch=source_branch,
            target_project_id=target.id if target else self.project.id,
            target_branch=target_branch,
            author_id=self.current_user.id if self.current_user else 0,
        )
        result = BuildResult(merge_request, source, target, errors)
        if source is None or target is None:
            return result

        if not source_branch or not target_branch:
            errors.append("You must select source and target branch")
            return result
        if source.id == target.id and source_branch == target_branch:
            errors.append("You must select different branches")
            return result

        source_repository = git_repository(source)
        target_repository = git_repository(target)
        if not await asyncio.to_thread(source_repository.branch_exists, source_branch):
            errors.append(f'Source branch "{source_branch}" does not exist')
        if not await asyncio.to_thread(target_repository.branch_exists, target_branch):
            errors.append(f'Target branch "{target_branch}" does not exist')
        if errors:
            return result

        existing = await self.merge_requests.find_open_for_branches(
            source_project_id=source.id,
            source_branch=source_branch,
            target_project_id=target.id,
            target_branch=target_branch,
        )
        if existing is not None:
            errors.append(f"This merge request already exists: {existing.to_reference()}")

        await self._compare(result, source, target)
        if not merge_request.title:
            merge_request.title = default_title(source_branch, result.commits)
        return result

    async def _compare(self, result: BuildResult, source: Project, target: Project) -> None:
        merge_request = result.merge_request
        ref = compare_ref(source.id, merge_request.source_branch)
        head_sha = await asyncio.to_thread(fetch_source_head, source, target, merge_request.source_branch, ref)
        repository = git_repository(target)
        start_sha = await asyncio.to_thread(repository.branch_sha, merge_request.target_branch)
        if head_sha is None or start_sha is None:
            return

        merge_request.diff_head_sha = head_sha
        merge_request.diff_start_sha = start_sha
        merge_request.diff_base_sha = await asyncio.to_thread(repository.merge_base, start_sha, head_sha)
        base_sha = merge_request.diff_base_sha or start_sha
        result.commits = await asyncio.to_thread(repository.commits_between, base_sha, head_sha)
        logger.debug(
            f"Compared {source.full_path}:{merge_request.source_branch} with "
            f"{target.full_path}:{merge_request.target_branch}: {len(result.commits)} commits"
        )
