"""
Merge request entity models.

This module contains the database entity for merge requests together with the
pure state logic that does not need git or database access: the state machine,
work-in-progress detection, merge params and the default merge commit message.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Text

from githarbor.core.errors import InvalidStateTransitionError
from githarbor.core.models.domain.enums import MergeRequestState, MergeStatus
from githarbor.git.diff import DiffRefs

from ..base import Base, utc_now

WIP_REGEX = re.compile(r"^\s*(\[WIP\]\s*|WIP:\s*|WIP\s+)+\s*", re.IGNORECASE)

# Allowed source states per state event
_TRANSITIONS: Dict[str, tuple[tuple[MergeRequestState, ...], MergeRequestState]] = {
    "close": ((MergeRequestState.opened, MergeRequestState.reopened), MergeRequestState.closed),
    "reopen": ((MergeRequestState.closed,), MergeRequestState.reopened),
    "lock_mr": ((MergeRequestState.opened, MergeRequestState.reopened), MergeRequestState.locked),
    "unlock_mr": ((MergeRequestState.locked,), MergeRequestState.reopened),
    "mark_as_merged": (
        (MergeRequestState.opened, MergeRequestState.reopened, MergeRequestState.locked),
        MergeRequestState.merged,
    ),
}


class MergeRequest(Base, table=True):
    """Entity for a merge request.

    The diff refs (``diff_base_sha``, ``diff_start_sha``, ``diff_head_sha``) are a
    snapshot taken when the merge request was created or its target changed.
    ``source_project_id`` is cleared when the source fork is deleted.

    Table: merge_requests
    """

    __tablename__ = "merge_requests"
    __table_args__ = (UniqueConstraint("target_project_id", "iid", name="uq_merge_requests_target_iid"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    iid: int = Field(index=True)
    title: str = Field(max_length=255)
    description: Optional[str] = Field(default=None, sa_type=Text)
    state: str = Field(default=MergeRequestState.opened.value, max_length=16, index=True)
    merge_status: str = Field(default=MergeStatus.unchecked.value, max_length=32)

    source_project_id: Optional[int] = Field(default=None, index=True)
    source_branch: str = Field(max_length=255, index=True)
    target_project_id: int = Field(foreign_key="projects.id", index=True)
    target_branch: str = Field(max_length=255)
    author_id: int = Field(foreign_key="users.id", index=True)

    merge_user_id: Optional[int] = Field(default=None)
    merge_when_build_succeeds: bool = Field(default=False)
    merge_params: str = Field(default="{}", sa_type=Text, description="JSON object of merge options")
    merge_error: Optional[str] = Field(default=None, sa_type=Text)
    merge_commit_sha: Optional[str] = Field(default=None, max_length=40)

    diff_base_sha: Optional[str] = Field(default=None, max_length=40)
    diff_start_sha: Optional[str] = Field(default=None, max_length=40)
    diff_head_sha: Optional[str] = Field(default=None, max_length=40)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self.state in (MergeRequestState.opened.value, MergeRequestState.reopened.value)

    @property
    def is_closed(self) -> bool:
        return self.state == MergeRequestState.closed.value

    @property
    def is_merged(self) -> bool:
        return self.state == MergeRequestState.merged.value

    @property
    def is_locked(self) -> bool:
        return self.state == MergeRequestState.locked.value

    def _fire(self, event: str) -> None:
        allowed, target = _TRANSITIONS[event]
        if MergeRequestState(self.state) not in allowed:
            raise InvalidStateTransitionError(event, self.state)
        self.state = target.value
        self.updated_at = utc_now()

    def close(self) -> None:
        self._fire("close")

    def reopen(self) -> None:
        self._fire("reopen")

    def lock_mr(self) -> None:
        self._fire("lock_mr")

    def unlock_mr(self) -> None:
        self._fire("unlock_mr")

    def mark_as_merged(self) -> None:
        self._fire("mark_as_merged")

    # ------------------------------------------------------------------
    # Work in progress
    # ------------------------------------------------------------------

    @property
    def work_in_progress(self) -> bool:
        return bool(WIP_REGEX.match(self.title or ""))

    @property
    def wipless_title(self) -> str:
        return WIP_REGEX.sub("", self.title or "", count=1)

    # ------------------------------------------------------------------
    # Diffs and merging
    # ------------------------------------------------------------------

    @property
    def for_fork(self) -> bool:
        return self.source_project_id != self.target_project_id

    @property
    def diff_refs(self) -> Optional[DiffRefs]:
        if not (self.diff_start_sha and self.diff_head_sha):
            return None
        return DiffRefs(
            base_sha=self.diff_base_sha or self.diff_start_sha,
            start_sha=self.diff_start_sha,
            head_sha=self.diff_head_sha,
        )

    @property
    def has_no_commits(self) -> bool:
        return self.diff_head_sha is None or self.diff_head_sha == self.diff_base_sha

    @property
    def head_ref(self) -> str:
        """Ref in the target repository keeping the source head reachable."""
        return f"refs/merge-requests/{self.iid}/head"

    def get_merge_params(self) -> Dict[str, Any]:
        return json.loads(self.merge_params) if self.merge_params else {}

    def set_merge_params(self, params: Dict[str, Any]) -> None:
        self.merge_params = json.dumps(params, sort_keys=True)

    def reset_merge_when_build_succeeds(self) -> None:
        if not self.merge_when_build_succeeds:
            return
        self.merge_when_build_succeeds = False
        self.merge_user_id = None
        params = self.get_merge_params()
        params.pop("should_remove_source_branch", None)
        params.pop("commit_message", None)
        self.set_merge_params(params)

    def to_reference(self) -> str:
        return f"!{self.iid}"

    def merge_commit_message(self, source_project_path: Optional[str] = None) -> str:
        """Default message for the merge commit.

        Args:
            source_project_path: Full path of the source project, given for forks.
        """
        if self.for_fork and source_project_path:
            header = f"Merge branch '{self.source_branch}' of {source_project_path} into '{self.target_branch}'"
        else:
            header = f"Merge branch '{self.source_branch}' into '{self.target_branch}'"
        parts = [header, self.title]
        if self.description:
            parts.append(self.description)
        parts.append(f"See merge request {self.to_reference()}")
        return "\n\n".join(parts)

    def touch(self) -> None:
        self.updated_at = utc_now()

    def __repr__(self) -> str:
        return f"MergeRequest(id={self.id}, iid={self.iid}, state={self.state})"
