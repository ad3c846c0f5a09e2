"""Domain enums for merge requests, projects and pipelines."""

from __future__ import annotations

from enum import Enum, IntEnum


class AccessLevel(IntEnum):
    """
    Project membership levels.

    Higher levels include every permission of the lower ones.
    """

    guest = 10
    reporter = 20
    developer = 30
    master = 40
    owner = 50


class Visibility(str, Enum):
    """Who can see a project without being a member."""

    private = "private"  # Members only.
    internal = "internal"  # Any signed-in user.
    public = "public"  # Everyone, including anonymous visitors.


class MergeRequestState(str, Enum):
    """Lifecycle state of a merge request."""

    opened = "opened"
    reopened = "reopened"
    closed = "closed"
    locked = "locked"  # A merge is in progress.
    merged = "merged"


class MergeStatus(str, Enum):
    """Cached result of the last conflict check."""

    unchecked = "unchecked"
    can_be_merged = "can_be_merged"
    cannot_be_merged = "cannot_be_merged"


class StateEvent(str, Enum):
    """State events accepted by the update endpoint."""

    close = "close"
    reopen = "reopen"


class PipelineStatus(str, Enum):
    """Status of a CI pipeline."""

    created = "created"
    pending = "pending"
    running = "running"
    success = "success"
    failed = "failed"
    canceled = "canceled"
    skipped = "skipped"
    manual = "manual"

    @property
    def is_active(self) -> bool:
        return self in (PipelineStatus.pending, PipelineStatus.running)


class MergeResult(str, Enum):
    """Outcome reported by the merge endpoint."""

    success = "success"
    failed = "failed"
    sha_mismatch = "sha_mismatch"
    merge_when_build_succeeds = "merge_when_build_succeeds"


class DiffViewType(str, Enum):
    """Diff rendering mode persisted in the ``diff_view`` cookie."""

    inline = "inline"
    parallel = "parallel"
