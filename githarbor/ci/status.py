"""Detailed pipeline statuses.

Each pipeline status maps to a small presentation object carrying the icon,
text, label and group shown by the CI widgets. Pipeline statuses additionally
know whether the viewer may open the pipeline page and where it lives.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Optional, Type

from githarbor.core.models.domain.enums import PipelineStatus

if TYPE_CHECKING:
    from githarbor.core.database.entities import Pipeline, User


class Core:
    """Base detailed status; subclasses set the presentation attributes."""

    text: str = ""
    label: str = ""
    icon: str = ""
    group: str = ""

    def __init__(self, subject: "Pipeline", user: Optional["User"]) -> None:
        self.subject = subject
        self.user = user

    def has_details(self) -> bool:
        return False

    def details_path(self) -> Optional[str]:
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(group={self.group})"


class Created(Core):
    text = "created"
    label = "created"
    icon = "icon_status_created"
    group = "created"


class Pending(Core):
    text = "pending"
    label = "pending"
    icon = "icon_status_pending"
    group = "pending"


class Running(Core):
    text = "running"
    label = "running"
    icon = "icon_status_running"
    group = "running"


class Success(Core):
    text = "passed"
    label = "passed"
    icon = "icon_status_success"
    group = "success"


class Failed(Core):
    text = "failed"
    label = "failed"
    icon = "icon_status_failed"
    group = "failed"


class Canceled(Core):
    text = "canceled"
    label = "canceled"
    icon = "icon_status_canceled"
    group = "canceled"


class Skipped(Core):
    text = "skipped"
    label = "skipped"
    icon = "icon_status_skipped"
    group = "skipped"


class Manual(Core):
    text = "manual"
    label = "manual action"
    icon = "icon_status_manual"
    group = "manual"


STATUSES: Dict[PipelineStatus, Type[Core]] = {
    PipelineStatus.created: Created,
    PipelineStatus.pending: Pending,
    PipelineStatus.running: Running,
    PipelineStatus.success: Success,
    PipelineStatus.failed: Failed,
    PipelineStatus.canceled: Canceled,
    PipelineStatus.skipped: Skipped,
    PipelineStatus.manual: Manual,
}


class PipelineStatusDetails:
    """Decorates a core status with the pipeline page link."""

    def __init__(self, status: Core, *, can_read: bool, path: str) -> None:
        self._status = status
        self._can_read = can_read
        self._path = path

    def __getattr__(self, name: str):
        return getattr(self._status, name)

    def has_details(self) -> bool:
        return self._can_read

    def details_path(self) -> Optional[str]:
        return self._path


def detailed_status(
    pipeline: "Pipeline",
    user: Optional["User"],
    *,
    can_read: bool,
    path: str,
) -> PipelineStatusDetails:
    """Build the detailed status for a pipeline as seen by ``user``.

    Args:
        pipeline: The pipeline being displayed
        user: The viewer, None for anonymous visitors
        can_read: Whether the viewer may read pipelines of the project
        path: The pipeline's page path
    """
    core = STATUSES[PipelineStatus(pipeline.status)](pipeline, user)
    return PipelineStatusDetails(core, can_read=can_read, path=path)
