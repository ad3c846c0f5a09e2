"""
Pipeline entity models.

Pipelines are reported by an external CI runner for a (ref, sha) pair of a
project. Merge requests look up their head pipeline to decide whether a merge
can happen now or has to wait for the build.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field

from githarbor.core.models.domain.enums import PipelineStatus

from ..base import Base, utc_now


class Pipeline(Base, table=True):
    """Entity for a CI pipeline.

    Table: ci_pipelines
    """

    __tablename__ = "ci_pipelines"

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="projects.id", index=True)
    sha: str = Field(max_length=40, index=True)
    ref: str = Field(max_length=255, index=True)
    status: str = Field(default=PipelineStatus.created.value, max_length=16, index=True)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return PipelineStatus(self.status).is_active

    @property
    def is_success(self) -> bool:
        return self.status == PipelineStatus.success.value

    @property
    def is_skipped(self) -> bool:
        return self.status == PipelineStatus.skipped.value

    def __repr__(self) -> str:
        return f"Pipeline(id={self.id}, ref={self.ref}, sha={self.sha}, status={self.status})"
