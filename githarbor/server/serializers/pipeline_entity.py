"""PipelineEntity -- a pipeline with its detailed status."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from starlette.requests import Request

from githarbor.core.models.domain.enums import PipelineStatus

from .request_aware import RequestAwareEntity
from .status_entity import StatusEntity


class PipelineEntity(RequestAwareEntity):
    id: int
    project_id: int
    sha: str
    ref: str
    status: PipelineStatus
    created_at: datetime
    updated_at: datetime
    details: Dict[str, Any]

    @classmethod
    def expose(cls, subject: Any, request: Optional[Request]) -> Dict[str, Any]:
        """``subject`` is a ``(pipeline, detailed_status)`` pair."""
        pipeline, status = subject
        values = super().expose(pipeline, request)
        values["details"] = {"status": StatusEntity.represent(status, request)}
        return values
