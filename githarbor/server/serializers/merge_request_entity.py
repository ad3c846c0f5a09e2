"""MergeRequestEntity -- a merge request as JSON."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from starlette.requests import Request

from .request_aware import RequestAwareEntity


class MergeRequestEntity(RequestAwareEntity):
    id: int
    iid: int
    title: str
    description: Optional[str] = None
    state: str
    merge_status: str
    source_project_id: Optional[int] = None
    source_branch: str
    target_project_id: int
    target_branch: str
    author_id: int
    work_in_progress: bool
    merge_when_build_succeeds: bool
    merge_error: Optional[str] = None
    merge_commit_sha: Optional[str] = None
    diff_head_sha: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    web_url: Optional[str] = None

    @classmethod
    def expose(cls, subject: Any, request: Optional[Request]) -> Dict[str, Any]:
        """``subject`` is a ``(merge_request, path)`` pair; ``web_url`` is absolute when a request is given."""
        merge_request, path = subject
        values = super().expose(merge_request, request)
        values["web_url"] = str(request.base_url).rstrip("/") + path if request is not None else path
        return values
