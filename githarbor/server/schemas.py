"""
API Schemas.

This module contains Pydantic models used for request bodies and JSON
responses. Request bodies keep the nested ``{"merge_request": {...}}`` shape
of the HTML forms they replace.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from githarbor.core.models.domain.enums import MergeResult, PipelineStatus, StateEvent


class MergeRequestParams(BaseModel):
    """Branch selection and fields of a new merge request."""

    source_project: Optional[Union[int, str]] = Field(
        default=None, description="Id or full path of the source project. Defaults to the current project."
    )
    source_branch: Optional[str] = Field(default=None, examples=["feature"])
    target_project: Optional[Union[int, str]] = Field(
        default=None, description="Id or full path of the target project. Defaults to the fork parent."
    )
    target_branch: Optional[str] = Field(default=None, examples=["master"])
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None


class MergeRequestCreate(BaseModel):
    merge_request: MergeRequestParams


class MergeRequestUpdateParams(BaseModel):
    """Editable merge request fields."""

    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    target_branch: Optional[str] = None
    state_event: Optional[StateEvent] = Field(default=None, description="close or reopen")


class MergeRequestUpdate(BaseModel):
    merge_request: MergeRequestUpdateParams


class MergeParams(BaseModel):
    """
    Options of the merge endpoint.

    ``sha`` must equal the merge request's head sha, so a merge never includes
    commits the user has not seen.
    """

    sha: Optional[str] = None
    merge_when_build_succeeds: bool = False
    should_remove_source_branch: bool = False
    commit_message: Optional[str] = None

    def merge_params(self) -> Dict[str, Any]:
        """Options forwarded to the merge service."""
        params: Dict[str, Any] = {"should_remove_source_branch": self.should_remove_source_branch}
        if self.commit_message:
            params["commit_message"] = self.commit_message
        return params


class MergeResponse(BaseModel):
    status: MergeResult


class MergeRequestErrors(BaseModel):
    errors: List[str]


class HtmlFragment(BaseModel):
    """A rendered partial returned to the page scripts."""

    html: str


class PipelineCreate(BaseModel):
    sha: str = Field(..., min_length=7, max_length=40)
    ref: str = Field(..., min_length=1, max_length=255)
    status: PipelineStatus = PipelineStatus.pending


class PipelineUpdate(BaseModel):
    status: PipelineStatus


class PipelineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    project_id: int
    sha: str
    ref: str
    status: PipelineStatus
    created_at: datetime
    updated_at: datetime
    details: Dict[str, Any] = Field(default_factory=dict)
