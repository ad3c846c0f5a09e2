"""Paths of the HTML pages, built from entities."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from githarbor.core.database.entities import MergeRequest, Pipeline, Project


def project_path(project: "Project") -> str:
    return f"/{project.full_path}"


def merge_requests_path(project: "Project") -> str:
    return f"{project_path(project)}/merge_requests"


def merge_request_path(project: "Project", merge_request: "MergeRequest", suffix: str = "") -> str:
    """Path of a merge request page, e.g. ``suffix="/diffs"`` for the diffs tab."""
    return f"{merge_requests_path(project)}/{merge_request.iid}{suffix}"


def pipeline_path(project: "Project", pipeline: "Pipeline") -> str:
    return f"{project_path(project)}/pipelines/{pipeline.id}"
