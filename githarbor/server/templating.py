"""Jinja2 environment for the HTML pages and fragments."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi.templating import Jinja2Templates

from githarbor.core.models.domain.enums import DiffViewType
from githarbor.server.core import constant

from . import routing

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals.update(
    project_name=constant.PROJECT_NAME,
    project_path=routing.project_path,
    merge_requests_path=routing.merge_requests_path,
    merge_request_path=routing.merge_request_path,
    pipeline_path=routing.pipeline_path,
    parallel_view=DiffViewType.parallel.value,
)


def render_fragment(name: str, **context: Any) -> str:
    """Render a partial template to a string for ``{"html": ...}`` responses."""
    return templates.get_template(name).render(**context)
