"""StatusEntity -- the CI status badge as JSON."""

from __future__ import annotations

from typing import Optional

from .request_aware import RequestAwareEntity


class StatusEntity(RequestAwareEntity):
    """Exposes ``icon``, ``text``, ``label``, ``has_details`` and ``details_path`` of a detailed status."""

    icon: str
    text: str
    label: str
    has_details: bool
    details_path: Optional[str] = None
