"""Flash messages kept in the signed session cookie until the next page shows them."""

from __future__ import annotations

from typing import Dict

from starlette.requests import Request

from githarbor.server.core.constant import FLASH_SESSION_KEY


def flash(request: Request, kind: str, message: str) -> None:
    messages = dict(request.session.get(FLASH_SESSION_KEY) or {})
    messages[kind] = message
    request.session[FLASH_SESSION_KEY] = messages


def pop_flash(request: Request) -> Dict[str, str]:
    """Return and clear the pending flash messages."""
    return request.session.pop(FLASH_SESSION_KEY, None) or {}
