"""Base class of entities that can see the current request."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, PrivateAttr
from starlette.requests import Request


class RequestAwareEntity(BaseModel):
    """Pydantic entity built from an arbitrary subject object.

    Each declared field is read from the subject attribute of the same name;
    attributes that are methods (``has_details``) are called. Subclasses may
    override ``expose`` to compute values from the request.
    """

    _request: Optional[Request] = PrivateAttr(default=None)

    @property
    def request(self) -> Optional[Request]:
        return self._request

    @classmethod
    def expose(cls, subject: Any, request: Optional[Request]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            value = getattr(subject, name, None)
            values[name] = value() if callable(value) else value
        return values

    @classmethod
    def build(cls, subject: Any, request: Optional[Request] = None) -> "RequestAwareEntity":
        entity = cls.model_validate(cls.expose(subject, request))
        entity._request = request
        return entity

    @classmethod
    def represent(cls, subject: Any, request: Optional[Request] = None) -> Dict[str, Any]:
        """JSON-ready dict of the exposed attributes."""
        return cls.build(subject, request).model_dump(mode="json")
