"""Error types for the GitHarbor domain.

Defines a small hierarchy of exceptions raised by entities and services to
signal invalid state changes and merge failures.
"""

from __future__ import annotations


class GitharborError(Exception):
    """Base error for all GitHarbor domain exceptions."""


class InvalidStateTransitionError(GitharborError):
    """Raised when a merge request state event is not allowed from its current state."""

    def __init__(self, event: str, state: str) -> None:
        self.event = event
        self.state = state
        super().__init__(f"Cannot {event} a merge request that is {state}")


class MergeError(GitharborError):
    """Raised when a merge cannot be completed."""
