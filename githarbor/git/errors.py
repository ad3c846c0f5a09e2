"""Error types raised by the git layer."""

from __future__ import annotations

from typing import Optional


class GitError(Exception):
    """Raised when a git command fails or times out."""

    def __init__(self, message: str, command: Optional[str] = None, exit_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.command = command
        self.exit_code = exit_code


class NotARepositoryError(GitError):
    """Raised when a path does not hold a git repository."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not a git repository: {path}")
        self.path = path
