"""Git access for GitHarbor.

``GitRunner`` executes git commands against a repository on disk,
``Repository`` builds the higher level operations used by merge requests on
top of it, ``diff`` parses unified diffs and ``workhorse`` builds the
send-data headers used to stream raw diffs and patches.
"""

from .diff import Diff, DiffCollection, DiffLine, DiffRefs, parse_diff
from .errors import GitError, NotARepositoryError
from .repository import Commit, Repository
from .runner import GitRunner

__all__ = [
    "Commit",
    "Diff",
    "DiffCollection",
    "DiffLine",
    "DiffRefs",
    "GitError",
    "GitRunner",
    "NotARepositoryError",
    "Repository",
    "parse_diff",
]
