"""Repository -- git operations used by merge requests.

Everything here works on bare repositories and never needs a working tree:
comparisons use ``git diff`` between commits, merges are computed with
``git merge-tree --write-tree`` and recorded with ``commit-tree`` and a
compare-and-swap ``update-ref``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional

from githarbor.core.logging_config import get_logger

from .diff import DiffCollection, parse_diff
from .runner import GitRunner

logger = get_logger(__name__)

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = _FIELD_SEP.join(["%H", "%an", "%ae", "%aI", "%s", "%B"]) + _RECORD_SEP


@dataclass(frozen=True)
class Commit:
    """A commit as listed on the merge request commits tab."""

    id: str
    author_name: str
    author_email: str
    authored_date: datetime
    title: str
    message: str

    @property
    def short_id(self) -> str:
        return self.id[:8]


class Repository(GitRunner):
    """High-level git operations on a hosted repository."""

    # ------------------------------------------------------------------
    # Refs
    # ------------------------------------------------------------------

    def commit_sha(self, ref: str) -> Optional[str]:
        """Resolve a ref or sha to a commit sha, or None when it does not exist."""
        result = self._run("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def branch_exists(self, name: str) -> bool:
        if not name:
            return False
        result = self._run("show-ref", "--verify", "--quiet", f"refs/heads/{name}", check=False)
        return result.returncode == 0

    def branch_sha(self, name: str) -> Optional[str]:
        return self.commit_sha(f"refs/heads/{name}") if self.branch_exists(name) else None

    def branch_names(self) -> List[str]:
        result = self._run("for-each-ref", "--format=%(refname:short)", "refs/heads/")
        return sorted(line for line in result.stdout.splitlines() if line)

    def merge_base(self, first: str, second: str) -> Optional[str]:
        result = self._run("merge-base", first, second, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.strip()

    def fetch_ref(self, source_path: str | Path, branch: str, target_ref: str) -> Optional[str]:
        """Copy ``branch`` of another repository into ``target_ref`` of this one.

        Used for merge requests from forks so the source commits are reachable
        from the target repository.

        Returns:
            The fetched sha, or None when the source branch does not exist.
        """
        source = Repository(source_path, git_bin=self.git_bin, timeout=self.timeout)
        if not source.branch_exists(branch):
            return None
        self._run("fetch", "--no-tags", "--quiet", str(source.repo_path), f"+refs/heads/{branch}:{target_ref}")
        return self.commit_sha(target_ref)

    def write_ref(self, ref: str, sha: str) -> None:
        self._run("update-ref", ref, sha)

    def delete_branch(self, name: str) -> None:
        logger.info(f"Deleting branch {name} in {self.repo_path}")
        self._run("update-ref", "-d", f"refs/heads/{name}")

    # ------------------------------------------------------------------
    # Comparing
    # ------------------------------------------------------------------

    def compare(
        self,
        base_sha: str,
        head_sha: str,
        *,
        ignore_whitespace_change: bool = False,
        paths: Optional[Iterable[str]] = None,
    ) -> DiffCollection:
        """Diff two commits.

        Args:
            base_sha: Commit the diff starts from
            head_sha: Commit the diff ends at
            ignore_whitespace_change: Ignore changes in amount of whitespace
            paths: Limit the diff to these paths

        Returns:
            Parsed diffs, one per changed file
        """
        args = ["diff", "--full-index", "--no-color", "--no-ext-diff", "-M"]
        if ignore_whitespace_change:
            args.append("--ignore-space-change")
        args.extend([base_sha, head_sha])
        path_list = [path for path in (paths or []) if path]
        if path_list:
            args.append("--")
            args.extend(dict.fromkeys(path_list))
        result = self._run(*args)
        return parse_diff(result.stdout)

    def commits_between(self, base_sha: str, head_sha: str, limit: Optional[int] = None) -> List[Commit]:
        """List commits reachable from head but not base, newest first."""
        args = ["log", f"--format={_LOG_FORMAT}"]
        if limit:
            args.append(f"--max-count={limit}")
        args.append(f"{base_sha}..{head_sha}")
        result = self._run(*args)

        commits: List[Commit] = []
        for record in result.stdout.split(_RECORD_SEP):
            record = record.strip("\n")
            if not record:
                continue
            sha, name, email, date, title, message = record.split(_FIELD_SEP, 5)
            commits.append(
                Commit(
                    id=sha,
                    author_name=name,
                    author_email=email,
                    authored_date=datetime.fromisoformat(date),
                    title=title,
                    message=message.strip(),
                )
            )
        return commits

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def _merge_tree(self, target_sha: str, source_sha: str) -> Optional[str]:
        """Compute the merged tree, or None when the merge conflicts."""
        result = self._run("merge-tree", "--write-tree", "--no-messages", target_sha, source_sha, check=False)
        if result.returncode == 1:
            return None
        if result.returncode != 0:
            # Re-run with check to raise a GitError carrying stderr
            self._run("merge-tree", "--write-tree", "--no-messages", target_sha, source_sha)
        return result.stdout.splitlines()[0].strip()

    def can_be_merged(self, source_sha: str, target_branch: str) -> bool:
        target_sha = self.branch_sha(target_branch)
        if target_sha is None:
            return False
        return self._merge_tree(target_sha, source_sha) is not None

    def merge(
        self,
        *,
        source_sha: str,
        target_branch: str,
        message: str,
        author_name: str,
        author_email: str,
    ) -> Optional[str]:
        """Merge ``source_sha`` into ``target_branch``.

        Returns:
            The merge commit sha, or None when the merge has conflicts.

        Raises:
            GitError: If the target branch moved while merging
        """
        target_sha = self.branch_sha(target_branch)
        if target_sha is None:
            return None
        tree = self._merge_tree(target_sha, source_sha)
        if tree is None:
            logger.info(f"Merge of {source_sha} into {target_branch} has conflicts")
            return None

        identity = {
            "GIT_AUTHOR_NAME": author_name,
            "GIT_AUTHOR_EMAIL": author_email,
            "GIT_COMMITTER_NAME": author_name,
            "GIT_COMMITTER_EMAIL": author_email,
        }
        result = self._run(
            "commit-tree", tree, "-p", target_sha, "-p", source_sha, "-F", "-", input=message, env=identity
        )
        merge_sha = result.stdout.strip()
        self._run("update-ref", f"refs/heads/{target_branch}", merge_sha, target_sha)
        logger.info(f"Merged {source_sha} into {target_branch} as {merge_sha}")
        return merge_sha
