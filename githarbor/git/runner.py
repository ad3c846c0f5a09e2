"""GitRunner -- low-level git command execution."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from typing import Mapping, Optional

from githarbor.core.logging_config import get_logger

from .errors import GitError, NotARepositoryError

logger = get_logger(__name__)


class GitRunner:
    """Low-level git command runner with repository validation.

    Works with bare repositories (the normal layout for hosted projects) as
    well as working copies. Higher-level operations live in ``Repository``.
    """

    def __init__(self, repo_path: str | Path, *, git_bin: str = "git", timeout: int = 60) -> None:
        """Initialize git runner.

        Args:
            repo_path: Path to the repository (bare directory or working copy)
            git_bin: Git executable to invoke
            timeout: Default timeout in seconds for each command

        Raises:
            NotARepositoryError: If the path is not a git repository
        """
        self.repo_path = Path(repo_path).resolve()
        self.git_bin = git_bin
        self.timeout = timeout
        self.git_dir = self._resolve_git_dir()

    def _resolve_git_dir(self) -> Path:
        """Locate the git directory for repo_path."""
        dot_git = self.repo_path / ".git"
        if dot_git.is_dir():
            return dot_git
        if (self.repo_path / "HEAD").is_file() and (self.repo_path / "objects").is_dir():
            return self.repo_path
        raise NotARepositoryError(str(self.repo_path))

    def _run(
        self,
        *args: str,
        check: bool = True,
        input: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        timeout: Optional[int] = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run a git command.

        Args:
            *args: Git command arguments
            check: Whether to raise on non-zero exit
            input: Text passed on stdin
            env: Extra environment variables for the command
            timeout: Timeout in seconds, defaults to the runner timeout

        Returns:
            Completed process result

        Raises:
            GitError: If the command fails (when check=True) or times out
        """
        cmd = [self.git_bin, "--git-dir", str(self.git_dir), "-c", "core.quotePath=false", *args]
        timeout = timeout or self.timeout
        logger.debug(f"Running: {' '.join(cmd)}")

        run_env = None
        if env:
            run_env = {**os.environ, **env}

        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                check=check,
                timeout=timeout,
                input=input,
                env=run_env,
            )
        except subprocess.TimeoutExpired as e:
            raise GitError(
                f"Git command timed out after {timeout}s: {' '.join(args)}",
                command=" ".join(cmd),
                exit_code=-1,
            ) from e
        except subprocess.CalledProcessError as e:
            raise GitError(
                f"Git command failed: {e.stderr.strip() if e.stderr else str(e)}",
                command=" ".join(cmd),
                exit_code=e.returncode,
            ) from e
