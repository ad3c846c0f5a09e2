"""Workhorse send-data headers.

Raw diffs and patches are not produced by the application server. It answers
with an empty body and a header telling the front proxy (workhorse) which
repository and commits to stream.
"""

from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Any, Dict, Tuple

from .diff import DiffRefs

SEND_DATA_HEADER = "Gitlab-Workhorse-Send-Data"


def encode(params: Dict[str, Any]) -> str:
    """URL-safe base64 of the JSON encoded params."""
    return base64.urlsafe_b64encode(json.dumps(params).encode()).decode()


def decode(value: str) -> Dict[str, Any]:
    return json.loads(base64.urlsafe_b64decode(value.encode()).decode())


def _diff_params(repository_path: str | Path, diff_refs: DiffRefs) -> Dict[str, Any]:
    return {
        "RepoPath": str(repository_path),
        "ShaFrom": diff_refs.base_sha,
        "ShaTo": diff_refs.head_sha,
    }


def send_git_diff(repository_path: str | Path, diff_refs: DiffRefs) -> Tuple[str, str]:
    """Header instructing workhorse to stream ``git diff`` output."""
    return SEND_DATA_HEADER, f"git-diff:{encode(_diff_params(repository_path, diff_refs))}"


def send_git_patch(repository_path: str | Path, diff_refs: DiffRefs) -> Tuple[str, str]:
    """Header instructing workhorse to stream ``git format-patch`` output."""
    return SEND_DATA_HEADER, f"git-format-patch:{encode(_diff_params(repository_path, diff_refs))}"
