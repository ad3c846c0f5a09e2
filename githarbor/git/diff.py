"""Unified diff parsing.

``parse_diff`` turns the output of ``git diff --full-index`` into ``Diff``
objects. Each diff keeps its raw hunk text and can be expanded into typed
lines for inline or side-by-side rendering.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from itertools import zip_longest
from typing import Iterator, List, Optional, Sequence

SUBMODULE_MODE = "160000"

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")
_ESCAPES = {"t": "\t", "n": "\n", '"': '"', "\\": "\\", "a": "\a", "b": "\b", "f": "\f", "r": "\r", "v": "\v"}


@dataclass(frozen=True)
class DiffRefs:
    """The three shas a merge request diff is computed from."""

    base_sha: str
    start_sha: str
    head_sha: str


@dataclass(frozen=True)
class DiffLine:
    """A single rendered diff line.

    ``type`` is one of ``match`` (hunk header), ``old``, ``new``, ``context``
    or ``nonewline``. Positions are 1-based and None where not applicable.
    """

    type: str
    text: str
    old_pos: Optional[int] = None
    new_pos: Optional[int] = None


@dataclass
class Diff:
    """The change of a single file between two commits."""

    old_path: str
    new_path: str
    a_mode: Optional[str] = None
    b_mode: Optional[str] = None
    new_file: bool = False
    deleted_file: bool = False
    renamed_file: bool = False
    binary: bool = False
    diff: str = ""

    @property
    def submodule(self) -> bool:
        return SUBMODULE_MODE in (self.a_mode, self.b_mode)

    @property
    def mode_changed(self) -> bool:
        return bool(self.a_mode and self.b_mode and self.a_mode != self.b_mode)

    @property
    def file_path(self) -> str:
        return self.old_path if self.deleted_file else self.new_path

    def lines(self) -> Iterator[DiffLine]:
        """Expand the hunk text into typed lines with positions."""
        old_pos = new_pos = 0
        for raw in _split_lines(self.diff):
            header = _HUNK_HEADER.match(raw)
            if header:
                old_pos = int(header.group(1))
                new_pos = int(header.group(3))
                yield DiffLine("match", raw)
            elif raw.startswith("-"):
                yield DiffLine("old", raw[1:], old_pos=old_pos)
                old_pos += 1
            elif raw.startswith("+"):
                yield DiffLine("new", raw[1:], new_pos=new_pos)
                new_pos += 1
            elif raw.startswith("\\"):
                yield DiffLine("nonewline", raw)
            else:
                yield DiffLine("context", raw[1:], old_pos=old_pos, new_pos=new_pos)
                old_pos += 1
                new_pos += 1

    def parallel_lines(self) -> List[tuple[Optional[DiffLine], Optional[DiffLine]]]:
        """Pair lines for side-by-side rendering.

        Runs of removed lines are matched with the run of added lines that
        follows them; context and hunk headers appear on both sides.
        """
        pairs: List[tuple[Optional[DiffLine], Optional[DiffLine]]] = []
        removed: List[DiffLine] = []
        added: List[DiffLine] = []

        def flush() -> None:
            pairs.extend(zip_longest(removed, added))
            removed.clear()
            added.clear()

        for line in self.lines():
            if line.type == "old":
                if added:
                    flush()
                removed.append(line)
            elif line.type == "new":
                added.append(line)
            elif line.type == "nonewline":
                continue
            else:
                flush()
                pairs.append((line, line))
        flush()
        return pairs


class DiffCollection(Sequence[Diff]):
    """Ordered collection of file diffs."""

    def __init__(self, diffs: Optional[List[Diff]] = None) -> None:
        self._diffs = list(diffs or [])

    def __getitem__(self, index):  # type: ignore[override]
        return self._diffs[index]

    def __len__(self) -> int:
        return len(self._diffs)

    @property
    def new_paths(self) -> List[str]:
        return [diff.new_path for diff in self._diffs]

    def find(self, old_path: Optional[str], new_path: Optional[str]) -> Optional[Diff]:
        """Return the diff whose old and new path both match, if any."""
        for diff in self._diffs:
            if diff.old_path == old_path and diff.new_path == new_path:
                return diff
        return None

    def __repr__(self) -> str:
        return f"DiffCollection({self.new_paths!r})"


def _unquote(path: str) -> str:
    """Undo git's C-style quoting of unusual paths."""
    if not (len(path) >= 2 and path.startswith('"') and path.endswith('"')):
        return path
    body = path[1:-1]
    out = bytearray()
    i = 0
    while i < len(body):
        char = body[i]
        if char == "\\" and i + 1 < len(body):
            nxt = body[i + 1]
            if nxt in _ESCAPES:
                out.extend(_ESCAPES[nxt].encode())
                i += 2
                continue
            if body[i + 1 : i + 4].isdigit():
                out.append(int(body[i + 1 : i + 4], 8))
                i += 4
                continue
        out.extend(char.encode())
        i += 1
    return out.decode("utf-8", errors="replace")


def _split_lines(text: str) -> List[str]:
    # Only newlines end a line; form feeds and other separators are content.
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def _strip_prefix(path: str, prefix: str) -> str:
    path = _unquote(path)
    return path[len(prefix) :] if path.startswith(prefix) else path


def _paths_from_header(header: str) -> tuple[str, str]:
    """Read the paths of ``diff --git a/X b/Y`` when no other header names them."""
    rest = header[len("diff --git ") :]
    if rest.startswith('"'):
        end = rest.index('"', 1)
        while rest[end - 1] == "\\":
            end = rest.index('"', end + 1)
        old, new = rest[: end + 1], rest[end + 2 :]
        return _strip_prefix(old, "a/"), _strip_prefix(new, "b/")
    # Unquoted paths are identical on both sides unless renamed
    half = (len(rest) - 1) // 2
    old, new = rest[:half], rest[half + 1 :]
    return _strip_prefix(old, "a/"), _strip_prefix(new, "b/")


def _parse_section(lines: List[str]) -> Diff:
    old_path, new_path = _paths_from_header(lines[0])
    diff = Diff(old_path=old_path, new_path=new_path)
    body_start = len(lines)

    for index, line in enumerate(lines[1:], start=1):
        if line.startswith("@@"):
            body_start = index
            break
        if line.startswith("old mode "):
            diff.a_mode = line[len("old mode ") :]
        elif line.startswith("new mode "):
            diff.b_mode = line[len("new mode ") :]
        elif line.startswith("new file mode "):
            diff.new_file = True
            diff.b_mode = line[len("new file mode ") :]
        elif line.startswith("deleted file mode "):
            diff.deleted_file = True
            diff.a_mode = line[len("deleted file mode ") :]
        elif line.startswith("rename from "):
            diff.renamed_file = True
            diff.old_path = _unquote(line[len("rename from ") :])
        elif line.startswith("rename to "):
            diff.renamed_file = True
            diff.new_path = _unquote(line[len("rename to ") :])
        elif line.startswith("index "):
            parts = line.split(" ")
            if len(parts) == 3:
                diff.a_mode = diff.a_mode or parts[2]
                diff.b_mode = diff.b_mode or parts[2]
        elif line.startswith("--- "):
            source = line[4:]
            if source != "/dev/null":
                diff.old_path = _strip_prefix(source, "a/")
        elif line.startswith("+++ "):
            target = line[4:]
            if target != "/dev/null":
                diff.new_path = _strip_prefix(target, "b/")
        elif line.startswith("Binary files ") or line == "GIT binary patch":
            diff.binary = True

    # New and deleted files keep the surviving path on both sides
    if diff.new_file:
        diff.old_path = diff.new_path
    if diff.deleted_file:
        diff.new_path = diff.old_path

    diff.diff = "\n".join(lines[body_start:])
    if diff.diff:
        diff.diff += "\n"
    return diff


def parse_diff(text: str) -> DiffCollection:
    """Parse ``git diff`` output into a ``DiffCollection``."""
    sections: List[List[str]] = []
    for line in _split_lines(text):
        if line.startswith("diff --git "):
            sections.append([line])
        elif sections:
            sections[-1].append(line)
    return DiffCollection([_parse_section(section) for section in sections])

