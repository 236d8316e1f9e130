"""Split multi-file unified diffs into per-file entries.

``split_unified_diff`` is a pure, total partition: every character of
the input lands in exactly one entry, in order. Text before the first
``diff --git`` header becomes an entry of its own with the ``unknown``
path rather than being dropped.
"""
from __future__ import annotations

import re
from collections.abc import Iterator

from chatgroup.errors import OversizeError
from chatgroup.shared.models.diff import DiffFileEntry

FILE_BOUNDARY = "diff --git "
UNKNOWN_PATH = "unknown"

MAX_INLINE_DIFF_CHARS = 1_000_000
MAX_INLINE_DIFF_FILES = 120

_GIT_PATHS_RE = re.compile(r"^diff --git a/(.+?) b/(.+)$")


def _iter_lines(text: str) -> Iterator[str]:
    """Yield lines with their trailing newline kept.

    Only ``\\n`` separates lines; ``str.splitlines`` would also break on
    form feeds and other separators that can legitimately appear inside
    a patch line.
    """
    start = 0
    while start < len(text):
        end = text.find("\n", start)
        if end == -1:
            yield text[start:]
            return
        yield text[start:end + 1]
        start = end + 1


def _path_from_boundary(line: str) -> str:
    header = line.rstrip("\r\n")
    match = _GIT_PATHS_RE.match(header)
    if match and match.group(2):
        return match.group(2)
    return header[len(FILE_BOUNDARY):].strip() or UNKNOWN_PATH


def count_changes(lines: list[str]) -> tuple[int, int]:
    """Count added and removed lines in one file's slice.

    ``+++``/``---`` lines are file headers only until the first hunk
    marker; inside a hunk they are ordinary changed lines.
    """
    additions = 0
    deletions = 0
    in_hunk = False
    for line in lines:
        if line.startswith("@@"):
            in_hunk = True
            continue
        if not in_hunk and line.startswith(("+++", "---")):
            continue
        if line.startswith("+"):
            additions += 1
        elif line.startswith("-"):
            deletions += 1
    return additions, deletions


def _entry(path: str, lines: list[str]) -> DiffFileEntry:
    additions, deletions = count_changes(lines)
    return DiffFileEntry(
        path=path or UNKNOWN_PATH,
        patch="".join(lines),
        additions=additions,
        deletions=deletions,
    )


def split_unified_diff(patch: str) -> list[DiffFileEntry]:
    if not isinstance(patch, str) or not patch:
        return []

    entries: list[DiffFileEntry] = []
    current: list[str] = []
    current_path = UNKNOWN_PATH

    for line in _iter_lines(patch):
        if line.startswith(FILE_BOUNDARY):
            if current:
                entries.append(_entry(current_path, current))
            current = [line]
            current_path = _path_from_boundary(line)
            continue
        current.append(line)

    if current:
        entries.append(_entry(current_path, current))
    return entries


def split_unified_diff_checked(
    patch: str,
    max_chars: int = MAX_INLINE_DIFF_CHARS,
    max_files: int = MAX_INLINE_DIFF_FILES,
) -> list[DiffFileEntry]:
    """Split *patch* for inline display, enforcing the size ceilings.

    Raises:
        OversizeError: the text is longer than *max_chars* (checked
            before parsing) or yields more than *max_files* entries.
    """
    if len(patch) > max_chars:
        raise OversizeError("chars", len(patch), max_chars)
    files = split_unified_diff(patch)
    if len(files) > max_files:
        raise OversizeError("files", len(files), max_files)
    return files


def total_changes(files: list[DiffFileEntry]) -> tuple[int, int]:
    return (
        sum(f.additions for f in files),
        sum(f.deletions for f in files),
    )
