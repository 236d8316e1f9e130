"""Diff metadata and per-file diff entries."""
from __future__ import annotations

from dataclasses import dataclass, field

MAX_INLINE_FILE_PATCH_CHARS = 300_000


@dataclass(frozen=True)
class DiffMeta:
    """Diff information carried in a message's metadata."""
    run_id: str | None = None
    preview: str | None = None
    truncated: bool = False
    available: bool = False
    untracked_files: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DiffFileEntry:
    """One file's slice of a unified diff.

    ``patch`` is the verbatim text of the slice, so concatenating the
    patches of all entries of a diff reproduces the diff.
    """
    path: str
    patch: str
    additions: int = 0
    deletions: int = 0

    def too_large(self, limit: int = MAX_INLINE_FILE_PATCH_CHARS) -> bool:
        """True when the patch should be shown collapsed instead of highlighted."""
        return len(self.patch) > limit
