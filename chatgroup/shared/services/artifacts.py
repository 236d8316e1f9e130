"""Fetch-and-cache controllers for run artifacts.

Each controller owns its cache exclusively. A request for a key that is
already loading, or whose content or error is cached, is a no-op;
``refresh`` drops the entry and loads it again.

Results that complete after :meth:`reset` (session switch or teardown)
belong to a previous generation and are discarded instead of being
written into the current state.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from chatgroup.errors import FetchError, OversizeError
from chatgroup.shared.diff_parser import (
    MAX_INLINE_DIFF_CHARS,
    MAX_INLINE_DIFF_FILES,
    split_unified_diff_checked,
)
from chatgroup.shared.models.diff import MAX_INLINE_FILE_PATCH_CHARS, DiffFileEntry

if TYPE_CHECKING:
    from chatgroup.adapters.api import ChatApi

logger = logging.getLogger(__name__)

DIFF_LOAD_ERROR = "Unable to load diff."
FILE_LOAD_ERROR = "Unable to load file."
LOG_LOAD_ERROR = "Unable to load run log."


@dataclass(frozen=True)
class RunDiffState:
    loading: bool = False
    error: str | None = None
    files: list[DiffFileEntry] = field(default_factory=list)
    loaded: bool = False


@dataclass(frozen=True)
class UntrackedFileState:
    loading: bool = False
    error: str | None = None
    content: str | None = None
    open: bool = False


@dataclass(frozen=True)
class RunLogState:
    loading: bool = False
    error: str | None = None
    content: str = ""
    loaded: bool = False


def untracked_key(run_id: str, path: str) -> str:
    return f"{run_id}:{path}"


class _GenerationGuard:
    """Generation counter shared by the controllers below."""

    def __init__(self) -> None:
        self._generation = 0

    @property
    def generation(self) -> int:
        return self._generation

    def _bump(self) -> None:
        self._generation += 1

    def _is_stale(self, generation: int, what: str) -> bool:
        if generation == self._generation:
            return False
        logger.debug("Discarding stale %s result (generation %d != %d)",
                     what, generation, self._generation)
        return True


class DiffViewerController(_GenerationGuard):
    """State behind the diff viewer: per-run diffs and untracked files."""

    def __init__(
        self,
        api: ChatApi,
        max_chars: int = MAX_INLINE_DIFF_CHARS,
        max_files: int = MAX_INLINE_DIFF_FILES,
        max_file_patch_chars: int = MAX_INLINE_FILE_PATCH_CHARS,
    ) -> None:
        super().__init__()
        self._api = api
        self._max_chars = max_chars
        self._max_files = max_files
        self._max_file_patch_chars = max_file_patch_chars
        self.run_id: str | None = None
        self.untracked: list[str] = []
        self.has_diff = False
        self.is_open = False
        self.fullscreen = False
        self._run_diffs: dict[str, RunDiffState] = {}
        self._untracked: dict[str, UntrackedFileState] = {}

    @property
    def run_diffs(self) -> dict[str, RunDiffState]:
        return dict(self._run_diffs)

    @property
    def untracked_content(self) -> dict[str, UntrackedFileState]:
        return dict(self._untracked)

    def diff_state(self, run_id: str) -> RunDiffState | None:
        return self._run_diffs.get(run_id)

    def untracked_state(self, run_id: str, path: str) -> UntrackedFileState | None:
        return self._untracked.get(untracked_key(run_id, path))

    def file_too_large(self, entry: DiffFileEntry) -> bool:
        """True when *entry* should render collapsed under this viewer's ceiling."""
        return entry.too_large(self._max_file_patch_chars)

    # ── viewer ──────────────────────────────────────────────────────

    async def open_viewer(
        self, run_id: str, untracked: list[str], has_diff: bool,
    ) -> None:
        self.run_id = run_id
        self.untracked = list(untracked)
        self.has_diff = has_diff
        self.is_open = True
        self.fullscreen = False
        if run_id and has_diff:
            await self.load_diff(run_id)

    def close_viewer(self) -> None:
        self.is_open = False
        self.fullscreen = False

    def toggle_fullscreen(self) -> None:
        self.fullscreen = not self.fullscreen

    # ── diffs ───────────────────────────────────────────────────────

    async def load_diff(self, run_id: str) -> None:
        existing = self._run_diffs.get(run_id)
        if existing is not None and (
            existing.loading or existing.loaded or existing.error
        ):
            return

        generation = self.generation
        self._run_diffs[run_id] = RunDiffState(loading=True)
        try:
            patch = await self._api.get_run_diff(run_id)
            files = split_unified_diff_checked(
                patch, self._max_chars, self._max_files,
            )
        except OversizeError as exc:
            logger.info("Run %s diff not rendered inline: %s (%d > %d)",
                        run_id, exc.kind, exc.size, exc.limit)
            state = RunDiffState(error=exc.user_message)
        except FetchError as exc:
            logger.warning("Failed to load run diff %s: %s", run_id, exc)
            state = RunDiffState(error=DIFF_LOAD_ERROR)
        except Exception:
            logger.exception("Unexpected error loading run diff %s", run_id)
            state = RunDiffState(error=DIFF_LOAD_ERROR)
        else:
            state = RunDiffState(files=files, loaded=True)

        if self._is_stale(generation, f"diff {run_id}"):
            return
        self._run_diffs[run_id] = state

    async def refresh_diff(self, run_id: str) -> None:
        self._run_diffs.pop(run_id, None)
        await self.load_diff(run_id)

    def raw_diff_url(self, run_id: str) -> str:
        return self._api.run_diff_url(run_id)

    # ── untracked files ─────────────────────────────────────────────

    async def toggle_untracked(self, run_id: str, path: str) -> None:
        key = untracked_key(run_id, path)
        existing = self._untracked.get(key)
        if existing is not None and existing.open:
            self._untracked[key] = replace(existing, open=False)
            return

        cached = existing is not None and (
            existing.content is not None or existing.error is not None
        )
        in_flight = existing is not None and existing.loading
        self._untracked[key] = UntrackedFileState(
            loading=not cached,
            error=existing.error if existing else None,
            content=existing.content if existing else None,
            open=True,
        )
        if cached or in_flight:
            return

        generation = self.generation
        try:
            content = await self._api.get_run_untracked_file(run_id, path)
            state = UntrackedFileState(content=content, open=True)
        except FetchError as exc:
            logger.warning("Failed to load untracked file %s for run %s: %s",
                           path, run_id, exc)
            state = UntrackedFileState(error=FILE_LOAD_ERROR, open=True)
        except Exception:
            logger.exception("Unexpected error loading untracked file %s", path)
            state = UntrackedFileState(error=FILE_LOAD_ERROR, open=True)

        if self._is_stale(generation, f"untracked file {key}"):
            return
        current = self._untracked.get(key)
        # The user may have collapsed the entry while it was loading.
        if current is not None and not current.open:
            state = replace(state, open=False)
        self._untracked[key] = state

    def reset(self) -> None:
        self._bump()
        self.run_id = None
        self.untracked = []
        self.has_diff = False
        self.is_open = False
        self.fullscreen = False
        self._run_diffs = {}
        self._untracked = {}


class RunLogLoader(_GenerationGuard):
    """Loads run logs; one selected run at a time, cached per run id."""

    def __init__(self, api: ChatApi) -> None:
        super().__init__()
        self._api = api
        self.run_id: str | None = None
        self._logs: dict[str, RunLogState] = {}

    @property
    def current(self) -> RunLogState | None:
        if self.run_id is None:
            return None
        return self._logs.get(self.run_id)

    def state(self, run_id: str) -> RunLogState | None:
        return self._logs.get(run_id)

    async def load(self, run_id: str) -> None:
        self.run_id = run_id
        existing = self._logs.get(run_id)
        if existing is not None and (
            existing.loading or existing.loaded or existing.error
        ):
            return

        generation = self.generation
        self._logs[run_id] = RunLogState(loading=True)
        try:
            content = await self._api.get_run_log(run_id)
            state = RunLogState(content=content, loaded=True)
        except FetchError as exc:
            logger.warning("Failed to load run log %s: %s", run_id, exc)
            state = RunLogState(error=LOG_LOAD_ERROR)
        except Exception:
            logger.exception("Unexpected error loading run log %s", run_id)
            state = RunLogState(error=LOG_LOAD_ERROR)

        if self._is_stale(generation, f"run log {run_id}"):
            return
        self._logs[run_id] = state

    async def refresh(self, run_id: str) -> None:
        self._logs.pop(run_id, None)
        await self.load(run_id)

    def reset(self) -> None:
        self._bump()
        self.run_id = None
        self._logs = {}
