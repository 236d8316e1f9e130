from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from chatgroup.errors import DIFF_TOO_MANY_FILES_MESSAGE, ApiError, FetchError
from chatgroup.shared.models import DiffFileEntry
from chatgroup.shared.services.artifacts import (
    DIFF_LOAD_ERROR,
    FILE_LOAD_ERROR,
    LOG_LOAD_ERROR,
    DiffViewerController,
    RunLogLoader,
)

PATCH = "diff --git a/x b/x\n--- a/x\n+++ b/x\n@@ -1,1 +1,2 @@\n-foo\n+foo\n+bar\n"


def _api(**overrides) -> MagicMock:
    api = MagicMock()
    api.get_run_diff = AsyncMock(return_value=PATCH)
    api.get_run_untracked_file = AsyncMock(return_value="hello\n")
    api.get_run_log = AsyncMock(return_value="log line\n")
    api.run_diff_url = MagicMock(return_value="http://chat.local/api/chat/runs/r1/diff")
    for name, value in overrides.items():
        setattr(api, name, value)
    return api


@pytest.mark.asyncio
async def test_open_viewer_loads_and_caches_diff() -> None:
    api = _api()
    viewer = DiffViewerController(api)
    await viewer.open_viewer("r1", ["new.txt"], has_diff=True)

    state = viewer.diff_state("r1")
    assert viewer.is_open and viewer.run_id == "r1" and viewer.untracked == ["new.txt"]
    assert state.loaded and state.error is None
    assert [(f.path, f.additions, f.deletions) for f in state.files] == [("x", 2, 1)]

    await viewer.load_diff("r1")
    api.get_run_diff.assert_awaited_once_with("r1")


@pytest.mark.asyncio
async def test_open_viewer_without_diff_does_not_fetch() -> None:
    api = _api()
    viewer = DiffViewerController(api)
    await viewer.open_viewer("r1", ["a.txt"], has_diff=False)
    api.get_run_diff.assert_not_awaited()
    viewer.toggle_fullscreen()
    assert viewer.fullscreen
    viewer.close_viewer()
    assert not viewer.is_open and not viewer.fullscreen


@pytest.mark.asyncio
async def test_duplicate_in_flight_request_is_noop() -> None:
    gate = asyncio.Event()

    async def slow_diff(run_id: str) -> str:
        await gate.wait()
        return PATCH

    api = _api(get_run_diff=AsyncMock(side_effect=slow_diff))
    viewer = DiffViewerController(api)
    first = asyncio.ensure_future(viewer.load_diff("r1"))
    await asyncio.sleep(0)
    assert viewer.diff_state("r1").loading
    await viewer.load_diff("r1")
    gate.set()
    await first
    assert api.get_run_diff.await_count == 1
    assert viewer.diff_state("r1").loaded


@pytest.mark.asyncio
async def test_fetch_error_is_scoped_to_its_run() -> None:
    async def diff(run_id: str) -> str:
        if run_id == "bad":
            raise ApiError("run bad diff", 500, "boom")
        return PATCH

    api = _api(get_run_diff=AsyncMock(side_effect=diff))
    viewer = DiffViewerController(api)
    await viewer.load_diff("bad")
    await viewer.load_diff("good")
    assert viewer.diff_state("bad").error == DIFF_LOAD_ERROR
    assert viewer.diff_state("bad").files == []
    assert viewer.diff_state("good").loaded

    # Cached error is not refetched until an explicit refresh
    await viewer.load_diff("bad")
    assert api.get_run_diff.await_count == 2
    await viewer.refresh_diff("bad")
    assert api.get_run_diff.await_count == 3


@pytest.mark.asyncio
async def test_oversize_diff_reports_actionable_error() -> None:
    viewer = DiffViewerController(_api(), max_files=0)
    await viewer.load_diff("r1")
    state = viewer.diff_state("r1")
    assert state.error == DIFF_TOO_MANY_FILES_MESSAGE
    assert state.files == []
    assert viewer.raw_diff_url("r1").endswith("/runs/r1/diff")


def test_per_file_ceiling_follows_configured_limit() -> None:
    entry = DiffFileEntry(path="big.txt", patch="+" * 50)
    assert not DiffViewerController(_api()).file_too_large(entry)
    assert DiffViewerController(_api(), max_file_patch_chars=10).file_too_large(entry)
    assert not DiffViewerController(_api(), max_file_patch_chars=50).file_too_large(entry)


@pytest.mark.asyncio
async def test_result_arriving_after_reset_is_discarded() -> None:
    gate = asyncio.Event()

    async def slow_diff(run_id: str) -> str:
        await gate.wait()
        return PATCH

    viewer = DiffViewerController(_api(get_run_diff=AsyncMock(side_effect=slow_diff)))
    pending = asyncio.ensure_future(viewer.load_diff("r1"))
    await asyncio.sleep(0)
    viewer.reset()
    gate.set()
    await pending
    assert viewer.diff_state("r1") is None
    assert viewer.run_diffs == {}


@pytest.mark.asyncio
async def test_untracked_toggle_opens_loads_and_closes() -> None:
    api = _api()
    viewer = DiffViewerController(api)
    await viewer.toggle_untracked("r1", "new.txt")
    state = viewer.untracked_state("r1", "new.txt")
    assert state.open and state.content == "hello\n" and not state.loading

    await viewer.toggle_untracked("r1", "new.txt")
    assert viewer.untracked_state("r1", "new.txt").open is False

    # Reopening uses the cached content
    await viewer.toggle_untracked("r1", "new.txt")
    assert viewer.untracked_state("r1", "new.txt").open
    api.get_run_untracked_file.assert_awaited_once_with("r1", "new.txt")
    assert set(viewer.untracked_content) == {"r1:new.txt"}


@pytest.mark.asyncio
async def test_untracked_error_is_cached() -> None:
    api = _api(get_run_untracked_file=AsyncMock(side_effect=FetchError("file", "timeout")))
    viewer = DiffViewerController(api)
    await viewer.toggle_untracked("r1", "a.bin")
    assert viewer.untracked_state("r1", "a.bin").error == FILE_LOAD_ERROR
    await viewer.toggle_untracked("r1", "a.bin")
    await viewer.toggle_untracked("r1", "a.bin")
    assert api.get_run_untracked_file.await_count == 1


@pytest.mark.asyncio
async def test_run_log_loader_caches_per_run() -> None:
    api = _api()
    logs = RunLogLoader(api)
    await logs.load("r1")
    assert logs.current.content == "log line\n"
    await logs.load("r1")
    api.get_run_log.assert_awaited_once_with("r1")
    await logs.refresh("r1")
    assert api.get_run_log.await_count == 2


@pytest.mark.asyncio
async def test_slow_log_for_previous_run_does_not_replace_current() -> None:
    gate = asyncio.Event()

    async def log(run_id: str) -> str:
        if run_id == "old":
            await gate.wait()
        return f"log for {run_id}"

    logs = RunLogLoader(_api(get_run_log=AsyncMock(side_effect=log)))
    pending = asyncio.ensure_future(logs.load("old"))
    await asyncio.sleep(0)
    await logs.load("new")
    gate.set()
    await pending
    assert logs.run_id == "new"
    assert logs.current.content == "log for new"
    assert logs.state("old").content == "log for old"


@pytest.mark.asyncio
async def test_run_log_error_and_reset() -> None:
    logs = RunLogLoader(_api(get_run_log=AsyncMock(side_effect=FetchError("log", "503"))))
    await logs.load("r1")
    assert logs.current.error == LOG_LOAD_ERROR
    assert logs.current.content == ""
    logs.reset()
    assert logs.current is None
    assert logs.state("r1") is None
