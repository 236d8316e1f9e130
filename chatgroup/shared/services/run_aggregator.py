"""Live buffers for agent runs that are still streaming.

A run is created by its first delta and lives until the persisted
message carrying its run id arrives, or until a grace period passes
after its final delta. Timers run on the asyncio loop; all mutation
happens on the loop thread.
"""
from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Callable

from chatgroup.adapters.events import AgentDelta
from chatgroup.shared.meta import extract_run_id
from chatgroup.shared.models.message import ChatMessage
from chatgroup.shared.models.run import StreamingRun

logger = logging.getLogger(__name__)

RUN_GRACE_SECONDS = 1.5
# Most recent persisted run ids remembered for dropping late deltas.
MAX_PERSISTED_RUN_IDS = 1024


class RunAggregator:
    """Accumulates ``agent_delta`` events per run id."""

    def __init__(
        self,
        grace_seconds: float = RUN_GRACE_SECONDS,
        on_expire: Callable[[str], None] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        max_persisted: int = MAX_PERSISTED_RUN_IDS,
    ) -> None:
        self._grace_seconds = grace_seconds
        self._max_persisted = max_persisted
        self._on_expire = on_expire
        self._loop = loop
        self._runs: dict[str, StreamingRun] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        # Run ids already persisted; late deltas for them are stale.
        self._persisted: OrderedDict[str, None] = OrderedDict()
        self._closed = False

    # ── queries ─────────────────────────────────────────────────────

    @property
    def runs(self) -> dict[str, StreamingRun]:
        return dict(self._runs)

    def get(self, run_id: str) -> StreamingRun | None:
        return self._runs.get(run_id)

    def __contains__(self, run_id: object) -> bool:
        return run_id in self._runs

    def __len__(self) -> int:
        return len(self._runs)

    def running_agents(self) -> set[str]:
        """Agent ids with a run that has not produced its final delta."""
        return {r.agent_id for r in self._runs.values() if not r.is_final}

    # ── mutations ───────────────────────────────────────────────────

    def on_delta(self, event: AgentDelta) -> StreamingRun | None:
        if self._closed:
            return None
        run_id = event.run_id
        if not run_id:
            return None
        if run_id in self._persisted:
            logger.debug("Ignoring delta for already persisted run %s", run_id)
            return None

        previous = self._runs.get(run_id)
        if event.delta and previous is not None:
            content = previous.content + event.content
        else:
            content = event.content
        run = StreamingRun(
            run_id=run_id,
            agent_id=event.agent_id or (previous.agent_id if previous else ""),
            content=content,
            is_final=event.is_final,
        )
        self._runs[run_id] = run
        if event.is_final:
            self._schedule_removal(run_id)
        return run

    def on_message(self, message: ChatMessage) -> bool:
        """Retire the run that *message* persists. Returns True if one was live."""
        run_id = extract_run_id(message.meta)
        if run_id is None:
            return False
        self._remember_persisted(run_id)
        return self.retire(run_id)

    def retire(self, run_id: str) -> bool:
        self._cancel_timer(run_id)
        if self._runs.pop(run_id, None) is None:
            return False
        logger.debug("Retired streaming run %s", run_id)
        return True

    def close(self) -> None:
        """Cancel all timers and drop every buffer."""
        self._closed = True
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
        self._runs.clear()
        self._persisted.clear()

    # ── internals ───────────────────────────────────────────────────

    def _schedule_removal(self, run_id: str) -> None:
        self._cancel_timer(run_id)
        loop = self._loop or asyncio.get_running_loop()
        self._timers[run_id] = loop.call_later(
            self._grace_seconds, self._expire, run_id,
        )

    def _expire(self, run_id: str) -> None:
        self._timers.pop(run_id, None)
        if self._runs.pop(run_id, None) is not None:
            logger.debug(
                "Streaming run %s expired %.1fs after final delta",
                run_id, self._grace_seconds,
            )
            self._notify_expired(run_id)

    def _remember_persisted(self, run_id: str) -> None:
        self._persisted[run_id] = None
        self._persisted.move_to_end(run_id)
        while len(self._persisted) > self._max_persisted:
            self._persisted.popitem(last=False)

    def _cancel_timer(self, run_id: str) -> None:
        handle = self._timers.pop(run_id, None)
        if handle is not None:
            handle.cancel()

    def _notify_expired(self, run_id: str) -> None:
        if self._on_expire is None:
            return
        try:
            self._on_expire(run_id)
        except Exception:
            logger.exception("Run expiry listener failed for %s", run_id)
