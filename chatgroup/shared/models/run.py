"""Streaming run models."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class StreamingRun:
    """Live output buffer for one agent run that has not been persisted yet."""
    run_id: str
    agent_id: str
    content: str = ""
    is_final: bool = False


@dataclass(frozen=True)
class RunHistoryItem:
    run_id: str
    agent_id: str
    created_at: datetime
    content: str
