"""Session context and stream event dispatch."""
from __future__ import annotations

from chatgroup.handlers.event_processor import EventProcessor
from chatgroup.handlers.session_manager import SessionContext, SessionManager

__all__ = ["EventProcessor", "SessionContext", "SessionManager"]
