"""chatgroup - client-side real-time sync layer for multi-agent chat sessions."""
from __future__ import annotations

__version__ = "0.1.0"
