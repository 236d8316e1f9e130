"""Adapters package - edges between the chat client and the collaborator server.

Contains the live stream transport, its event types, and the HTTP API
client used for listings and run artifacts.
"""
from __future__ import annotations

__all__ = [
    "ChatApi",
    "ConnectionState",
    "StreamTransport",
    "decode_frame",
]

from chatgroup.adapters.api import ChatApi
from chatgroup.adapters.events import decode_frame
from chatgroup.adapters.transport import ConnectionState, StreamTransport
