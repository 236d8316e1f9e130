"""Exception hierarchy for the chat client.

Pure extraction and parsing functions never raise. These exceptions
come from the transport and the HTTP fetch layer, and are converted to
scoped error state before they reach the view.
"""
from __future__ import annotations

DIFF_TOO_LARGE_MESSAGE = "Diff is too large to render inline. Open raw diff instead."
DIFF_TOO_MANY_FILES_MESSAGE = (
    "Diff has too many files to render inline. Open raw diff instead."
)


class ChatClientError(Exception):
    """Base exception for all chat client errors."""


class TransportError(ChatClientError):
    """The live event stream closed or could not be opened."""
    def __init__(self, session_id: str, reason: str):
        self.session_id = session_id
        self.reason = reason
        super().__init__(f"Stream for session {session_id} failed: {reason}")


class StreamDecodeError(ChatClientError):
    """An inbound frame could not be decoded into an event."""
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Cannot decode stream frame: {reason}")


class FetchError(ChatClientError):
    """Loading a remote artifact (diff, log, file, listing) failed."""
    def __init__(self, resource: str, reason: str):
        self.resource = resource
        self.reason = reason
        super().__init__(f"Failed to fetch {resource}: {reason}")


class ApiError(FetchError):
    """The collaborator API answered with a non-success status."""
    def __init__(self, resource: str, status: int, message: str = ""):
        self.status = status
        self.message = message
        detail = f"HTTP {status}" + (f": {message}" if message else "")
        super().__init__(resource, detail)


class OversizeError(ChatClientError):
    """A diff exceeds the inline rendering ceilings."""
    def __init__(self, kind: str, size: int, limit: int):
        self.kind = kind
        self.size = size
        self.limit = limit
        if kind == "files":
            self.user_message = DIFF_TOO_MANY_FILES_MESSAGE
        else:
            self.user_message = DIFF_TOO_LARGE_MESSAGE
        super().__init__(self.user_message)
