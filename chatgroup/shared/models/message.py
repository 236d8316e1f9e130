"""Chat message and attachment models."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# Servers may emit nanosecond fractions; datetime keeps microseconds.
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


class SenderType(str, Enum):
    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = _FRACTION_RE.sub(r"\1", value.strip())
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class Attachment:
    """A file attached to a message, as described in its metadata."""
    id: str
    name: str = ""
    mime_type: str | None = None
    size_bytes: int | None = None
    kind: str | None = None
    relative_path: str | None = None


@dataclass(frozen=True)
class ChatMessage:
    """A persisted chat message.

    ``meta`` is the opaque metadata payload exactly as received; typed
    fields are pulled out of it by :mod:`chatgroup.shared.meta`.
    """
    id: str
    session_id: str
    sender_type: SenderType
    content: str
    created_at: datetime = _EPOCH
    sender_id: str | None = None
    meta: Any = None

    @property
    def sort_key(self) -> tuple[datetime, str]:
        return (self.created_at, self.id)

    @classmethod
    def from_dict(cls, data: Any) -> ChatMessage | None:
        """Build a message from a wire dict, or None when it is malformed."""
        if not isinstance(data, dict):
            return None
        message_id = data.get("id")
        session_id = data.get("session_id")
        if not isinstance(message_id, str) or not isinstance(session_id, str):
            return None
        try:
            sender_type = SenderType(data.get("sender_type"))
        except ValueError:
            logger.debug(
                "Message %s has unknown sender_type %r",
                message_id, data.get("sender_type"),
            )
            return None
        content = data.get("content")
        sender_id = data.get("sender_id")
        created_at = parse_timestamp(data.get("created_at"))
        return cls(
            id=message_id,
            session_id=session_id,
            sender_type=sender_type,
            content=content if isinstance(content, str) else "",
            created_at=created_at or _EPOCH,
            sender_id=sender_id if isinstance(sender_id, str) else None,
            meta=data.get("meta"),
        )
