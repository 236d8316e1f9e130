"""Ordered, de-duplicated collection of confirmed chat messages."""
from __future__ import annotations

import logging
from collections.abc import Iterable

from chatgroup.shared.models.message import ChatMessage

logger = logging.getLogger(__name__)


class MessageStore:
    """Holds at most one message per id.

    Storage order is arrival order; :meth:`messages` projects the
    display order (``created_at`` ascending, id as tie-break) on read.
    """

    def __init__(self) -> None:
        self._messages: list[ChatMessage] = []

    def upsert(self, message: ChatMessage) -> bool:
        """Insert *message* or replace the entry with the same id.

        Returns True when the store changed.
        """
        for index, existing in enumerate(self._messages):
            if existing.id != message.id:
                continue
            if existing == message:
                return False
            self._messages[index] = message
            logger.debug("Replaced message %s", message.id)
            return True
        self._messages.append(message)
        return True

    def load(self, messages: Iterable[ChatMessage]) -> int:
        """Upsert a batch (e.g. the initial listing); returns how many changed."""
        return sum(1 for m in messages if self.upsert(m))

    def get(self, message_id: str) -> ChatMessage | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def messages(self) -> list[ChatMessage]:
        return sorted(self._messages, key=lambda m: m.sort_key)

    def clear(self) -> None:
        self._messages = []

    def __len__(self) -> int:
        return len(self._messages)

    def __contains__(self, message_id: object) -> bool:
        return any(m.id == message_id for m in self._messages)
