"""Typed field extraction from the opaque per-message metadata payload.

Every function here is total: it accepts any JSON-like value (``None``,
lists, numbers, wrong-shaped dicts) and returns a documented default
instead of raising.
"""
from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from chatgroup.shared.models.agent import MentionStatus, parse_mention_status
from chatgroup.shared.models.diff import DiffMeta
from chatgroup.shared.models.message import Attachment, ChatMessage, SenderType
from chatgroup.shared.models.run import RunHistoryItem

# A handle must start the text or follow whitespace, so e-mail addresses
# never count as mentions.
MENTION_TOKEN_RE = re.compile(r"(^|\s)@([a-zA-Z0-9_-]+)")
_HANDLE_STRIP_RE = re.compile(r"[^a-zA-Z0-9_-]")


def _as_dict(meta: Any) -> dict[str, Any] | None:
    return meta if isinstance(meta, dict) else None


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def extract_run_id(meta: Any) -> str | None:
    raw = _as_dict(meta)
    if raw is None:
        return None
    return _str_or_none(raw.get("run_id"))


def extract_diff_meta(meta: Any) -> DiffMeta:
    """Pull diff information out of *meta*.

    ``available`` is true when the server says a diff exists or when a
    preview is attached. Non-string entries of ``untracked_files`` are
    dropped.
    """
    raw = _as_dict(meta)
    if raw is None:
        return DiffMeta()
    preview = _str_or_none(raw.get("diff_preview"))
    untracked = raw.get("untracked_files")
    untracked_files = (
        [item for item in untracked if isinstance(item, str)]
        if isinstance(untracked, list)
        else []
    )
    return DiffMeta(
        run_id=_str_or_none(raw.get("run_id")),
        preview=preview,
        truncated=raw.get("diff_truncated") is True,
        available=raw.get("diff_available") is True or preview is not None,
        untracked_files=untracked_files,
    )


def extract_reference_id(meta: Any) -> str | None:
    """Return the id of the message this one replies to.

    ``meta.reference.message_id`` wins over the flat
    ``meta.reference_message_id`` field.
    """
    raw = _as_dict(meta)
    if raw is None:
        return None
    reference = raw.get("reference")
    if isinstance(reference, dict):
        value = reference.get("message_id")
        if isinstance(value, str):
            return value
    return _str_or_none(raw.get("reference_message_id"))


def _int_or_none(value: Any) -> int | None:
    # bool is an int subclass but never a size
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def extract_attachments(meta: Any) -> list[Attachment]:
    raw = _as_dict(meta)
    if raw is None:
        return []
    items = raw.get("attachments")
    if not isinstance(items, list):
        return []
    attachments: list[Attachment] = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("id"), str):
            continue
        attachments.append(Attachment(
            id=item["id"],
            name=_str_or_none(item.get("name")) or "",
            mime_type=_str_or_none(item.get("mime_type")),
            size_bytes=_int_or_none(item.get("size_bytes")),
            kind=_str_or_none(item.get("kind")),
            relative_path=_str_or_none(item.get("relative_path")),
        ))
    return attachments


def has_attachments(meta: Any) -> bool:
    return bool(extract_attachments(meta))


def extract_mention_statuses(meta: Any) -> dict[str, MentionStatus] | None:
    """Return the explicit per-handle status map, or None when absent.

    An empty dict is a present (but empty) map and still disables the
    agent-state fallback in the mention resolver.
    """
    raw = _as_dict(meta)
    if raw is None:
        return None
    statuses = raw.get("mention_statuses")
    if not isinstance(statuses, dict):
        return None
    result: dict[str, MentionStatus] = {}
    for handle, value in statuses.items():
        status = parse_mention_status(value)
        if isinstance(handle, str) and status is not None:
            result[handle] = status
    return result


def parse_mentions(text: Any) -> list[str]:
    """Return mentioned handles in first-seen order, without duplicates."""
    if not isinstance(text, str):
        return []
    seen: list[str] = []
    for match in MENTION_TOKEN_RE.finditer(text):
        name = match.group(2)
        if name and name not in seen:
            seen.append(name)
    return seen


def extract_mentions(text: Any) -> set[str]:
    return set(parse_mentions(text))


def sanitize_handle(value: str | None) -> str:
    """Turn a display name into a mentionable handle."""
    if not value:
        return "you"
    head = value.split("@")[0].split(" ")[0].strip()
    sanitized = _HANDLE_STRIP_RE.sub("", head)
    return sanitized or "you"


def run_history(messages: Iterable[ChatMessage]) -> list[RunHistoryItem]:
    """List the runs that produced agent messages, in message order."""
    runs: list[RunHistoryItem] = []
    for message in messages:
        if message.sender_type is not SenderType.AGENT or not message.sender_id:
            continue
        run_id = extract_run_id(message.meta)
        if not run_id:
            continue
        runs.append(RunHistoryItem(
            run_id=run_id,
            agent_id=message.sender_id,
            created_at=message.created_at,
            content=message.content,
        ))
    return runs
