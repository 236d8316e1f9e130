from __future__ import annotations

import json

import pytest

from chatgroup.adapters.events import (
    AgentDelta,
    AgentStateChanged,
    MessageNew,
    decode_frame,
    dict_to_event,
)
from chatgroup.errors import StreamDecodeError


def test_decodes_message_new() -> None:
    event = decode_frame(json.dumps({
        "type": "message_new",
        "message": {
            "id": "m1",
            "session_id": "s1",
            "sender_type": "agent",
            "sender_id": "agent-1",
            "content": "hello",
            "created_at": "2024-01-01T00:00:00Z",
            "meta": {"run_id": "r1"},
        },
    }))
    assert isinstance(event, MessageNew)
    assert event.message.id == "m1"


def test_decodes_agent_delta_with_strict_flags() -> None:
    event = decode_frame(
        '{"type": "agent_delta", "run_id": "r1", "agent_id": "a1", '
        '"content": "He", "delta": "true", "is_final": true}'
    )
    assert event == AgentDelta(run_id="r1", agent_id="a1", content="He", delta=False, is_final=True)


def test_decodes_agent_state_from_bytes() -> None:
    event = decode_frame(b'{"type": "agent_state", "agent_id": "a1", "state": "running"}')
    assert event == AgentStateChanged(agent_id="a1", state="running")


def test_unknown_type_is_ignored() -> None:
    assert decode_frame('{"type": "typing_indicator", "agent_id": "a1"}') is None
    assert dict_to_event({"type": ["not", "hashable"]}) is None
    assert dict_to_event({}) is None


@pytest.mark.parametrize(
    "frame",
    [
        "not json",
        "[1, 2, 3]",
        '"just a string"',
        '{"type": "agent_delta", "content": "no run id"}',
        '{"type": "message_new", "message": {"id": 1}}',
        '{"type": "agent_state", "agent_id": "a1"}',
    ],
)
def test_malformed_frames_raise_decode_error(frame) -> None:
    with pytest.raises(StreamDecodeError):
        decode_frame(frame)
