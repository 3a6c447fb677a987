"""Tests for stream frame parsing — the tagged union and discard rules."""

import json

import pytest
from pydantic import ValidationError

from truthsync.schemas.stream import (
    PING,
    PONG,
    EventMessage,
    SnapshotMessage,
    TickMessage,
    parse_frame,
)


def test_snapshot_frame():
    msg = parse_frame(json.dumps({
        "type": "snapshot",
        "state_version": 7,
        "ws_sequence_number": 1,
        "timestamp": 1700000000.5,
        "payload": {"state_version": 7, "positions": []},
    }))
    assert isinstance(msg, SnapshotMessage)
    assert msg.state_version == 7
    assert msg.ws_sequence_number == 1
    assert msg.payload == {"state_version": 7, "positions": []}


def test_tick_frame_is_full_refresh():
    msg = parse_frame(json.dumps({
        "type": "tick",
        "state_version": 8,
        "timestamp": 1,
        "payload": {"state_version": 8},
    }))
    assert isinstance(msg, TickMessage)
    assert msg.ws_sequence_number is None
    assert msg.payload == {"state_version": 8}


def test_event_frame():
    msg = parse_frame(json.dumps({
        "type": "event",
        "state_version": 8,
        "timestamp": 1,
        "event_type": "order_filled",
        "data": {"symbol": "BTCUSDT"},
    }))
    assert isinstance(msg, EventMessage)
    assert msg.event_type == "order_filled"
    assert msg.data == {"symbol": "BTCUSDT"}


def test_snapshot_payload_is_optional():
    msg = parse_frame('{"type": "snapshot", "state_version": 1, "timestamp": 0}')
    assert isinstance(msg, SnapshotMessage)
    assert msg.payload is None


@pytest.mark.parametrize("text", [
    "not json at all",
    PONG,
    "",
    "[1, 2, 3]",
    "{}",
    '{"type": "delta", "state_version": 1, "timestamp": 0}',
    '{"type": "tick", "timestamp": 0}',
    '{"type": "snapshot", "state_version": "abc", "timestamp": 0}',
    '{"type": "tick", "state_version": 1, "timestamp": 0, "payload": [1]}',
])
def test_malformed_frames_return_none(text):
    assert parse_frame(text) is None


def test_liveness_tokens_are_plain_text():
    assert PING == "ping"
    assert PONG == "pong"


def test_messages_are_frozen():
    msg = parse_frame('{"type": "tick", "state_version": 1, "timestamp": 0}')
    with pytest.raises(ValidationError):
        msg.state_version = 2


def test_snapshot_without_timestamp_still_parses():
    msg = parse_frame('{"type": "snapshot", "state_version": 3, "payload": {"a": 1}}')
    assert isinstance(msg, SnapshotMessage)
    assert msg.timestamp is None
    assert msg.payload == {"a": 1}
