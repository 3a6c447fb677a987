"""Pydantic schemas for frames on the live state stream.

Learn: The engine sends three kinds of JSON frames, tagged by `type`:

    snapshot  full state (sent once right after connect)
    tick      full state again, a refresh, not a delta
    event     side-channel notification that does NOT replace the state

Plus the reserved liveness tokens, which are bare text, not JSON:
the client sends "ping", the engine may answer "pong".

A discriminated union gives us exhaustive, typed handling per variant.
Anything that doesn't parse (bad JSON, unknown type, no
state_version) comes back as None and is dropped by the caller.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

# Opaque to this layer: never inspected, never mutated, replaced wholesale.
Snapshot = dict[str, Any]

PING = "ping"
PONG = "pong"


# ─── Envelope ─────────────────────────────────────────────


class _Frame(BaseModel):
    state_version: int
    ws_sequence_number: Optional[int] = None
    timestamp: Optional[float] = None  # informational; frames without it still apply

    model_config = {"frozen": True}


class SnapshotMessage(_Frame):
    type: Literal["snapshot"]
    payload: Optional[Snapshot] = None


class TickMessage(_Frame):
    type: Literal["tick"]
    payload: Optional[Snapshot] = None


class EventMessage(_Frame):
    type: Literal["event"]
    event_type: Optional[str] = None
    data: Any = None


StreamMessage = Annotated[
    Union[SnapshotMessage, TickMessage, EventMessage],
    Field(discriminator="type"),
]

_adapter: TypeAdapter[StreamMessage] = TypeAdapter(StreamMessage)


def parse_frame(text: str) -> Optional[Union[SnapshotMessage, TickMessage, EventMessage]]:
    """Parse one text frame. Returns None for anything malformed."""
    try:
        return _adapter.validate_json(text)
    except ValidationError:
        return None
