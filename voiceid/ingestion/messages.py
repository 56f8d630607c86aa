"""Wire messages of the audio stream transport.

Every message is an envelope ``{type, id, timestamp, payload}`` with
camelCase keys.
"""

import uuid
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from voiceid.ingestion.models import StreamErrorCode, StreamStatus

MAX_SEQUENCE = 2**32 - 1


class WireModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(WireModel):
    """Fields shared by every message."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


# Incoming


class StreamStartPayload(WireModel):
    session_key: str
    format: str
    sample_rate: int = Field(gt=0)
    channels: int = 1
    bit_depth: int | None = None
    language: str | None = None
    diarization: bool = False


class StreamChunkPayload(WireModel):
    stream_id: str
    sequence: int = Field(ge=0, le=MAX_SEQUENCE)
    data: str  # base64
    is_last: bool = False


class StreamEndPayload(WireModel):
    stream_id: str
    total_chunks: int | None = None
    total_bytes: int | None = None


class StreamStartMessage(Envelope):
    type: Literal["stream.start"] = "stream.start"
    payload: StreamStartPayload


class StreamChunkMessage(Envelope):
    type: Literal["stream.chunk"] = "stream.chunk"
    payload: StreamChunkPayload


class StreamEndMessage(Envelope):
    type: Literal["stream.end"] = "stream.end"
    payload: StreamEndPayload


IncomingMessage = Annotated[
    StreamStartMessage | StreamChunkMessage | StreamEndMessage,
    Field(discriminator="type"),
]

_incoming_adapter = TypeAdapter(IncomingMessage)


def parse_incoming(
    raw: str | bytes | dict[str, Any],
) -> StreamStartMessage | StreamChunkMessage | StreamEndMessage:
    """Parse a client message.

    Raises:
        pydantic.ValidationError: If the message is malformed or of unknown type.
    """
    if isinstance(raw, dict):
        return _incoming_adapter.validate_python(raw)
    return _incoming_adapter.validate_json(raw)


# Outgoing


class StreamAckPayload(WireModel):
    stream_id: str
    received_chunks: int
    status: StreamStatus
    progress: int = Field(ge=0, le=100)


class StreamErrorPayload(WireModel):
    stream_id: str | None
    code: StreamErrorCode
    message: str
    recoverable: bool


class StreamResultPayload(WireModel):
    stream_id: str
    kind: str
    result: dict[str, Any]


class StreamAckMessage(Envelope):
    type: Literal["stream.ack"] = "stream.ack"
    payload: StreamAckPayload


class StreamErrorMessage(Envelope):
    type: Literal["stream.error"] = "stream.error"
    payload: StreamErrorPayload


class StreamResultMessage(Envelope):
    type: Literal["stream.result"] = "stream.result"
    payload: StreamResultPayload


OutgoingMessage = StreamAckMessage | StreamErrorMessage | StreamResultMessage


def to_wire(message: OutgoingMessage) -> dict[str, Any]:
    """JSON-compatible dict of an outgoing message."""
    return message.model_dump(by_alias=True, mode="json")
