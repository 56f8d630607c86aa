"""Stream ingestion models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


def _utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class AudioFormat(str, Enum):
    """Audio formats accepted on a stream."""

    OPUS = "opus"
    PCM = "pcm"
    WAV = "wav"
    AAC = "aac"


class StreamStatus(str, Enum):
    """Lifecycle of a stream."""

    RECEIVING = "receiving"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class StreamErrorCode(str, Enum):
    """Error codes sent to the client in stream.error messages."""

    INVALID_FORMAT = "INVALID_FORMAT"
    UNSUPPORTED_SAMPLE_RATE = "UNSUPPORTED_SAMPLE_RATE"
    STREAM_TIMEOUT = "STREAM_TIMEOUT"
    CHUNK_OUT_OF_ORDER = "CHUNK_OUT_OF_ORDER"
    AUDIO_TOO_LARGE = "AUDIO_TOO_LARGE"
    STT_PROVIDER_ERROR = "STT_PROVIDER_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class AudioStreamConfig:
    """Per-stream descriptor fixed at stream start."""

    session_key: str
    format: str
    sample_rate: int
    channels: int
    bit_depth: int | None = None
    language: str | None = None
    diarization: bool = False


@dataclass(frozen=True)
class StreamChunk:
    """One decoded chunk of a stream."""

    stream_id: str
    sequence: int
    data: bytes
    is_last: bool = False


@dataclass(frozen=True)
class AssembledAudio:
    """Contiguous audio of a completed stream."""

    stream_id: str
    config: AudioStreamConfig
    data: bytes
    total_chunks: int
    total_bytes: int
    duration_ms: int | None
    assembled_at: datetime = field(default_factory=_utc_now)


@dataclass(frozen=True)
class StreamError:
    """Error reported for a single stream."""

    code: StreamErrorCode
    message: str
    recoverable: bool = False


@dataclass
class ValidationResult:
    """Outcome of validating assembled audio."""

    valid: bool
    errors: list[str]
    format: str | None = None
    sample_rate: int | None = None
    channels: int | None = None
    duration_ms: int | None = None


@dataclass
class StreamState:
    """Mutable per-stream bookkeeping of the stream handler."""

    stream_id: str
    config: AudioStreamConfig
    status: StreamStatus = StreamStatus.RECEIVING
    received_chunks: int = 0
    total_bytes: int = 0
    started_at: datetime = field(default_factory=_utc_now)
    last_chunk_at: datetime | None = None
    completed_at: datetime | None = None
    error: StreamError | None = None
