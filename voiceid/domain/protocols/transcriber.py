"""Speech-to-text provider Protocol."""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class TranscriptionRequest:
    """Audio handed to a speech-to-text provider."""

    audio: bytes
    format: str
    sample_rate: int
    channels: int
    language: str | None = None
    diarization: bool = False
    speaker_count_min: int | None = None
    speaker_count_max: int | None = None

    @property
    def mime_type(self) -> str:
        return {
            "opus": "audio/opus",
            "pcm": "audio/pcm",
            "wav": "audio/wav",
            "aac": "audio/aac",
        }.get(self.format, "audio/unknown")


@dataclass
class SpeakerTurn:
    """Diarized speaker turn."""

    id: str
    start_time: float  # seconds
    end_time: float  # seconds
    label: str | None = None
    confidence: float | None = None


@dataclass
class TranscriptionResult:
    """Provider response."""

    text: str
    provider: str
    model: str
    confidence: float | None = None
    language: str | None = None
    duration_ms: int | None = None
    processing_time_ms: int = 0
    speakers: list[SpeakerTurn] = field(default_factory=list)


class TranscriberProtocol(Protocol):
    """Protocol for a third-party speech-to-text provider."""

    def transcribe(self, request: TranscriptionRequest) -> TranscriptionResult:
        """Transcribe audio.

        Raises:
            Exception: Any provider failure; callers map it to STT_PROVIDER_ERROR.
        """
        ...
