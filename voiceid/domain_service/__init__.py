"""Domain service layer - speaker recognition orchestration."""

from voiceid.domain_service.index import SpeakerIndex
from voiceid.domain_service.recognition import (
    RealtimeOptions,
    SpeakerRecognitionService,
    validate_audio_bytes,
)

__all__ = [
    "RealtimeOptions",
    "SpeakerIndex",
    "SpeakerRecognitionService",
    "validate_audio_bytes",
]
