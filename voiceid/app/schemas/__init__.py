"""API schemas."""

from voiceid.app.schemas.speakers import (
    AudioPayload,
    EnrollMultiRequest,
    EnrollRequest,
    IdentifyRealtimeRequest,
    IdentifyRequest,
    SetThresholdRequest,
    SpeakerIdRequest,
    VerifyRequest,
)

__all__ = [
    "AudioPayload",
    "EnrollMultiRequest",
    "EnrollRequest",
    "IdentifyRealtimeRequest",
    "IdentifyRequest",
    "SetThresholdRequest",
    "SpeakerIdRequest",
    "VerifyRequest",
]
