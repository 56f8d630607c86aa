"""Domain models."""

from voiceid.domain.models.audio import AudioSample
from voiceid.domain.models.results import (
    EnrollmentResult,
    IdentificationResult,
    QualityReport,
    RecognitionStats,
    SampleDetail,
    SpeakerList,
    StreamingIdentificationResult,
    VerificationResult,
)
from voiceid.domain.models.speaker import (
    EMBEDDING_DIM,
    Gender,
    SpeakerRecord,
    SpeakerSummary,
)

__all__ = [
    "AudioSample",
    "EMBEDDING_DIM",
    "Gender",
    "SpeakerRecord",
    "SpeakerSummary",
    "EnrollmentResult",
    "IdentificationResult",
    "QualityReport",
    "RecognitionStats",
    "SampleDetail",
    "SpeakerList",
    "StreamingIdentificationResult",
    "VerificationResult",
]
