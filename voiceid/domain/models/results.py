"""Result models returned by the recognition service."""

from dataclasses import dataclass, field

from voiceid.domain.models.speaker import SpeakerSummary


@dataclass
class SampleDetail:
    """Per-sample entry of an enrollment quality report."""

    index: int
    quality: float
    duration: float  # seconds


@dataclass
class QualityReport:
    """Quality summary of a multi-sample enrollment."""

    average_quality: float
    min_quality: float
    consistency_score: float
    sample_count: int
    sample_details: list[SampleDetail]
    recommendations: list[str]


@dataclass
class EnrollmentResult:
    """Outcome of an enrollment."""

    speaker_id: str
    hash: str
    confidence: float
    is_update: bool
    enrollment_count: int
    quality_report: QualityReport | None = None


@dataclass
class IdentificationResult:
    """Outcome of 1:N identification."""

    speaker_id: str
    confidence: float
    is_known: bool
    quality: float
    match_method: str | None = None
    best_match_id: str | None = None


@dataclass
class StreamingIdentificationResult:
    """Outcome of one real-time identification step."""

    speaker_id: str | None
    confidence: float
    is_known: bool
    is_processing: bool
    buffered_samples: int


@dataclass
class VerificationResult:
    """Outcome of 1:1 verification."""

    speaker_id: str
    is_verified: bool
    confidence: float
    max_similarity: float | None = None
    average_similarity: float | None = None
    reason: str | None = None


@dataclass
class RecognitionStats:
    """Snapshot of the in-memory speaker index."""

    total_speakers: int
    total_embeddings: int
    average_embeddings_per_speaker: float
    current_threshold: float


@dataclass
class SpeakerList:
    """Listing of enrolled speakers."""

    speakers: list[SpeakerSummary] = field(default_factory=list)
    total_count: int = 0
