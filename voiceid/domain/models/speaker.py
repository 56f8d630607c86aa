"""Speaker domain model for voiceprint recognition."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

import numpy as np
from ulid import ULID

EMBEDDING_DIM = 256


def _generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def _utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class Gender(str, Enum):
    """Gender code embedded in speaker ids."""

    MALE = "M"
    FEMALE = "F"
    UNKNOWN = "U"


@dataclass
class SpeakerSummary:
    """Lightweight index entry for a speaker."""

    id: str
    hash: str
    gender: Gender
    created_at: datetime
    updated_at: datetime
    enrollment_count: int


@dataclass
class SpeakerRecord:
    """Enrolled speaker with all sample embeddings.

    `embedding` is the L2-normalized average of `embeddings`, which is never empty.
    """

    id: str
    hash: str
    embedding: np.ndarray
    embeddings: list[np.ndarray]
    gender: Gender = Gender.UNKNOWN
    enrollment_count: int = 1
    public_id: str = field(default_factory=_generate_ulid)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        if not self.embeddings:
            raise ValueError("SpeakerRecord requires at least one embedding")

    @property
    def latest_embedding(self) -> np.ndarray:
        """Most recently added sample embedding."""
        return self.embeddings[-1]

    def to_summary(self) -> SpeakerSummary:
        """Index entry for this record."""
        return SpeakerSummary(
            id=self.id,
            hash=self.hash,
            gender=self.gender,
            created_at=self.created_at,
            updated_at=self.updated_at,
            enrollment_count=self.enrollment_count,
        )

    @staticmethod
    def serialize_embedding(embedding: np.ndarray) -> bytes:
        """Convert numpy embedding array to float32 bytes for storage."""
        return np.asarray(embedding, dtype=np.float32).tobytes()

    @staticmethod
    def deserialize_embedding(data: bytes) -> np.ndarray:
        """Convert stored bytes back to a float32 embedding array."""
        return np.frombuffer(data, dtype=np.float32).copy()
