"""Database models (SQLModel)."""

from datetime import UTC, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Relationship, SQLModel
from ulid import ULID


def _generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def _utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class SpeakerModel(SQLModel, table=True):
    """Enrolled speaker with its averaged embedding."""

    __tablename__ = "speakers"  # pyright: ignore[reportAssignmentType]

    id: int | None = Field(default=None, primary_key=True)
    public_id: str = Field(
        default_factory=_generate_ulid,
        unique=True,
        index=True,
        max_length=26,
    )
    speaker_id: str = Field(unique=True, index=True, max_length=64)
    hash: str = Field(max_length=6)
    gender: str = Field(default="U", max_length=1)
    embedding: bytes = Field()  # float32, averaged and normalized
    enrollment_count: int = Field(default=1)
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)

    embeddings: list["SpeakerEmbeddingModel"] = Relationship(
        back_populates="speaker",
        sa_relationship_kwargs={
            "cascade": "all, delete-orphan",
            "order_by": "SpeakerEmbeddingModel.position",
        },
    )


class SpeakerEmbeddingModel(SQLModel, table=True):
    """One per-sample embedding of a speaker."""

    __tablename__ = "speaker_embeddings"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (UniqueConstraint("speaker_id", "position", name="uq_speaker_position"),)

    id: int | None = Field(default=None, primary_key=True)
    speaker_id: int = Field(foreign_key="speakers.id", index=True)
    position: int = Field()
    embedding: bytes = Field()
    created_at: datetime = Field(default_factory=_utc_now)

    speaker: "SpeakerModel" = Relationship(back_populates="embeddings")
