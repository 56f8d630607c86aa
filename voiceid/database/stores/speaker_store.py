"""SQL speaker repository."""

from datetime import UTC, datetime

from sqlalchemy import Engine
from sqlmodel import Session, select

from voiceid.database.models import SpeakerEmbeddingModel, SpeakerModel
from voiceid.domain.models.speaker import Gender, SpeakerRecord, SpeakerSummary


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class SqlSpeakerRepository:
    """Speaker repository backed by a SQL database.

    Implements SpeakerRepositoryProtocol from voiceid.domain.protocols. Each
    operation runs in its own session and transaction.
    """

    def __init__(self, engine: Engine) -> None:
        """Initialize repository with a database engine.

        Args:
            engine: SQLAlchemy engine with the tables created.
        """
        self.engine = engine

    def _to_domain_record(self, model: SpeakerModel) -> SpeakerRecord:
        """Convert database model to domain model."""
        return SpeakerRecord(
            id=model.speaker_id,
            hash=model.hash,
            embedding=SpeakerRecord.deserialize_embedding(model.embedding),
            embeddings=[
                SpeakerRecord.deserialize_embedding(e.embedding) for e in model.embeddings
            ]
            or [SpeakerRecord.deserialize_embedding(model.embedding)],
            gender=Gender(model.gender),
            enrollment_count=model.enrollment_count,
            public_id=model.public_id,
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
        )

    def _to_domain_summary(self, model: SpeakerModel) -> SpeakerSummary:
        """Convert database model to an index entry."""
        return SpeakerSummary(
            id=model.speaker_id,
            hash=model.hash,
            gender=Gender(model.gender),
            created_at=_as_utc(model.created_at),
            updated_at=_as_utc(model.updated_at),
            enrollment_count=model.enrollment_count,
        )

    def _find(self, session: Session, speaker_id: str) -> SpeakerModel | None:
        statement = select(SpeakerModel).where(SpeakerModel.speaker_id == speaker_id)
        return session.exec(statement).first()

    def save(self, record: SpeakerRecord) -> None:
        """Create or replace a speaker and all of its embeddings."""
        with Session(self.engine) as session:
            model = self._find(session, record.id)
            if model is None:
                model = SpeakerModel(
                    public_id=record.public_id,
                    speaker_id=record.id,
                    hash=record.hash,
                    embedding=b"",
                    created_at=record.created_at,
                )

            model.hash = record.hash
            model.gender = record.gender.value
            model.embedding = SpeakerRecord.serialize_embedding(record.embedding)
            model.enrollment_count = record.enrollment_count
            model.updated_at = record.updated_at
            model.embeddings.clear()
            session.add(model)
            session.flush()

            for position, embedding in enumerate(record.embeddings):
                session.add(
                    SpeakerEmbeddingModel(
                        speaker_id=model.id,
                        position=position,
                        embedding=SpeakerRecord.serialize_embedding(embedding),
                    )
                )
            session.commit()

    def get(self, speaker_id: str) -> SpeakerRecord | None:
        """Get a record by id, or None if absent."""
        with Session(self.engine) as session:
            model = self._find(session, speaker_id)
            return self._to_domain_record(model) if model else None

    def exists(self, speaker_id: str) -> bool:
        """Check if a speaker exists."""
        with Session(self.engine) as session:
            return self._find(session, speaker_id) is not None

    def list_speakers(self) -> list[SpeakerSummary]:
        """List speakers in enrollment order."""
        with Session(self.engine) as session:
            models = session.exec(select(SpeakerModel).order_by(SpeakerModel.id)).all()
            return [self._to_domain_summary(m) for m in models]

    def delete(self, speaker_id: str) -> bool:
        """Delete a speaker and its embeddings. Returns False if absent."""
        with Session(self.engine) as session:
            model = self._find(session, speaker_id)
            if model is None:
                return False
            session.delete(model)
            session.commit()
            return True

    def get_all(self) -> list[SpeakerRecord]:
        """Load every record."""
        with Session(self.engine) as session:
            models = session.exec(select(SpeakerModel).order_by(SpeakerModel.id)).all()
            return [self._to_domain_record(m) for m in models]
