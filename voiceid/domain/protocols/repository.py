"""Speaker repository Protocol for data persistence."""

from typing import Protocol

from voiceid.domain.models.speaker import SpeakerRecord, SpeakerSummary


class SpeakerRepositoryProtocol(Protocol):
    """Protocol for speaker record persistence.

    Saves are atomic per record: a reader never observes a partially written
    record.
    """

    def save(self, record: SpeakerRecord) -> None:
        """Create or replace a speaker record and its index entry."""
        ...

    def get(self, speaker_id: str) -> SpeakerRecord | None:
        """Get a record by id, or None if absent."""
        ...

    def exists(self, speaker_id: str) -> bool:
        """Check if a speaker exists."""
        ...

    def list_speakers(self) -> list[SpeakerSummary]:
        """List index entries without loading embeddings."""
        ...

    def delete(self, speaker_id: str) -> bool:
        """Delete a speaker. Returns False if it did not exist."""
        ...

    def get_all(self) -> list[SpeakerRecord]:
        """Load every record."""
        ...
