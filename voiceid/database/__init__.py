"""Database layer."""

from voiceid.database.file_repository import FileSpeakerRepository
from voiceid.database.session import create_db_engine
from voiceid.database.settings import settings
from voiceid.database.stores import SqlSpeakerRepository
from voiceid.domain.protocols.repository import SpeakerRepositoryProtocol


def create_repository() -> SpeakerRepositoryProtocol:
    """Build the repository selected in settings."""
    if settings.backend == "sqlite":
        return SqlSpeakerRepository(create_db_engine())
    return FileSpeakerRepository(settings.storage_dir)


__all__ = [
    "FileSpeakerRepository",
    "SqlSpeakerRepository",
    "create_db_engine",
    "create_repository",
]
