"""Database stores."""

from voiceid.database.stores.speaker_store import SqlSpeakerRepository

__all__ = ["SqlSpeakerRepository"]
