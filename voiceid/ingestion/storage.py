"""Temporary on-disk storage of assembled audio."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from voiceid.ingestion.models import AssembledAudio
from voiceid.ingestion.settings import settings

logger = logging.getLogger(__name__)

_EXTENSIONS = {"opus": "opus", "pcm": "pcm", "wav": "wav", "aac": "aac"}


@dataclass(frozen=True)
class StoredAudio:
    """Metadata of a stored recording."""

    stream_id: str
    file_path: Path
    format: str
    size: int
    created_at: float
    expires_at: float


class AudioStorage:
    """Local filesystem store for assembled audio, one file per stream.

    Files are named ``<stream id>.<extension>`` and expire after a TTL.
    """

    def __init__(
        self,
        base_path: str | Path | None = None,
        ttl_seconds: int | None = None,
        max_file_size: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.base_path = Path(base_path if base_path is not None else settings.temp_storage_path)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.temp_storage_ttl_seconds
        self.max_file_size = max_file_size if max_file_size is not None else settings.max_stream_size
        self._clock = clock
        self._stored: dict[str, StoredAudio] = {}

    def save(self, audio: AssembledAudio) -> Path:
        """Write the audio to disk.

        Raises:
            ValueError: If the audio exceeds the maximum file size.
        """
        if audio.total_bytes > self.max_file_size:
            raise ValueError(f"File size {audio.total_bytes} exceeds maximum {self.max_file_size}")

        extension = _EXTENSIONS.get(audio.config.format, "bin")
        file_path = self.base_path / f"{audio.stream_id}.{extension}"

        with open(file_path, "wb") as f:
            f.write(audio.data)

        now = self._clock()
        self._stored[audio.stream_id] = StoredAudio(
            stream_id=audio.stream_id,
            file_path=file_path,
            format=audio.config.format,
            size=audio.total_bytes,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        logger.debug(f"Stored {audio.total_bytes} bytes for stream {audio.stream_id} at {file_path}")
        return file_path

    def load(self, stream_id: str) -> bytes | None:
        stored = self._stored.get(stream_id)
        if stored is None:
            return None
        try:
            return stored.file_path.read_bytes()
        except FileNotFoundError:
            self._stored.pop(stream_id, None)
            return None

    def exists(self, stream_id: str) -> bool:
        stored = self._stored.get(stream_id)
        return stored is not None and stored.file_path.exists()

    def delete(self, stream_id: str) -> bool:
        stored = self._stored.pop(stream_id, None)
        if stored is None:
            return False
        stored.file_path.unlink(missing_ok=True)
        return True

    def get_stored(self, stream_id: str) -> StoredAudio | None:
        return self._stored.get(stream_id)

    def get_all_stored(self) -> list[StoredAudio]:
        return list(self._stored.values())

    def cleanup(self) -> int:
        """Delete expired files.

        Returns:
            Number of files removed.
        """
        now = self._clock()
        expired = [sid for sid, stored in self._stored.items() if stored.expires_at < now]
        for stream_id in expired:
            self.delete(stream_id)

        if expired:
            logger.info(f"Removed {len(expired)} expired audio files")
        return len(expired)

    def dispose(self) -> None:
        """Delete every stored file."""
        for stream_id in list(self._stored):
            self.delete(stream_id)
