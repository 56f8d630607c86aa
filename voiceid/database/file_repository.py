"""JSON file speaker repository.

Layout::

    <root>/index.json            {"version", "speakers": [...], "totalCount"}
    <root>/embeddings/<id>.json  one full record per speaker

Writes go to a temporary file in the target directory and are moved into
place with ``os.replace`` so readers see either the old or the new record.
"""

import json
import logging
import os
import tempfile
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import numpy as np

from voiceid.database.exceptions import InvalidSpeakerIdError, RecordCorruptedError
from voiceid.domain.models.speaker import Gender, SpeakerRecord, SpeakerSummary

logger = logging.getLogger(__name__)

INDEX_VERSION = "1.0"


def _format_time(value: datetime) -> str:
    return value.isoformat()


def _parse_time(value: Any) -> datetime:
    """Accept ISO strings and legacy epoch milliseconds."""
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, UTC)
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    return datetime.now(UTC)


def record_to_dict(record: SpeakerRecord) -> dict[str, Any]:
    """Serialize a record to its JSON layout."""
    return {
        "id": record.id,
        "publicId": record.public_id,
        "hash": record.hash,
        "embedding": [float(x) for x in record.embedding],
        "embeddings": [[float(x) for x in e] for e in record.embeddings],
        "gender": record.gender.value,
        "createdAt": _format_time(record.created_at),
        "updatedAt": _format_time(record.updated_at),
        "enrollmentCount": record.enrollment_count,
    }


def record_from_dict(data: dict[str, Any]) -> SpeakerRecord:
    """Deserialize a record, migrating legacy single-embedding layouts.

    Raises:
        RecordCorruptedError: If required fields are missing or malformed.
    """
    try:
        embedding = np.asarray(data["embedding"], dtype=np.float32)
        embeddings = data.get("embeddings") or [data["embedding"]]
        fields: dict[str, Any] = {
            "id": data["id"],
            "hash": data.get("hash", ""),
            "embedding": embedding,
            "embeddings": [np.asarray(e, dtype=np.float32) for e in embeddings],
            "gender": Gender(data.get("gender") or Gender.UNKNOWN.value),
            "enrollment_count": int(data.get("enrollmentCount") or len(embeddings)),
            "created_at": _parse_time(data.get("createdAt")),
            "updated_at": _parse_time(data.get("updatedAt")),
        }
        if data.get("publicId"):
            fields["public_id"] = data["publicId"]
        return SpeakerRecord(**fields)
    except (KeyError, TypeError, ValueError) as e:
        raise RecordCorruptedError(f"Invalid speaker record: {e}") from e


def summary_to_dict(summary: SpeakerSummary) -> dict[str, Any]:
    return {
        "id": summary.id,
        "hash": summary.hash,
        "gender": summary.gender.value,
        "createdAt": _format_time(summary.created_at),
        "updatedAt": _format_time(summary.updated_at),
        "enrollmentCount": summary.enrollment_count,
    }


def summary_from_dict(data: dict[str, Any]) -> SpeakerSummary:
    return SpeakerSummary(
        id=data["id"],
        hash=data.get("hash", ""),
        gender=Gender(data.get("gender") or Gender.UNKNOWN.value),
        created_at=_parse_time(data.get("createdAt")),
        updated_at=_parse_time(data.get("updatedAt")),
        enrollment_count=int(data.get("enrollmentCount") or 1),
    )


def atomic_write_json(path: Path, data: Any) -> None:
    """Write JSON to path via a temporary sibling file and os.replace."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


class FileSpeakerRepository:
    """Speaker repository backed by JSON files.

    Implements SpeakerRepositoryProtocol from voiceid.domain.protocols.
    """

    def __init__(self, root: str | Path) -> None:
        """Initialize the repository and create its directories.

        Args:
            root: Storage directory.
        """
        self.root = Path(root)
        self.embeddings_dir = self.root / "embeddings"
        self.index_file = self.root / "index.json"
        self._lock = threading.RLock()

        self.embeddings_dir.mkdir(parents=True, exist_ok=True)
        if not self.index_file.exists():
            self._write_index([])

    @staticmethod
    def _is_storable_id(speaker_id: str) -> bool:
        return bool(speaker_id) and not (
            "/" in speaker_id or "\\" in speaker_id or speaker_id.startswith(".")
        )

    def _record_path(self, speaker_id: str) -> Path:
        if not self._is_storable_id(speaker_id):
            raise InvalidSpeakerIdError(f"Invalid speaker id: {speaker_id!r}")
        return self.embeddings_dir / f"{speaker_id}.json"

    def _read_index(self) -> list[SpeakerSummary]:
        try:
            data = json.loads(self.index_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Speaker index unreadable, treating as empty: {e}")
            return []
        return [summary_from_dict(s) for s in data.get("speakers", [])]

    def _write_index(self, speakers: list[SpeakerSummary]) -> None:
        atomic_write_json(
            self.index_file,
            {
                "version": INDEX_VERSION,
                "speakers": [summary_to_dict(s) for s in speakers],
                "totalCount": len(speakers),
            },
        )

    def save(self, record: SpeakerRecord) -> None:
        """Create or replace a speaker record and its index entry."""
        with self._lock:
            atomic_write_json(self._record_path(record.id), record_to_dict(record))

            speakers = self._read_index()
            summary = record.to_summary()
            for i, existing in enumerate(speakers):
                if existing.id == record.id:
                    speakers[i] = summary
                    break
            else:
                speakers.append(summary)
            self._write_index(speakers)

    def get(self, speaker_id: str) -> SpeakerRecord | None:
        """Get a record by id, or None if absent."""
        if not self._is_storable_id(speaker_id):
            return None
        path = self._record_path(speaker_id)
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            raise RecordCorruptedError(f"Speaker record '{speaker_id}' is corrupted") from e
        return record_from_dict(data)

    def exists(self, speaker_id: str) -> bool:
        """Check if a speaker exists."""
        return any(s.id == speaker_id for s in self._read_index())

    def list_speakers(self) -> list[SpeakerSummary]:
        """List index entries without loading embeddings."""
        return self._read_index()

    def delete(self, speaker_id: str) -> bool:
        """Delete a speaker. Returns False if it did not exist."""
        if not self._is_storable_id(speaker_id):
            return False
        with self._lock:
            path = self._record_path(speaker_id)
            speakers = self._read_index()
            remaining = [s for s in speakers if s.id != speaker_id]
            existed = path.exists() or len(remaining) != len(speakers)

            if path.exists():
                path.unlink()
            if len(remaining) != len(speakers):
                self._write_index(remaining)

            return existed

    def get_all(self) -> list[SpeakerRecord]:
        """Load every indexed record, skipping unreadable ones."""
        records: list[SpeakerRecord] = []
        for summary in self._read_index():
            try:
                record = self.get(summary.id)
            except RecordCorruptedError as e:
                logger.error(f"Skipping speaker '{summary.id}': {e}")
                continue
            if record is not None:
                records.append(record)
        return records
