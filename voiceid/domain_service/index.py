"""In-memory speaker index with a readers-writer lock.

Identification and verification read an immutable snapshot; enrollment,
deletion and calibration hold the exclusive write side for their whole
update so a reader never sees a half-applied change.
"""

import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from types import MappingProxyType

import numpy as np

from voiceid.domain.models.speaker import SpeakerRecord


class ReadWriteLock:
    """Writer-preferring readers-writer lock."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            while self._writer or self._readers:
                self._cond.wait()
            self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class SpeakerIndex:
    """Speaker id -> per-sample embeddings.

    Embedding lists stored here are tuples and never mutated in place, so a
    snapshot stays consistent after the lock is released.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._speakers: dict[str, tuple[np.ndarray, ...]] = {}

    @contextmanager
    def update(self) -> Iterator["IndexWriter"]:
        """Hold the exclusive side of the lock for a multi-step change."""
        with self._lock.write():
            yield IndexWriter(self._speakers)

    def snapshot(self) -> Mapping[str, tuple[np.ndarray, ...]]:
        """Consistent read-only view of the index."""
        with self._lock.read():
            return MappingProxyType(dict(self._speakers))

    def load(self, records: list[SpeakerRecord]) -> None:
        """Replace the index contents with the given records."""
        with self.update() as writer:
            writer.clear()
            for record in records:
                writer.put(record.id, record.embeddings)

    def stats(self) -> tuple[int, int]:
        """Number of speakers and total number of stored embeddings."""
        with self._lock.read():
            return len(self._speakers), sum(len(e) for e in self._speakers.values())

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._speakers)

    def __contains__(self, speaker_id: object) -> bool:
        with self._lock.read():
            return speaker_id in self._speakers


class IndexWriter:
    """Mutation handle valid only inside SpeakerIndex.update()."""

    def __init__(self, speakers: dict[str, tuple[np.ndarray, ...]]) -> None:
        self._speakers = speakers

    def put(self, speaker_id: str, embeddings: list[np.ndarray]) -> None:
        self._speakers[speaker_id] = tuple(embeddings)

    def remove(self, speaker_id: str) -> None:
        self._speakers.pop(speaker_id, None)

    def clear(self) -> None:
        self._speakers.clear()

    def view(self) -> Mapping[str, tuple[np.ndarray, ...]]:
        """Current contents, for calibration under the write lock."""
        return MappingProxyType(self._speakers)
