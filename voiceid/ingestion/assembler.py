"""Reassembly of chunked audio streams.

Chunks may arrive in any order. They are buffered by sequence number until
every sequence from 0 through the chunk flagged as last is present.
"""

import logging
import time
from dataclasses import dataclass

from voiceid.ingestion.models import AssembledAudio, AudioStreamConfig, StreamChunk
from voiceid.ingestion.settings import settings

logger = logging.getLogger(__name__)

# Approximate bytes per second of compressed formats
_COMPRESSED_BYTES_PER_SECOND = {
    "opus": 3000,  # ~24 kbps
    "aac": 16000,  # ~128 kbps
}
_DEFAULT_BYTES_PER_SECOND = 16000


def estimate_duration_ms(config: AudioStreamConfig, num_bytes: int) -> int:
    """Estimate duration from the byte count and declared format."""
    if config.format in ("pcm", "wav"):
        bytes_per_second = config.sample_rate * config.channels * 2
    else:
        bytes_per_second = _COMPRESSED_BYTES_PER_SECOND.get(config.format, _DEFAULT_BYTES_PER_SECOND)

    if bytes_per_second <= 0:
        bytes_per_second = _DEFAULT_BYTES_PER_SECOND
    return round(num_bytes / bytes_per_second * 1000)


@dataclass
class AssemblerStats:
    """Counters describing an assembler's progress."""

    total_chunks: int
    out_of_order_chunks: int
    duplicate_chunks: int
    evicted_chunks: int
    buffered_chunks: int
    next_expected_sequence: int
    is_complete: bool
    elapsed_ms: int


class StreamAssembler:
    """Orders the chunks of one stream and detects completion.

    At most ``max_out_of_order`` chunks ahead of the next expected sequence
    are buffered. When a new out-of-order chunk would exceed that, the lowest
    buffered one is evicted. An evicted sequence still counts as seen, so a
    stream that loses a chunk this way can never complete; ``evicted_chunks``
    reports it so the caller can retry the whole stream.
    """

    def __init__(
        self,
        stream_id: str,
        config: AudioStreamConfig,
        max_out_of_order: int | None = None,
    ) -> None:
        self.stream_id = stream_id
        self.config = config
        self.max_out_of_order = (
            max_out_of_order if max_out_of_order is not None else settings.max_out_of_order_chunks
        )

        self._chunks: dict[int, StreamChunk] = {}
        self._seen: set[int] = set()
        self._next_expected = 0
        self._last_sequence: int | None = None
        self._complete = False
        self._started = time.monotonic()

        self._total_chunks = 0
        self._out_of_order_chunks = 0
        self._duplicate_chunks = 0
        self._evicted_chunks = 0

    @property
    def is_complete(self) -> bool:
        return self._complete

    def accepts(self, sequence: int) -> bool:
        """Whether a chunk with this sequence would be accepted."""
        return not self._complete and sequence not in self._seen

    def add_chunk(self, chunk: StreamChunk) -> bool:
        """Add a chunk.

        Returns:
            False if the stream is already complete or the sequence was seen
            before, True otherwise.
        """
        if self._complete:
            return False

        sequence = chunk.sequence
        if sequence in self._seen:
            self._duplicate_chunks += 1
            return False

        self._total_chunks += 1

        if sequence != self._next_expected:
            pending = [s for s in self._chunks if s > self._next_expected]
            if len(pending) >= self.max_out_of_order:
                evicted = min(pending)
                del self._chunks[evicted]
                self._evicted_chunks += 1
                logger.warning(
                    f"Stream {self.stream_id}: out-of-order buffer full, evicted chunk {evicted}"
                )
            self._out_of_order_chunks += 1

        self._chunks[sequence] = chunk
        self._seen.add(sequence)

        if sequence == self._next_expected:
            while self._next_expected in self._chunks:
                self._next_expected += 1

        if chunk.is_last:
            if self._last_sequence is None:
                self._last_sequence = sequence
            self._check_completion()
        elif self._last_sequence is not None and sequence < self._next_expected:
            # a gap below the last chunk was just filled
            self._check_completion()

        return True

    def _check_completion(self) -> None:
        if self._last_sequence is None:
            return
        expected_count = self._last_sequence + 1
        if self._next_expected >= expected_count and len(self._chunks) == expected_count:
            self._complete = True

    def get_assembly(self) -> AssembledAudio | None:
        """Concatenate the chunks in sequence order, or None if incomplete."""
        if not self._complete:
            return None

        ordered = [self._chunks[s] for s in sorted(self._chunks)]
        data = b"".join(c.data for c in ordered)

        return AssembledAudio(
            stream_id=self.stream_id,
            config=self.config,
            data=data,
            total_chunks=len(ordered),
            total_bytes=len(data),
            duration_ms=estimate_duration_ms(self.config, len(data)),
        )

    def stats(self) -> AssemblerStats:
        return AssemblerStats(
            total_chunks=self._total_chunks,
            out_of_order_chunks=self._out_of_order_chunks,
            duplicate_chunks=self._duplicate_chunks,
            evicted_chunks=self._evicted_chunks,
            buffered_chunks=len(self._chunks),
            next_expected_sequence=self._next_expected,
            is_complete=self._complete,
            elapsed_ms=int((time.monotonic() - self._started) * 1000),
        )

    def dispose(self) -> None:
        """Release buffered chunks. The assembler accepts nothing afterwards."""
        self._chunks.clear()
        self._seen.clear()
        self._complete = True
