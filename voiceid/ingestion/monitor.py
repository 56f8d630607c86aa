"""Stream health monitoring.

Tracks throughput per stream and flags streams that have not delivered a
chunk within the chunk timeout. Stall detection is advisory: the monitor
reports stalled streams, it never terminates them.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from voiceid.ingestion.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class StreamMetrics:
    """Throughput counters of one stream."""

    stream_id: str
    started_at: float
    bytes_received: int = 0
    chunks_received: int = 0
    bytes_per_second: int = 0
    chunks_per_second: int = 0
    errors: int = 0
    duration_ms: int = 0
    last_chunk_at: float | None = None


@dataclass
class GlobalStats:
    """Totals across every stream seen by a monitor."""

    total_streams: int = 0
    completed_streams: int = 0
    failed_streams: int = 0
    stalled_streams: int = 0
    total_bytes_received: int = 0
    total_chunks_received: int = 0


@dataclass
class _Tracked:
    metrics: StreamMetrics
    stalled: bool = False


class StreamMonitor:
    """Per-stream metrics and stall detection."""

    def __init__(
        self,
        stall_timeout_ms: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stall_timeout_ms = (
            stall_timeout_ms if stall_timeout_ms is not None else settings.chunk_timeout_ms
        )
        self._clock = clock
        self._streams: dict[str, _Tracked] = {}
        self._stats = GlobalStats()

    def start_stream(self, stream_id: str) -> None:
        self._streams[stream_id] = _Tracked(
            metrics=StreamMetrics(stream_id=stream_id, started_at=self._clock())
        )
        self._stats.total_streams += 1

    def update_stream(self, stream_id: str, chunk_size: int = 0) -> None:
        """Record a received chunk."""
        tracked = self._streams.get(stream_id)
        if tracked is None:
            return

        now = self._clock()
        metrics = tracked.metrics
        metrics.chunks_received += 1
        metrics.bytes_received += chunk_size
        metrics.last_chunk_at = now

        elapsed = now - metrics.started_at
        if elapsed > 0:
            metrics.bytes_per_second = round(metrics.bytes_received / elapsed)
            metrics.chunks_per_second = round(metrics.chunks_received / elapsed)
        metrics.duration_ms = int(elapsed * 1000)
        tracked.stalled = False

        self._stats.total_bytes_received += chunk_size
        self._stats.total_chunks_received += 1

    def record_error(self, stream_id: str) -> None:
        tracked = self._streams.get(stream_id)
        if tracked is not None:
            tracked.metrics.errors += 1

    def find_stalled(self) -> list[str]:
        """Ids of streams idle for longer than the stall timeout.

        Each stall is logged and counted once until the stream receives
        another chunk.
        """
        now = self._clock()
        stalled: list[str] = []

        for stream_id, tracked in self._streams.items():
            metrics = tracked.metrics
            last_activity = metrics.last_chunk_at or metrics.started_at
            idle_ms = (now - last_activity) * 1000
            if idle_ms <= self.stall_timeout_ms:
                continue

            stalled.append(stream_id)
            if not tracked.stalled:
                tracked.stalled = True
                self._stats.stalled_streams += 1
                logger.warning(f"Stream {stream_id} stalled: no chunks for {idle_ms:.0f}ms")

        return stalled

    def stop_stream(self, stream_id: str, success: bool = True) -> None:
        """Stop tracking a stream and count its outcome."""
        if self._streams.pop(stream_id, None) is None:
            return
        if success:
            self._stats.completed_streams += 1
        else:
            self._stats.failed_streams += 1

    def get_stream_metrics(self, stream_id: str) -> StreamMetrics | None:
        tracked = self._streams.get(stream_id)
        return tracked.metrics if tracked else None

    def get_all_stream_metrics(self) -> list[StreamMetrics]:
        return [t.metrics for t in self._streams.values()]

    def get_global_stats(self) -> GlobalStats:
        return GlobalStats(**vars(self._stats))
