"""Audio payload model."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AudioSample:
    """Decoded audio payload with its declared encoding."""

    data: bytes
    sample_rate: int = 16000
    bit_depth: int = 16
    audio_format: str = "pcm"
    channels: int = 1

    @property
    def duration_seconds(self) -> float:
        """Duration assuming uncompressed interleaved samples."""
        return len(self.data) / (self.bit_depth / 8 * self.sample_rate * self.channels)
