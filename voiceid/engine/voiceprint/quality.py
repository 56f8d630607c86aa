"""Audio quality estimation for voiceprint enrollment."""

from dataclasses import dataclass

import numpy as np

from voiceid.engine.settings import settings

NOISE_LEVEL = 0.01
CLIPPING_LEVEL = 0.99


@dataclass(frozen=True)
class AudioQualityMetrics:
    """Raw quality measurements of a preprocessed signal."""

    snr_db: float
    duration_seconds: float
    clipping_ratio: float


def measure_audio_quality(
    audio: np.ndarray, sample_rate: int | None = None
) -> AudioQualityMetrics:
    """Estimate SNR, duration and clipping.

    Near-zero samples (|x| < 0.01) stand in for the noise floor.
    """
    if sample_rate is None:
        sample_rate = settings.target_sample_rate

    if len(audio) == 0:
        return AudioQualityMetrics(snr_db=0.0, duration_seconds=0.0, clipping_ratio=0.0)

    squares = np.square(audio, dtype=np.float64)
    magnitude = np.abs(audio)

    signal_power = max(float(np.mean(squares)), 1e-10)
    noise_power = max(float(np.sum(squares[magnitude < NOISE_LEVEL])) / len(audio), 1e-10)

    return AudioQualityMetrics(
        snr_db=10 * float(np.log10(signal_power / noise_power)),
        duration_seconds=len(audio) / sample_rate,
        clipping_ratio=float(np.count_nonzero(magnitude > CLIPPING_LEVEL)) / len(audio),
    )


def duration_score(duration_seconds: float) -> float:
    """1.0 inside 3-10 s, ramping up below and decaying to zero by 20 s."""
    if 3 <= duration_seconds <= 10:
        return 1.0
    if duration_seconds < 3:
        return duration_seconds / 3
    return max(0.0, 1 - (duration_seconds - 10) / 10)


def quality_score(metrics: AudioQualityMetrics, num_segments: int) -> float:
    """Weighted 0-1 score: 0.3 SNR + 0.3 duration + 0.2 clipping + 0.2 activity."""
    snr = min(max((metrics.snr_db + 10) / 30, 0.0), 1.0)
    clipping = max(0.0, 1 - metrics.clipping_ratio * 100)
    activity = min(num_segments / 3, 1.0)

    return (
        snr * 0.3
        + duration_score(metrics.duration_seconds) * 0.3
        + clipping * 0.2
        + activity * 0.2
    )
