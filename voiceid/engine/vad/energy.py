"""RMS-energy voice activity detection."""

from dataclasses import dataclass

import numpy as np

from voiceid.engine.settings import settings


@dataclass(frozen=True)
class SpeechSegment:
    """Voiced region as sample offsets [start, end)."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start

    def duration(self, sample_rate: int) -> float:
        """Segment duration in seconds."""
        return self.length / sample_rate


def frame_rms(audio: np.ndarray, frame_size: int, hop_length: int) -> np.ndarray:
    """RMS energy of each full frame."""
    if len(audio) < frame_size:
        return np.zeros(0)

    frames = np.lib.stride_tricks.sliding_window_view(audio, frame_size)[::hop_length]
    return np.sqrt(np.mean(np.square(frames, dtype=np.float64), axis=1))


def detect_voice_activity(
    audio: np.ndarray,
    frame_size: int | None = None,
    hop_length: int | None = None,
    energy_threshold: float | None = None,
) -> list[SpeechSegment]:
    """Find voiced segments.

    A segment opens on the first frame whose RMS exceeds the threshold and closes
    on the first frame that drops back to or below it; the segment then ends at
    the end of that closing frame. A segment still open at the last frame is
    closed at the final sample.

    Args:
        audio: Preprocessed samples.
        frame_size: Frame length in samples.
        hop_length: Hop between frames in samples.
        energy_threshold: RMS threshold.

    Returns:
        Segments in order of appearance.
    """
    if frame_size is None:
        frame_size = settings.frame_size
    if hop_length is None:
        hop_length = settings.hop_length
    if energy_threshold is None:
        energy_threshold = settings.vad_energy_threshold

    segments: list[SpeechSegment] = []
    in_speech = False
    segment_start = 0

    for i, energy in enumerate(frame_rms(audio, frame_size, hop_length)):
        start = i * hop_length
        if energy > energy_threshold and not in_speech:
            in_speech = True
            segment_start = start
        elif energy <= energy_threshold and in_speech:
            in_speech = False
            segments.append(SpeechSegment(segment_start, start + frame_size))

    if in_speech:
        segments.append(SpeechSegment(segment_start, len(audio)))

    return segments
