"""Voiceprint extraction pipeline.

preprocess -> voice activity segmentation -> embedding backend -> L2 normalize
"""

from dataclasses import dataclass

import numpy as np

from voiceid.domain.protocols.embedding import EmbeddingBackendProtocol
from voiceid.engine.audio.codec import preprocess_audio
from voiceid.engine.exceptions import EngineError, NoVoiceActivityError
from voiceid.engine.settings import settings
from voiceid.engine.vad.energy import SpeechSegment, detect_voice_activity
from voiceid.engine.voiceprint.projection import ProjectionEmbeddingBackend
from voiceid.engine.voiceprint.quality import (
    AudioQualityMetrics,
    measure_audio_quality,
    quality_score,
)
from voiceid.engine.voiceprint.similarity import l2_normalize


@dataclass
class ExtractionResult:
    """Single embedding extracted from the longest voiced segment."""

    embedding: np.ndarray
    quality: float
    metrics: AudioQualityMetrics
    num_segments: int


@dataclass
class SegmentEmbedding:
    """Embedding of one of the longest voiced segments."""

    embedding: np.ndarray
    quality: float
    segment_index: int


def create_backend(name: str | None = None) -> EmbeddingBackendProtocol:
    """Build the embedding backend named in settings."""
    if name is None:
        name = settings.embedding_backend

    if name == "projection":
        return ProjectionEmbeddingBackend()
    if name == "campp":
        from voiceid.engine.voiceprint.campp import CAMPPEmbeddingBackend

        return CAMPPEmbeddingBackend()

    raise EngineError(f"Unknown embedding backend: {name}")


class VoiceprintExtractor:
    """Turns raw audio bytes into normalized speaker embeddings.

    Stateless apart from the backend, which only caches read-only weights, so a
    single instance may serve concurrent extractions.
    """

    def __init__(self, backend: EmbeddingBackendProtocol | None = None) -> None:
        """Initialize the extractor.

        Args:
            backend: Embedding backend. Defaults to the one named in settings.
        """
        self.backend = backend or create_backend()
        self.sample_rate = settings.target_sample_rate

    @property
    def embedding_dim(self) -> int:
        """Get the dimension of voiceprint embeddings."""
        return self.backend.embedding_dim

    def _analyze(
        self,
        data: bytes,
        sample_rate: int,
        bit_depth: int,
        audio_format: str,
        channels: int = 1,
    ) -> tuple[np.ndarray, list[SpeechSegment], AudioQualityMetrics]:
        audio = preprocess_audio(data, sample_rate, bit_depth, audio_format, channels)
        metrics = measure_audio_quality(audio, self.sample_rate)
        segments = detect_voice_activity(audio)

        if not segments:
            raise NoVoiceActivityError("No voice activity detected in audio")

        return audio, segments, metrics

    def extract(
        self,
        data: bytes,
        sample_rate: int = 16000,
        bit_depth: int = 16,
        audio_format: str = "pcm",
        channels: int = 1,
    ) -> ExtractionResult:
        """Extract one embedding from the longest voiced segment.

        Args:
            data: Raw audio bytes.
            sample_rate: Source sample rate.
            bit_depth: Source bit depth (16 or 32).
            audio_format: "pcm" or "wav".
            channels: Interleaved channel count of raw PCM.

        Returns:
            ExtractionResult with a unit-norm embedding and a 0-1 quality score.

        Raises:
            NoVoiceActivityError: If no voiced segment is found.
            MelSpectrogramError: If the segment yields no spectrogram frames.
        """
        audio, segments, metrics = self._analyze(
            data, sample_rate, bit_depth, audio_format, channels
        )

        longest = max(segments, key=lambda s: s.length)
        speech = audio[longest.start : longest.end]
        embedding = l2_normalize(self.backend.embed(speech, self.sample_rate))

        return ExtractionResult(
            embedding=embedding,
            quality=quality_score(metrics, len(segments)),
            metrics=metrics,
            num_segments=len(segments),
        )

    def extract_multiple(
        self,
        data: bytes,
        sample_rate: int = 16000,
        bit_depth: int = 16,
        audio_format: str = "pcm",
        channels: int = 1,
        max_segments: int | None = None,
    ) -> list[SegmentEmbedding]:
        """Extract embeddings from up to max_segments of the longest segments.

        Segments shorter than the configured minimum are skipped, so the result
        may be empty.

        Raises:
            NoVoiceActivityError: If no voiced segment is found.
        """
        if max_segments is None:
            max_segments = settings.max_segments

        audio, segments, metrics = self._analyze(
            data, sample_rate, bit_depth, audio_format, channels
        )
        quality = quality_score(metrics, len(segments))
        min_length = self.sample_rate * settings.min_segment_seconds

        ranked = sorted(segments, key=lambda s: s.length, reverse=True)
        results: list[SegmentEmbedding] = []

        for index, segment in enumerate(ranked[:max_segments]):
            if segment.length < min_length:
                continue
            embedding = self.backend.embed(audio[segment.start : segment.end], self.sample_rate)
            results.append(
                SegmentEmbedding(
                    embedding=l2_normalize(embedding),
                    quality=quality,
                    segment_index=index,
                )
            )

        return results
