"""Tests for voiceprint extraction."""

import numpy as np
import pytest

from voiceid.engine.exceptions import MelSpectrogramError, NoVoiceActivityError
from voiceid.engine.settings import settings
from voiceid.engine.voiceprint import (
    ProjectionEmbeddingBackend,
    VoiceprintExtractor,
    cosine_similarity,
)
from voiceid.engine.voiceprint.projection import context_windows, seeded_weights
from voiceid.engine.voiceprint.quality import (
    AudioQualityMetrics,
    duration_score,
    measure_audio_quality,
    quality_score,
)
from voiceid.engine.voiceprint.similarity import (
    average_embeddings,
    l2_normalize,
    multi_embedding_similarity,
    pairwise_consistency,
)


class TestSimilarity:
    """Tests for embedding similarity helpers."""

    def test_identical_vectors(self) -> None:
        """Test identical vectors have similarity 1.0."""
        v = np.array([1.0, 2.0, 3.0], dtype=np.float32)
        assert cosine_similarity(v, v) == pytest.approx(1.0)

    def test_opposite_vectors(self) -> None:
        """Test opposite vectors have similarity -1.0."""
        v = np.array([1.0, 0.0, 0.0], dtype=np.float32)
        assert cosine_similarity(v, -v) == pytest.approx(-1.0)

    def test_zero_vector(self) -> None:
        """Test zero vector returns 0.0."""
        assert cosine_similarity(np.ones(3), np.zeros(3)) == 0.0

    def test_dimension_mismatch(self) -> None:
        """Test differing dimensions raise ValueError."""
        with pytest.raises(ValueError):
            cosine_similarity(np.ones(3), np.ones(4))

    def test_l2_normalize(self) -> None:
        """Test normalization gives unit norm and keeps zero vectors."""
        assert np.linalg.norm(l2_normalize(np.array([3.0, 4.0]))) == pytest.approx(1.0)
        np.testing.assert_array_equal(l2_normalize(np.zeros(3)), np.zeros(3))

    def test_average_embeddings(self) -> None:
        """Test averaged embedding is normalized."""
        result = average_embeddings([np.array([1.0, 0.0]), np.array([0.0, 1.0])])
        np.testing.assert_allclose(result, [np.sqrt(0.5), np.sqrt(0.5)], rtol=1e-6)

    def test_average_empty_raises(self) -> None:
        """Test empty list raises ValueError."""
        with pytest.raises(ValueError):
            average_embeddings([])

    def test_multi_embedding_similarity(self) -> None:
        """Test the score is the mean over the cross product."""
        a = np.array([1.0, 0.0])
        b = np.array([0.0, 1.0])
        assert multi_embedding_similarity([a], [a, b]) == pytest.approx(0.5)
        assert multi_embedding_similarity([], [a]) == 0.0

    def test_pairwise_consistency(self) -> None:
        """Test consistency is the mean over distinct pairs."""
        a = np.array([1.0, 0.0])
        b = np.array([0.0, 1.0])
        assert pairwise_consistency([a, a, b]) == pytest.approx(1 / 3)
        assert pairwise_consistency([a]) == 1.0


class TestQuality:
    """Tests for audio quality scoring."""

    def test_duration_score(self) -> None:
        """Test the duration curve."""
        assert duration_score(1.5) == pytest.approx(0.5)
        assert duration_score(5.0) == 1.0
        assert duration_score(15.0) == pytest.approx(0.5)
        assert duration_score(25.0) == 0.0

    def test_clean_audio_metrics(self) -> None:
        """Test a clean tone has high SNR and no clipping."""
        t = np.arange(16000 * 4) / 16000
        audio = (0.5 * np.sin(2 * np.pi * 220 * t)).astype(np.float32)
        metrics = measure_audio_quality(audio, 16000)

        assert metrics.duration_seconds == pytest.approx(4.0)
        assert metrics.clipping_ratio == 0.0
        assert metrics.snr_db > 20

    def test_perfect_score(self) -> None:
        """Test ideal metrics score 1.0."""
        metrics = AudioQualityMetrics(snr_db=30.0, duration_seconds=5.0, clipping_ratio=0.0)
        assert quality_score(metrics, 3) == pytest.approx(1.0)

    def test_clipping_penalized(self) -> None:
        """Test 1% clipping removes the clipping component."""
        clean = AudioQualityMetrics(snr_db=30.0, duration_seconds=5.0, clipping_ratio=0.0)
        clipped = AudioQualityMetrics(snr_db=30.0, duration_seconds=5.0, clipping_ratio=0.01)
        assert quality_score(clean, 1) - quality_score(clipped, 1) == pytest.approx(0.2)


class TestProjectionBackend:
    """Tests for the projection embedding backend."""

    def test_seeded_weights_deterministic(self) -> None:
        """Test weights are reproducible and within [-1, 1)."""
        w1 = seeded_weights(4, 6, 10000)
        w2 = seeded_weights(4, 6, 10000)

        np.testing.assert_array_equal(w1, w2)
        assert w1.min() >= -1
        assert w1.max() < 1

    def test_context_windows_clamped(self) -> None:
        """Test edge frames repeat the nearest frame."""
        frames = np.arange(3, dtype=np.float64)[:, np.newaxis]
        context = context_windows(frames, 5)

        np.testing.assert_array_equal(context[0], [0, 0, 0, 1, 2])
        np.testing.assert_array_equal(context[2], [0, 1, 2, 2, 2])

    def test_deterministic_across_instances(self, projection_backend, tone) -> None:
        """Test two backends produce identical embeddings."""
        other = ProjectionEmbeddingBackend()
        segment = np.frombuffer(tone(150, 1.0), dtype="<i2").astype(np.float32) / 32768

        np.testing.assert_allclose(
            projection_backend.embed(segment, 16000), other.embed(segment, 16000), rtol=1e-6
        )

    def test_embedding_dim(self, projection_backend) -> None:
        """Test the configured embedding size."""
        segment = np.sin(np.arange(8000) / 10).astype(np.float32)
        assert projection_backend.embed(segment, 16000).shape == (settings.embedding_dim,)

    def test_too_short_segment(self, projection_backend) -> None:
        """Test a segment shorter than a frame raises MelSpectrogramError."""
        with pytest.raises(MelSpectrogramError):
            projection_backend.embed(np.ones(100, dtype=np.float32), 16000)


class TestVoiceprintExtractor:
    """Tests for VoiceprintExtractor."""

    def test_extract_normalized(self, extractor: VoiceprintExtractor, tone) -> None:
        """Test the embedding has unit norm and a bounded quality."""
        result = extractor.extract(tone(120, 3.0))

        assert result.embedding.shape == (extractor.embedding_dim,)
        assert np.linalg.norm(result.embedding) == pytest.approx(1.0, abs=1e-4)
        assert 0.0 <= result.quality <= 1.0
        assert result.num_segments >= 1

    def test_extract_deterministic(self, extractor: VoiceprintExtractor, tone) -> None:
        """Test the same bytes give the same embedding."""
        data = tone(120, 2.0)
        np.testing.assert_array_equal(
            extractor.extract(data).embedding, extractor.extract(data).embedding
        )

    def test_same_voice_similar(self, extractor: VoiceprintExtractor, tone) -> None:
        """Test two recordings of the same tone are close."""
        a = extractor.extract(tone(120, 3.0, seed=1)).embedding
        b = extractor.extract(tone(120, 3.0, seed=2)).embedding
        assert cosine_similarity(a, b) > 0.9

    def test_wav_input(self, extractor: VoiceprintExtractor, wav_tone) -> None:
        """Test WAV input at another sample rate is accepted."""
        result = extractor.extract(wav_tone(120, 2.0, sample_rate=8000), 8000, 16, "wav")
        assert np.linalg.norm(result.embedding) == pytest.approx(1.0, abs=1e-4)

    def test_silence_raises(self, extractor: VoiceprintExtractor, silence_pcm: bytes) -> None:
        """Test silence raises NoVoiceActivityError."""
        with pytest.raises(NoVoiceActivityError):
            extractor.extract(silence_pcm)

    def test_extract_multiple(self, extractor: VoiceprintExtractor, tone) -> None:
        """Test multi-segment extraction returns normalized embeddings."""
        results = extractor.extract_multiple(tone(120, 3.0))

        assert 1 <= len(results) <= settings.max_segments
        for result in results:
            assert np.linalg.norm(result.embedding) == pytest.approx(1.0, abs=1e-4)

    def test_extract_multiple_skips_short_segments(self, extractor: VoiceprintExtractor) -> None:
        """Test voiced regions under the minimum length are skipped."""
        audio = np.zeros(32000, dtype=np.float32)
        t = np.arange(3200) / 16000
        audio[8000:11200] = 0.5 * np.sin(2 * np.pi * 2000 * t)
        data = (audio * 32767).astype("<i2").tobytes()

        assert extractor.extract_multiple(data) == []


class TestCAMPPBackend:
    """Tests for the CAM++ backend (requires the model file)."""

    def test_extract(self, tone) -> None:
        """Test CAM++ embeddings through the extractor."""
        if not settings.speaker_model_path.exists():
            pytest.skip("CAM++ model not found")

        from voiceid.engine.voiceprint.campp import CAMPPEmbeddingBackend

        extractor = VoiceprintExtractor(backend=CAMPPEmbeddingBackend())
        result = extractor.extract(tone(120, 3.0))

        assert result.embedding.shape == (extractor.embedding_dim,)
        assert np.linalg.norm(result.embedding) == pytest.approx(1.0, abs=1e-4)
