"""Pytest fixtures for voiceid tests."""

import base64
import io
from collections.abc import Callable
from pathlib import Path

import numpy as np
import pytest
import soundfile as sf

from voiceid.database import FileSpeakerRepository
from voiceid.domain_service import SpeakerIndex, SpeakerRecognitionService
from voiceid.engine.voiceprint import ProjectionEmbeddingBackend, VoiceprintExtractor

ToneFactory = Callable[..., bytes]


def synth_tone(
    frequency: float,
    seconds: float,
    seed: int = 0,
    sample_rate: int = 16000,
    harmonics: bool = True,
    noise: float = 0.001,
) -> np.ndarray:
    """Voice-like test tone: fundamental plus two harmonics and a little noise."""
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    signal = np.sin(2 * np.pi * frequency * t)
    if harmonics:
        signal += 0.3 * np.sin(2 * np.pi * 2 * frequency * t)
        signal += 0.2 * np.sin(2 * np.pi * 3 * frequency * t)
        signal /= 1.5
    signal *= 0.7

    rng = np.random.default_rng(seed)
    signal += rng.normal(0, noise, len(signal))
    return np.clip(signal, -1, 1).astype(np.float32)


def to_pcm16(audio: np.ndarray) -> bytes:
    return (audio * 32767).astype("<i2").tobytes()


def to_wav(audio: np.ndarray, sample_rate: int = 16000) -> bytes:
    buffer = io.BytesIO()
    sf.write(buffer, audio, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


@pytest.fixture
def sample_rate() -> int:
    """Standard sample rate."""
    return 16000


@pytest.fixture
def tone() -> ToneFactory:
    """Factory for 16-bit PCM test tones."""

    def make(frequency: float, seconds: float, seed: int = 0, **kwargs) -> bytes:
        return to_pcm16(synth_tone(frequency, seconds, seed, **kwargs))

    return make


@pytest.fixture
def silence_pcm(sample_rate: int) -> bytes:
    """2 seconds of digital silence."""
    return bytes(sample_rate * 2 * 2)


@pytest.fixture
def b64() -> Callable[[bytes], str]:
    """Base64 encoder for request payloads."""
    return lambda data: base64.b64encode(data).decode("ascii")


@pytest.fixture(scope="session")
def projection_backend() -> ProjectionEmbeddingBackend:
    """Shared projection backend so weights are generated once."""
    backend = ProjectionEmbeddingBackend()
    backend.load()
    return backend


@pytest.fixture
def extractor(projection_backend: ProjectionEmbeddingBackend) -> VoiceprintExtractor:
    """Voiceprint extractor using the projection backend."""
    return VoiceprintExtractor(backend=projection_backend)


@pytest.fixture
def repository(tmp_path: Path) -> FileSpeakerRepository:
    """File repository in a temporary directory."""
    return FileSpeakerRepository(tmp_path / "speakers")


@pytest.fixture
def service(
    repository: FileSpeakerRepository,
    extractor: VoiceprintExtractor,
) -> SpeakerRecognitionService:
    """Initialized recognition service with an empty store."""
    recognition_service = SpeakerRecognitionService(
        repository=repository,
        extractor=extractor,
        index=SpeakerIndex(),
    )
    recognition_service.initialize()
    return recognition_service


@pytest.fixture
def wav_tone() -> ToneFactory:
    """Factory for WAV-encoded test tones."""

    def make(frequency: float, seconds: float, seed: int = 0, sample_rate: int = 16000) -> bytes:
        return to_wav(synth_tone(frequency, seconds, seed, sample_rate=sample_rate), sample_rate)

    return make
