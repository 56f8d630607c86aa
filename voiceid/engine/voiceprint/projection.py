"""Deterministic projection embedding backend.

A fixed, untrained stand-in for an x-vector style network: frame-level
projection of a stacked mel context window, statistics pooling, then a second
projection to the embedding size. Weights come from a sine-based seeded
generator so every process produces identical embeddings.
"""

import threading

import numpy as np

from voiceid.engine.audio.spectral import mel_spectrogram
from voiceid.engine.exceptions import MelSpectrogramError
from voiceid.engine.settings import settings

SEED_STRIDE_HIDDEN = 10000
SEED_STRIDE_OUTPUT = 100000
SEED_OFFSET_OUTPUT = 50000


def seeded_weights(rows: int, cols: int, stride: int, offset: int = 0) -> np.ndarray:
    """Weight matrix w[i, j] = 2 * frac(sin(i * stride + j + offset) * 10000) - 1."""
    seeds = (
        np.arange(rows, dtype=np.float64)[:, np.newaxis] * stride
        + np.arange(cols, dtype=np.float64)[np.newaxis, :]
        + offset
    )
    x = np.sin(seeds) * 10000
    return (x - np.floor(x)) * 2 - 1


def context_windows(frames: np.ndarray, window: int) -> np.ndarray:
    """Stack each frame with its neighbours, clamping at the edges.

    Args:
        frames: Array of shape (num_frames, n_mels).
        window: Total frames per context (centered).

    Returns:
        Array of shape (num_frames, n_mels * window).
    """
    half = window // 2
    offsets = np.arange(-half, half + 1)
    indices = np.clip(np.arange(len(frames))[:, np.newaxis] + offsets, 0, len(frames) - 1)
    return frames[indices].reshape(len(frames), -1)


class ProjectionEmbeddingBackend:
    """Placeholder speaker embedding network."""

    def __init__(
        self,
        embedding_dim: int | None = None,
        hidden_dim: int | None = None,
        context_frames: int | None = None,
        n_mels: int | None = None,
    ) -> None:
        self._embedding_dim = embedding_dim or settings.embedding_dim
        self._hidden_dim = hidden_dim or settings.hidden_dim
        self._context_frames = context_frames or settings.context_frames
        self._n_mels = n_mels or settings.n_mels

        self._hidden_weights: np.ndarray | None = None
        self._output_weights: np.ndarray | None = None
        self._lock = threading.Lock()

    @property
    def embedding_dim(self) -> int:
        """Get the dimension of voiceprint embeddings."""
        return self._embedding_dim

    def load(self) -> None:
        """Generate and cache the weight matrices."""
        with self._lock:
            if self._hidden_weights is not None:
                return
            context_len = self._n_mels * (2 * (self._context_frames // 2) + 1)
            self._output_weights = seeded_weights(
                self._embedding_dim,
                2 * self._hidden_dim,
                SEED_STRIDE_OUTPUT,
                SEED_OFFSET_OUTPUT,
            )
            self._hidden_weights = seeded_weights(
                self._hidden_dim, context_len, SEED_STRIDE_HIDDEN
            )

    def _ensure_loaded(self) -> tuple[np.ndarray, np.ndarray]:
        if self._hidden_weights is None:
            self.load()
        assert self._hidden_weights is not None and self._output_weights is not None
        return self._hidden_weights, self._output_weights

    def forward(self, mel: np.ndarray) -> np.ndarray:
        """Map a log mel spectrogram (num_frames, n_mels) to an embedding."""
        hidden_weights, output_weights = self._ensure_loaded()

        context = context_windows(mel, self._context_frames)
        hidden = np.tanh(context @ hidden_weights.T / np.sqrt(context.shape[1]))

        pooled = np.concatenate([hidden.mean(axis=0), hidden.std(axis=0)])
        embedding = np.tanh(output_weights @ pooled / np.sqrt(len(pooled)))

        norm = np.linalg.norm(embedding)
        if norm > 0:
            embedding = embedding / norm
        return embedding.astype(np.float32)

    def embed(self, segment: np.ndarray, sample_rate: int) -> np.ndarray:
        """Extract an embedding from a voiced segment.

        Raises:
            MelSpectrogramError: If the segment is shorter than one frame.
        """
        mel = mel_spectrogram(segment, sample_rate=sample_rate, n_mels=self._n_mels)
        if mel.shape[0] == 0:
            raise MelSpectrogramError("Failed to compute mel spectrogram")
        return self.forward(mel)
