"""Embedding backend Protocol."""

from typing import Protocol

import numpy as np


class EmbeddingBackendProtocol(Protocol):
    """Protocol for speaker embedding backends."""

    @property
    def embedding_dim(self) -> int:
        """Get the dimension of voiceprint embeddings."""
        ...

    def load(self) -> None:
        """Load weights or model files."""
        ...

    def embed(self, segment: np.ndarray, sample_rate: int) -> np.ndarray:
        """Extract an embedding from a voiced segment.

        Args:
            segment: Preprocessed float samples of one voiced segment.
            sample_rate: Sample rate of the segment.

        Returns:
            Embedding as float32 numpy array (not necessarily normalized).
        """
        ...
