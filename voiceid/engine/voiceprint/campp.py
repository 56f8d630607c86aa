"""CAM++ embedding backend using sherpa-onnx."""

import logging
import threading

import numpy as np
import sherpa_onnx

from voiceid.engine.exceptions import ModelNotLoadedError, SpeakerEmbeddingError
from voiceid.engine.settings import settings

logger = logging.getLogger(__name__)


class CAMPPEmbeddingBackend:
    """Pretrained CAM++ speaker model loaded through the ONNX runtime."""

    def __init__(self, model_path: str | None = None) -> None:
        """Initialize the backend.

        Args:
            model_path: Path to CAM++ model. Defaults to settings path.
        """
        self._extractor: sherpa_onnx.SpeakerEmbeddingExtractor | None = None
        self._model_path = model_path or str(settings.speaker_model_path)
        self._lock = threading.Lock()

    def _ensure_loaded(self) -> sherpa_onnx.SpeakerEmbeddingExtractor:
        if self._extractor is None:
            self.load()
        if self._extractor is None:
            raise ModelNotLoadedError("Voiceprint model not loaded")
        return self._extractor

    def load(self) -> None:
        """Load the voiceprint model."""
        with self._lock:
            if self._extractor is not None:
                return
            logger.info(f"Loading speaker model: {self._model_path}")
            try:
                config = sherpa_onnx.SpeakerEmbeddingExtractorConfig(
                    model=self._model_path,
                    num_threads=settings.speaker_num_threads,
                    debug=False,
                )
                self._extractor = sherpa_onnx.SpeakerEmbeddingExtractor(config)
            except Exception as e:
                raise SpeakerEmbeddingError(
                    f"Failed to load voiceprint model: {e}"
                ) from e
            logger.info("Speaker model loaded successfully")

    @property
    def embedding_dim(self) -> int:
        """Get the dimension of voiceprint embeddings."""
        return self._ensure_loaded().dim

    def embed(self, segment: np.ndarray, sample_rate: int) -> np.ndarray:
        """Extract an embedding from a voiced segment.

        Raises:
            SpeakerEmbeddingError: If extraction fails.
        """
        extractor = self._ensure_loaded()

        try:
            stream = extractor.create_stream()
            stream.accept_waveform(sample_rate, segment.astype(np.float32))
            stream.input_finished()

            if not extractor.is_ready(stream):
                raise SpeakerEmbeddingError(
                    "Voiceprint extraction not ready - audio may be too short"
                )

            return np.array(extractor.compute(stream), dtype=np.float32)

        except SpeakerEmbeddingError:
            raise
        except Exception as e:
            raise SpeakerEmbeddingError(f"Voiceprint extraction failed: {e}") from e
