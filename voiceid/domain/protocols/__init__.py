"""Domain protocols."""

from voiceid.domain.protocols.embedding import EmbeddingBackendProtocol
from voiceid.domain.protocols.repository import SpeakerRepositoryProtocol
from voiceid.domain.protocols.transcriber import (
    SpeakerTurn,
    TranscriberProtocol,
    TranscriptionRequest,
    TranscriptionResult,
)

__all__ = [
    "EmbeddingBackendProtocol",
    "SpeakerRepositoryProtocol",
    "TranscriberProtocol",
    "TranscriptionRequest",
    "TranscriptionResult",
    "SpeakerTurn",
]
