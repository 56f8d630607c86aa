"""Voiceprint extraction."""

from voiceid.engine.voiceprint.extractor import (
    ExtractionResult,
    SegmentEmbedding,
    VoiceprintExtractor,
    create_backend,
)
from voiceid.engine.voiceprint.projection import ProjectionEmbeddingBackend
from voiceid.engine.voiceprint.similarity import (
    average_embeddings,
    cosine_similarity,
    l2_normalize,
    multi_embedding_similarity,
    pairwise_consistency,
)

__all__ = [
    "VoiceprintExtractor",
    "ExtractionResult",
    "SegmentEmbedding",
    "ProjectionEmbeddingBackend",
    "create_backend",
    "cosine_similarity",
    "l2_normalize",
    "average_embeddings",
    "multi_embedding_similarity",
    "pairwise_consistency",
]
