"""Embedding arithmetic and similarity scoring."""

import numpy as np


def l2_normalize(embedding: np.ndarray) -> np.ndarray:
    """Scale an embedding to unit L2 norm. Zero vectors are returned unchanged."""
    embedding = np.asarray(embedding, dtype=np.float32)
    norm = np.linalg.norm(embedding)
    if norm == 0:
        return embedding
    return (embedding / norm).astype(np.float32)


def cosine_similarity(embedding1: np.ndarray, embedding2: np.ndarray) -> float:
    """Calculate cosine similarity between two embeddings.

    Args:
        embedding1: First embedding vector.
        embedding2: Second embedding vector.

    Returns:
        Cosine similarity score in range [-1, 1].

    Raises:
        ValueError: If the dimensions differ.
    """
    if len(embedding1) != len(embedding2):
        raise ValueError("Embedding dimensions do not match")

    norm1 = np.linalg.norm(embedding1)
    norm2 = np.linalg.norm(embedding2)

    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(embedding1, embedding2) / (norm1 * norm2))


def average_embeddings(embeddings: list[np.ndarray]) -> np.ndarray:
    """Mean of several embeddings, L2-normalized.

    Raises:
        ValueError: If embeddings list is empty.
    """
    if not embeddings:
        raise ValueError("Cannot average an empty embeddings list")

    if len(embeddings) == 1:
        return np.asarray(embeddings[0], dtype=np.float32)

    return l2_normalize(np.mean(np.stack(embeddings), axis=0))


def multi_embedding_similarity(
    queries: list[np.ndarray], references: list[np.ndarray]
) -> float:
    """Mean cosine similarity over the full queries x references cross product."""
    if not queries or not references:
        return 0.0

    scores = [cosine_similarity(q, r) for q in queries for r in references]
    return float(np.mean(scores))


def pairwise_consistency(embeddings: list[np.ndarray]) -> float:
    """Mean cosine similarity over all distinct pairs. 1.0 for fewer than two."""
    if len(embeddings) < 2:
        return 1.0

    scores = [
        cosine_similarity(embeddings[i], embeddings[j])
        for i in range(len(embeddings))
        for j in range(i + 1, len(embeddings))
    ]
    return float(np.mean(scores))
