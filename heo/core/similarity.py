"""Cosine similarity and novelty scoring over embedding vectors.

novelty = 1 - max(cosine(h, c) for c in context)

With no context vectors there is nothing to compare against, so every
hypothesis scores 1.0. Degenerate pairs (zero norm, empty or mismatched
length) have similarity 0 rather than raising.
"""

from typing import Sequence

import numpy as np

from heo.core.logging import get_logger

logger = get_logger(__name__)

MAX_NOVELTY_NO_CONTEXT = 1.0

Vector = Sequence[float]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    Cosine similarity of two vectors.

    Returns:
        dot(a, b) / (|a| * |b|), or 0.0 when either norm is zero or the
        lengths differ
    """
    if len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    denominator = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(va, vb) / denominator)


def max_similarity(vector: Vector, context_vectors: Sequence[Vector]) -> float:
    """Highest cosine similarity between `vector` and any context vector."""
    return max(cosine_similarity(vector, c) for c in context_vectors)


def score_novelty(
    hypothesis_vectors: Sequence[Vector],
    context_vectors: Sequence[Vector],
) -> list[float]:
    """
    Novelty score for each hypothesis vector.

    Args:
        hypothesis_vectors: One embedding per hypothesis
        context_vectors: Embeddings of the known context (may be empty)

    Returns:
        Scores in hypothesis order; 1.0 for all when context is empty
    """
    if not context_vectors:
        logger.warning("No context embeddings available; all hypotheses scored as novel")
        return [MAX_NOVELTY_NO_CONTEXT for _ in hypothesis_vectors]

    scores = [1.0 - max_similarity(h, context_vectors) for h in hypothesis_vectors]
    logger.info(
        f"Scored novelty for {len(scores)} hypotheses",
        extra={"context_count": len(context_vectors), "scores": [round(s, 4) for s in scores]},
    )
    return scores
