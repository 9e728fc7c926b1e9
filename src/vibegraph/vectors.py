"""Vector math and embedding validation.

Similarity search is an exact linear scan; these helpers are the only
place vectors are compared.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Sequence

import numpy as np

from .constants import DEFAULT_EMBEDDING_DIMENSIONS

logger = logging.getLogger(__name__)

_FLOAT32_MAX = float(np.finfo(np.float32).max)


class EmbeddingValidationError(ValueError):
    """Embedding has a non-whitelisted length or non-finite values.

    ``reason`` is "dimension" or "non_finite".
    """

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


def validate_embedding(
    embedding: Sequence[float] | None,
    valid_dimensions: Collection[int] = DEFAULT_EMBEDDING_DIMENSIONS,
) -> None:
    """Raise EmbeddingValidationError unless the embedding is acceptable.

    A missing embedding (None) is valid: not every vibe has one.
    """
    if embedding is None:
        return

    if len(embedding) not in valid_dimensions:
        expected = ", ".join(str(d) for d in sorted(valid_dimensions))
        raise EmbeddingValidationError(
            f"Invalid embedding dimension: {len(embedding)}. Expected one of: {expected}",
            reason="dimension",
        )

    try:
        values = np.asarray(embedding, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise EmbeddingValidationError(
            f"Embedding contains non-numeric values: {e}", reason="non_finite"
        ) from e

    if not np.all(np.isfinite(values)):
        raise EmbeddingValidationError(
            "Embedding contains invalid values (NaN or Infinity)", reason="non_finite"
        )

    # Stored as float32; anything larger would come back as Infinity
    if np.any(np.abs(values) > _FLOAT32_MAX):
        raise EmbeddingValidationError(
            "Embedding values exceed the float32 range", reason="non_finite"
        )


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Cosine similarity in [-1, 1].

    Returns 0.0 for missing vectors, mismatched lengths or a zero-norm vector.
    """
    if a is None or b is None:
        return 0.0
    if len(a) != len(b):
        logger.warning(f"Dimension mismatch: {len(a)} vs {len(b)}")
        return 0.0
    if len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(va, vb) / (norm_a * norm_b))
    if not np.isfinite(similarity):
        return 0.0
    # Float rounding can overshoot slightly
    return max(-1.0, min(1.0, similarity))
