"""Vector helpers for embeddings."""

from typing import Sequence

import numpy as np

Vector = np.ndarray


def as_vector(values: Sequence[float] | np.ndarray) -> Vector:
    """Coerce an embedding to a 1-D float64 array. Rejects empty vectors."""
    vec = np.asarray(values, dtype=np.float64).reshape(-1)
    if vec.size == 0:
        raise ValueError("Embedding cannot be empty")
    return vec


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity in [-1, 1]. Returns 0.0 when either vector has zero norm."""
    va = as_vector(a)
    vb = as_vector(b)
    if va.shape != vb.shape:
        raise ValueError(f"Embeddings must have same dimension: {va.size} vs {vb.size}")
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom == 0.0:
        return 0.0
    sim = float(np.dot(va, vb) / denom)
    # float error can push |sim| a hair past 1
    return max(-1.0, min(1.0, sim))


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))
