"""
Vector math for the matching core.

Thin numpy helpers shared by the aggregator and the scorer.  All vectors
are handled as float64 so repeated computations over the same inputs give
bit-identical results.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from photomatch.exceptions import VectorDimensionError


def as_array(vector: Sequence[float]) -> np.ndarray:
    return np.asarray(vector, dtype=np.float64)


def check_same_length(a: Sequence[float], b: Sequence[float], context: str = "") -> None:
    if len(a) != len(b):
        raise VectorDimensionError(len(a), len(b), context)


def l2_normalize(vector: Sequence[float]) -> np.ndarray:
    """Scale ``vector`` to unit length.  A zero vector is returned unchanged."""
    arr = as_array(vector)
    norm = np.linalg.norm(arr)
    if norm == 0.0:
        return arr
    return arr / norm


def cosine_similarity(a: Sequence[float], b: Sequence[float], context: str = "") -> float:
    """Cosine similarity in [-1, 1].

    A zero-norm vector on either side yields 0.0.  Vectors of different
    lengths raise ``VectorDimensionError``.
    """
    check_same_length(a, b, context)
    va = as_array(a)
    vb = as_array(b)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    sim = float(np.dot(va, vb) / (norm_a * norm_b))
    # float rounding can push identical vectors a hair past 1.0
    return max(-1.0, min(1.0, sim))


def weighted_sum(vectors: Iterable[Sequence[float]], weights: Iterable[float]) -> tuple[np.ndarray, float]:
    """Return ``(sum(w_i * v_i), sum(w_i))`` accumulated in iteration order."""
    total: np.ndarray | None = None
    weight_total = 0.0
    for vector, weight in zip(vectors, weights):
        arr = as_array(vector)
        if total is None:
            total = np.zeros_like(arr)
        elif arr.shape != total.shape:
            raise VectorDimensionError(total.shape[0], arr.shape[0], "weighted sum")
        total = total + weight * arr
        weight_total += weight
    if total is None:
        return np.zeros(0, dtype=np.float64), 0.0
    return total, weight_total
