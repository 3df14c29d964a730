"""Sparse term-vector math.

Vectors are plain ``{term: weight}`` dicts.  A missing term has weight 0.
"""

from __future__ import annotations

import math
from typing import Dict, List, Mapping, Optional, Sequence

Vector = Mapping[str, float]


def magnitude(vector: Vector) -> float:
    """Return the L2 norm of a vector."""
    return math.sqrt(sum(v * v for v in vector.values()))


def dot_product(vec_a: Vector, vec_b: Vector) -> float:
    if len(vec_b) < len(vec_a):
        vec_a, vec_b = vec_b, vec_a
    return sum(weight * vec_b[term] for term, weight in vec_a.items() if term in vec_b)


def cosine_distance(vec_a: Optional[Vector], vec_b: Optional[Vector]) -> float:
    """Cosine distance ``1 - cos(a, b)``.

    An empty vector or a zero magnitude on either side yields ``1.0``
    (nothing in common), so callers never divide by zero.
    """
    if not vec_a or not vec_b:
        return 1.0
    squared_a = sum(v * v for v in vec_a.values())
    squared_b = sum(v * v for v in vec_b.values())
    if squared_a == 0 or squared_b == 0:
        return 1.0
    # sqrt(a*b) rather than sqrt(a)*sqrt(b) keeps cos(v, v) exactly 1.0
    return 1.0 - dot_product(vec_a, vec_b) / math.sqrt(squared_a * squared_b)


def cosine_similarity(vec_a: Optional[Vector], vec_b: Optional[Vector]) -> float:
    """Cosine similarity clamped to ``[0, 1]``."""
    similarity = 1.0 - cosine_distance(vec_a, vec_b)
    return min(1.0, max(0.0, similarity))


def euclidean_distance(vec_a: Vector, vec_b: Vector) -> float:
    terms = set(vec_a) | set(vec_b)
    return math.sqrt(sum((vec_a.get(t, 0.0) - vec_b.get(t, 0.0)) ** 2 for t in terms))


def manhattan_distance(vec_a: Vector, vec_b: Vector) -> float:
    terms = set(vec_a) | set(vec_b)
    return sum(abs(vec_a.get(t, 0.0) - vec_b.get(t, 0.0)) for t in terms)


def normalize_vector(vector: Vector) -> Dict[str, float]:
    """L2-normalise *vector*.  Returns a zero vector unchanged (as a copy)."""
    norm = magnitude(vector)
    if norm == 0:
        return dict(vector)
    return {term: weight / norm for term, weight in vector.items()}


def merge_vectors(
    vectors: Sequence[Vector],
    weights: Optional[Sequence[float]] = None,
) -> Dict[str, float]:
    """Weighted sum of *vectors*; equal weights when none are given."""
    if not vectors:
        return {}
    if weights is None:
        weights = [1.0 / len(vectors)] * len(vectors)
    if len(weights) != len(vectors):
        raise ValueError("weights length must match vectors length")

    merged: Dict[str, float] = {}
    for vector, weight in zip(vectors, weights):
        for term, value in vector.items():
            merged[term] = merged.get(term, 0.0) + value * weight
    return merged


__all__: List[str] = [
    "cosine_distance",
    "cosine_similarity",
    "dot_product",
    "euclidean_distance",
    "magnitude",
    "manhattan_distance",
    "merge_vectors",
    "normalize_vector",
]
