"""
Exact cosine similarity ranking.

Scoring is exhaustive: every entry is compared against the query. This is
sized for a single local repository; a larger corpus would put an
approximate index behind the same ``find_top_k`` signature.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, Protocol, TypeVar

import numpy as np

from ..errors import DimensionMismatchError, ValidationError


class HasEmbedding(Protocol):
    embedding: list[float]


EntryT = TypeVar("EntryT", bound=HasEmbedding)


@dataclass(frozen=True)
class ScoredEntry(Generic[EntryT]):
    """An entry paired with its similarity to a query."""

    entry: EntryT
    score: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return dot(a, b) / (|a| * |b|), or 0.0 when either vector is all zeros."""
    if len(a) != len(b):
        raise DimensionMismatchError(
            f"Vectors must have the same length (got {len(a)} and {len(b)})"
        )
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    denominator = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if denominator == 0.0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / denominator)


def find_top_k(
    query: Sequence[float],
    entries: Sequence[EntryT],
    k: int = 5,
) -> list[ScoredEntry[EntryT]]:
    """
    Rank ``entries`` by cosine similarity to ``query``.

    Returns at most ``min(k, len(entries))`` results ordered by descending
    score; equal scores keep their input order.
    """
    if k <= 0:
        raise ValidationError("k must be a positive number")
    if not entries:
        return []

    dim = len(query)
    for entry in entries:
        if len(entry.embedding) != dim:
            raise DimensionMismatchError(
                f"Entry embedding has length {len(entry.embedding)}, query has {dim}"
            )

    matrix = np.asarray([entry.embedding for entry in entries], dtype=np.float64)
    query_vec = np.asarray(query, dtype=np.float64)

    denominators = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vec)
    dots = matrix @ query_vec
    scores = np.divide(
        dots,
        denominators,
        out=np.zeros_like(dots),
        where=denominators != 0.0,
    )

    order = np.argsort(-scores, kind="stable")[: min(k, len(entries))]
    return [ScoredEntry(entry=entries[i], score=float(scores[i])) for i in order]
