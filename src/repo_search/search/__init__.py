"""Search helpers for indexed repositories."""

from .semantic import SearchResult, SemanticSearchEngine
from .similarity import ScoredEntry, cosine_similarity, find_top_k

__all__ = [
    "SearchResult",
    "SemanticSearchEngine",
    "ScoredEntry",
    "cosine_similarity",
    "find_top_k",
]
