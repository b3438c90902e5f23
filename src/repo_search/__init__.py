"""
repo_search - local semantic code search.

Splits source files into line-bounded chunks, embeds them with Google GenAI,
stores the vectors in a per-repository index, and answers queries with exact
cosine-similarity ranking.

Example usage:
    >>> from repo_search import EmbeddingProvider, IndexOrchestrator, JsonIndexStore
    >>> orchestrator = IndexOrchestrator(JsonIndexStore("/tmp/indexes"), EmbeddingProvider())
    >>> await orchestrator.index_repository("path/to/repo")
    >>> results = await orchestrator.search("path/to/repo", "where is the retry logic?")
"""

from .embeddings import EmbeddingProvider, RetryPolicy
from .errors import (
    CacheCorruptError,
    CacheError,
    CacheMissingError,
    CacheVersionError,
    DimensionMismatchError,
    NotIndexedError,
    ProviderError,
    RepoSearchError,
    ValidationError,
)
from .indexing import Chunk, CodeChunker, IndexingResult, IndexOrchestrator, IndexState
from .search import SearchResult, cosine_similarity, find_top_k
from .storage import EmbeddingEntry, EmbeddingIndex, IndexMetadata, JsonIndexStore

__all__ = [
    # Core
    "IndexOrchestrator",
    "IndexingResult",
    "IndexState",
    "EmbeddingProvider",
    "RetryPolicy",
    # Chunking and ranking
    "Chunk",
    "CodeChunker",
    "SearchResult",
    "cosine_similarity",
    "find_top_k",
    # Storage
    "JsonIndexStore",
    "EmbeddingEntry",
    "EmbeddingIndex",
    "IndexMetadata",
    # Errors
    "RepoSearchError",
    "ValidationError",
    "DimensionMismatchError",
    "NotIndexedError",
    "ProviderError",
    "CacheError",
    "CacheMissingError",
    "CacheCorruptError",
    "CacheVersionError",
]
