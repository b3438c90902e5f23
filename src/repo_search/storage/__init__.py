"""Storage backends for repo_search indexes."""

from .base import (
    INDEX_SCHEMA_VERSION,
    ChunkMetadata,
    EmbeddingEntry,
    EmbeddingIndex,
    IndexMetadata,
    IndexStore,
    LoadResult,
)
from .json_store import JsonIndexStore

__all__ = [
    "INDEX_SCHEMA_VERSION",
    "ChunkMetadata",
    "EmbeddingEntry",
    "EmbeddingIndex",
    "IndexMetadata",
    "IndexStore",
    "LoadResult",
    "JsonIndexStore",
]
