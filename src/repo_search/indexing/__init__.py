"""Indexing components for repo_search."""

from .chunker import Chunk, CodeChunker
from .orchestrator import IndexingResult, IndexOrchestrator, IndexState

__all__ = [
    "Chunk",
    "CodeChunker",
    "IndexingResult",
    "IndexOrchestrator",
    "IndexState",
]
