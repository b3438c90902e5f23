"""
Vector-based semantic search over a stored repository index.

Embeds a query with the model the index was built with, ranks every stored
chunk by cosine similarity, then drops results below the score threshold.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from .similarity import find_top_k
from ..errors import NotIndexedError
from ..storage import EmbeddingEntry, IndexStore

log = logging.getLogger("repo_search.search")


class QueryEmbedder(Protocol):
    async def embed_query(self, query: str, *, model: str | None = None) -> list[float]: ...


@dataclass(frozen=True)
class SearchResult:
    """A ranked chunk returned for a query."""

    file_path: str
    start_line: int
    end_line: int
    content: str
    score: float
    language: str
    context: str | None = None


def describe_location(entry: EmbeddingEntry) -> str:
    return f"{entry.file_path}:{entry.metadata.start_line}-{entry.metadata.end_line}"


class SemanticSearchEngine:
    """Embed a query and search stored chunk embeddings."""

    def __init__(self, store: IndexStore, embedding_provider: QueryEmbedder) -> None:
        self.store = store
        self.embedding_provider = embedding_provider

    async def search(
        self,
        repo_path: str,
        query: str,
        *,
        top_k: int = 5,
        min_score: float = 0.5,
        include_context: bool = False,
    ) -> list[SearchResult]:
        """
        Return up to ``top_k`` chunks scoring at least ``min_score``.

        The threshold is applied after ranking, so fewer than ``top_k``
        results may come back.
        """
        index = await asyncio.to_thread(self.store.load, repo_path)
        if index is None:
            raise NotIndexedError(
                f"Repository {repo_path} has not been indexed. Run indexing first."
            )

        log.debug("Searching %d chunks in %s", len(index.chunks), repo_path)
        query_embedding = await self.embedding_provider.embed_query(
            query, model=index.metadata.model
        )

        ranked = find_top_k(query_embedding, index.chunks, top_k)
        return [
            SearchResult(
                file_path=hit.entry.file_path,
                start_line=hit.entry.metadata.start_line,
                end_line=hit.entry.metadata.end_line,
                content=hit.entry.content,
                score=hit.score,
                language=hit.entry.metadata.language,
                context=describe_location(hit.entry) if include_context else None,
            )
            for hit in ranked
            if hit.score >= min_score
        ]
