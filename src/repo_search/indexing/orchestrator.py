"""
Indexing orchestration: scan, chunk, embed, persist, and search.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from .chunker import Chunk, CodeChunker
from ..config import IndexingConfig
from ..errors import NotIndexedError, ProviderError, ValidationError
from ..scanner import FileScanner, ScannedFile, exclude_matching
from ..search.semantic import SearchResult, SemanticSearchEngine
from ..storage import ChunkMetadata, EmbeddingEntry, IndexMetadata, IndexStore

log = logging.getLogger("repo_search.indexing")


class Embedder(Protocol):
    model: str

    async def embed(self, text: str, *, model: str | None = None) -> list[float]: ...

    async def embed_query(self, query: str, *, model: str | None = None) -> list[float]: ...


class Scanner(Protocol):
    def scan(self, root: str) -> list[ScannedFile]: ...

    def detect_language(self, path: str) -> str: ...


class IndexState(str, Enum):
    NOT_INDEXED = "not_indexed"
    INDEXING = "indexing"
    INDEXED = "indexed"


@dataclass(frozen=True)
class IndexingResult:
    """Summary output for an indexing run."""

    metadata: IndexMetadata
    indexed_files: int
    failed_files: int
    from_cache: bool = False


@dataclass(frozen=True)
class _ChunkOptions:
    max_chunk_size: int
    overlap: int
    respect_boundaries: bool = False


@dataclass
class _FileOutcome:
    relative_path: str
    entries: list[EmbeddingEntry] = field(default_factory=list)
    error: Exception | None = None


def _to_entry(chunk: Chunk, embedding: list[float]) -> EmbeddingEntry:
    return EmbeddingEntry(
        chunk_id=chunk.chunk_id,
        file_path=chunk.file_path,
        content=chunk.content,
        embedding=embedding,
        metadata=ChunkMetadata(
            start_line=chunk.start_line,
            end_line=chunk.end_line,
            language=chunk.language,
        ),
    )


def _repo_key(repo_path: str) -> str:
    return str(Path(repo_path).expanduser().resolve())


class IndexOrchestrator:
    """
    Build, refresh, and query the semantic index of a repository.

    Files are processed ``batch_size`` at a time; each batch is awaited in
    full before the next one starts, which caps the number of embedding
    requests in flight. A file that cannot be read, chunked, or embedded is
    logged and skipped without aborting the run.
    """

    def __init__(
        self,
        store: IndexStore,
        embedding_provider: Embedder,
        *,
        scanner: Scanner | None = None,
        chunker: CodeChunker | None = None,
        config: IndexingConfig | None = None,
    ) -> None:
        self.store = store
        self.embedding_provider = embedding_provider
        self.scanner = scanner or FileScanner()
        self.chunker = chunker or CodeChunker()
        self.config = config or IndexingConfig()
        if self.config.batch_size <= 0:
            raise ValueError("batch_size must be > 0")
        self._search_engine = SemanticSearchEngine(store, embedding_provider)
        self._in_flight: Counter[str] = Counter()

    async def index_repository(
        self,
        repo_path: str,
        *,
        force: bool = False,
        max_chunk_size: int | None = None,
        overlap: int | None = None,
        model: str | None = None,
        exclude_patterns: Iterable[str] = (),
        respect_boundaries: bool = False,
    ) -> IndexMetadata:
        result = await self.run_indexing(
            repo_path,
            force=force,
            max_chunk_size=max_chunk_size,
            overlap=overlap,
            model=model,
            exclude_patterns=exclude_patterns,
            respect_boundaries=respect_boundaries,
        )
        return result.metadata

    async def run_indexing(
        self,
        repo_path: str,
        *,
        force: bool = False,
        max_chunk_size: int | None = None,
        overlap: int | None = None,
        model: str | None = None,
        exclude_patterns: Iterable[str] = (),
        respect_boundaries: bool = False,
    ) -> IndexingResult:
        """Index a repository and report how many files were embedded or skipped."""
        options = self._chunk_options(max_chunk_size, overlap, respect_boundaries)
        effective_model = model or self.embedding_provider.model

        if not force:
            cached = await asyncio.to_thread(self.store.load, repo_path)
            if cached is not None:
                log.info("Using existing index for %s", repo_path)
                return IndexingResult(
                    metadata=cached.metadata,
                    indexed_files=0,
                    failed_files=0,
                    from_cache=True,
                )

        key = _repo_key(repo_path)
        self._in_flight[key] += 1
        try:
            log.info("Starting repository indexing for %s", key)
            files = await asyncio.to_thread(self.scanner.scan, key)
            files = exclude_matching(files, exclude_patterns)
            log.info("Found %d code files to index", len(files))

            outcomes = await self._process_in_batches(
                key,
                [(f.relative_path, f.language) for f in files],
                model=effective_model,
                options=options,
            )
            entries = [entry for outcome in outcomes for entry in outcome.entries]
            failed = sum(1 for outcome in outcomes if outcome.error is not None)
            log.info("Generated %d embeddings", len(entries))

            metadata = await asyncio.to_thread(
                self.store.save, key, entries, effective_model
            )
        finally:
            self._release(key)

        return IndexingResult(
            metadata=metadata,
            indexed_files=len(outcomes) - failed,
            failed_files=failed,
        )

    async def search(
        self,
        repo_path: str,
        query: str,
        *,
        top_k: int = 5,
        min_score: float = 0.5,
        include_context: bool = False,
    ) -> list[SearchResult]:
        return await self._search_engine.search(
            repo_path,
            query,
            top_k=top_k,
            min_score=min_score,
            include_context=include_context,
        )

    async def update_index(
        self,
        repo_path: str,
        changed_files: Sequence[str],
        *,
        purge_stale: bool = True,
    ) -> IndexMetadata:
        """
        Re-chunk and re-embed ``changed_files`` and merge them into the index.

        With ``purge_stale`` the previous chunks of every re-processed or
        deleted file are dropped first. Without it, entries are only upserted
        by chunk id, so chunks whose line range no longer exists remain in the
        index. Files that fail to re-process keep their previous chunks.
        """
        index = await asyncio.to_thread(self.store.load, repo_path)
        if index is None:
            raise NotIndexedError(
                f"Repository {repo_path} has not been indexed. Run indexing first."
            )

        key = _repo_key(repo_path)
        relative_paths = list(dict.fromkeys(self._relative(key, p) for p in changed_files))
        options = self._chunk_options(None, None, False)

        self._in_flight[key] += 1
        try:
            outcomes = await self._process_in_batches(
                key,
                [(p, self.scanner.detect_language(p)) for p in relative_paths],
                model=index.metadata.model,
                options=options,
            )

            replace_files: set[str] = set()
            for outcome in outcomes:
                if outcome.error is None:
                    replace_files.add(outcome.relative_path)
                elif isinstance(outcome.error, FileNotFoundError):
                    log.info("Removing deleted file %s from index", outcome.relative_path)
                    replace_files.add(outcome.relative_path)

            entries = [entry for outcome in outcomes for entry in outcome.entries]
            metadata = await asyncio.to_thread(
                self.store.update,
                key,
                entries,
                replace_files=replace_files if purge_stale else (),
            )
        finally:
            self._release(key)
        return metadata

    async def get_index_metadata(self, repo_path: str) -> IndexMetadata | None:
        return await asyncio.to_thread(self.store.get_metadata, repo_path)

    async def is_indexed(self, repo_path: str) -> bool:
        return await asyncio.to_thread(self.store.exists, repo_path)

    async def clear_index(self, repo_path: str) -> None:
        await asyncio.to_thread(self.store.clear, repo_path)

    async def state(self, repo_path: str) -> IndexState:
        """Report the index state; INDEXED requires the whole document to decode."""
        if self._in_flight[_repo_key(repo_path)] > 0:
            return IndexState.INDEXING
        if await self.is_indexed(repo_path):
            return IndexState.INDEXED
        return IndexState.NOT_INDEXED

    async def _process_in_batches(
        self,
        root: str,
        files: list[tuple[str, str]],
        *,
        model: str,
        options: _ChunkOptions,
    ) -> list[_FileOutcome]:
        outcomes: list[_FileOutcome] = []
        total = len(files)
        batch_size = self.config.batch_size
        for start in range(0, total, batch_size):
            batch = files[start : start + batch_size]
            batch_outcomes = await asyncio.gather(
                *(
                    self._process_file(root, relative_path, language, model=model, options=options)
                    for relative_path, language in batch
                )
            )
            outcomes.extend(batch_outcomes)
            done = start + len(batch)
            log.info("Progress: %d/%d files (%d%%)", done, total, round(done * 100 / total))
        return outcomes

    async def _process_file(
        self,
        root: str,
        relative_path: str,
        language: str,
        *,
        model: str,
        options: _ChunkOptions,
    ) -> _FileOutcome:
        try:
            content = await asyncio.to_thread(
                (Path(root) / relative_path).read_text, encoding="utf-8"
            )
            chunks = self.chunker.chunk(
                content,
                relative_path,
                language,
                max_chunk_size=options.max_chunk_size,
                overlap=options.overlap,
                respect_boundaries=options.respect_boundaries,
            )
            entries: list[EmbeddingEntry] = []
            for chunk in chunks:
                embedding = await self.embedding_provider.embed(chunk.content, model=model)
                entries.append(_to_entry(chunk, embedding))
        except FileNotFoundError as exc:
            log.warning("File %s no longer exists", relative_path)
            return _FileOutcome(relative_path=relative_path, error=exc)
        except (OSError, ValueError, ProviderError) as exc:
            log.error("Error processing file %s: %s", relative_path, exc)
            return _FileOutcome(relative_path=relative_path, error=exc)
        return _FileOutcome(relative_path=relative_path, entries=entries)

    def _chunk_options(
        self,
        max_chunk_size: int | None,
        overlap: int | None,
        respect_boundaries: bool,
    ) -> _ChunkOptions:
        size = self.config.max_chunk_size if max_chunk_size is None else max_chunk_size
        lap = self.config.overlap if overlap is None else overlap
        if size <= 0:
            raise ValidationError("max_chunk_size must be > 0")
        if lap < 0:
            raise ValidationError("overlap must be >= 0")
        return _ChunkOptions(
            max_chunk_size=size, overlap=lap, respect_boundaries=respect_boundaries
        )

    def _release(self, key: str) -> None:
        self._in_flight[key] -= 1
        if self._in_flight[key] <= 0:
            del self._in_flight[key]

    @staticmethod
    def _relative(root: str, path: str) -> str:
        # Relative paths are taken from the repository root.
        try:
            return (Path(root) / path).resolve().relative_to(root).as_posix()
        except ValueError as exc:
            raise ValidationError(f"{path} is outside repository {root}") from exc
