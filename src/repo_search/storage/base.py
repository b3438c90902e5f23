"""
Storage interfaces and data models for index persistence.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..errors import CacheError

INDEX_SCHEMA_VERSION = "1.0"


class _StoredModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChunkMetadata(_StoredModel):
    """Line range and language of an embedded chunk."""

    start_line: int = Field(ge=1)
    end_line: int = Field(ge=1)
    language: str

    @model_validator(mode="after")
    def _check_range(self) -> ChunkMetadata:
        if self.start_line > self.end_line:
            raise ValueError("start_line must be <= end_line")
        return self


class EmbeddingEntry(_StoredModel):
    """A chunk together with its embedding vector."""

    chunk_id: str
    file_path: str
    content: str
    embedding: list[float]
    metadata: ChunkMetadata


class IndexMetadata(_StoredModel):
    """Header of a persisted index."""

    repo_path: str
    indexed_at: datetime
    total_chunks: int = Field(ge=0)
    model: str
    version: str


class EmbeddingIndex(_StoredModel):
    """The unit of persistence: metadata followed by every embedded chunk."""

    metadata: IndexMetadata
    chunks: list[EmbeddingEntry]

    @model_validator(mode="after")
    def _check_total(self) -> EmbeddingIndex:
        if self.metadata.total_chunks != len(self.chunks):
            raise ValueError(
                f"totalChunks is {self.metadata.total_chunks} "
                f"but {len(self.chunks)} chunks are stored"
            )
        return self


@dataclass(frozen=True)
class LoadResult:
    """Outcome of decoding a stored index: either an index or the reason it is unusable."""

    index: EmbeddingIndex | None = None
    error: CacheError | None = None

    @property
    def ok(self) -> bool:
        return self.index is not None


class IndexStore(Protocol):
    """Protocol for persistence operations used by indexing and search."""

    def index_path(self, repo_path: str) -> Path:
        """Return the location of the index document for a repository."""

    def save(
        self, repo_path: str, entries: list[EmbeddingEntry], model: str
    ) -> IndexMetadata:
        """Overwrite the index for a repository and return its fresh metadata."""

    def try_load(self, repo_path: str) -> LoadResult:
        """Decode the stored index, reporting why it is unusable if so."""

    def load(self, repo_path: str) -> EmbeddingIndex | None:
        """Return the stored index, or None when absent, corrupt, or outdated."""

    def update(
        self,
        repo_path: str,
        updates: list[EmbeddingEntry],
        *,
        replace_files: Iterable[str] = (),
    ) -> IndexMetadata:
        """Upsert entries by chunk id into an existing index."""

    def get_metadata(self, repo_path: str) -> IndexMetadata | None:
        """Return only the index metadata, without decoding embeddings."""

    def exists(self, repo_path: str) -> bool:
        """Return True if a usable index is stored."""

    def clear(self, repo_path: str) -> None:
        """Delete the stored index; no error when already absent."""

    def index_size(self, repo_path: str) -> int:
        """Return the stored index size in bytes, 0 when absent."""
