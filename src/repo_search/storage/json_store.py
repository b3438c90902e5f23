"""
JSON file storage backend for index persistence.

Each repository gets one document under the index directory. Documents are
written whole through a temporary file and an atomic rename; there is no
locking, so concurrent writers for the same repository race and the last
rename wins.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import tempfile
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError as SchemaValidationError

from .base import (
    INDEX_SCHEMA_VERSION,
    EmbeddingEntry,
    EmbeddingIndex,
    IndexMetadata,
    LoadResult,
)
from ..errors import (
    CacheCorruptError,
    CacheMissingError,
    CacheVersionError,
    NotIndexedError,
    ValidationError,
)

log = logging.getLogger("repo_search.storage")

_METADATA_PREFIX = re.compile(r'\s*\{\s*"metadata"\s*:\s*')
_HEAD_CHARS = 64 * 1024


def _stable_id(value: str) -> str:
    return hashlib.sha1(value.encode("utf-8")).hexdigest()


def _normalize_repo_path(repo_path: str) -> str:
    return str(Path(repo_path).expanduser().resolve())


def _check_dimensions(entries: Iterable[EmbeddingEntry], expected: int | None) -> None:
    for entry in entries:
        if expected is None:
            expected = len(entry.embedding)
        elif len(entry.embedding) != expected:
            raise ValidationError(
                f"Embedding for {entry.chunk_id} has length {len(entry.embedding)}, "
                f"index uses {expected}"
            )


class JsonIndexStore:
    """File-backed store holding one JSON index document per repository."""

    def __init__(self, index_dir: str) -> None:
        self.index_dir = Path(index_dir).expanduser().resolve()
        self.index_dir.mkdir(parents=True, exist_ok=True)

    def index_path(self, repo_path: str) -> Path:
        return self.index_dir / f"{_stable_id(_normalize_repo_path(repo_path))}.json"

    def save(
        self,
        repo_path: str,
        entries: list[EmbeddingEntry],
        model: str,
    ) -> IndexMetadata:
        _check_dimensions(entries, None)
        metadata = IndexMetadata(
            repo_path=_normalize_repo_path(repo_path),
            indexed_at=datetime.now(timezone.utc),
            total_chunks=len(entries),
            model=model,
            version=INDEX_SCHEMA_VERSION,
        )
        self._write(repo_path, EmbeddingIndex(metadata=metadata, chunks=list(entries)))
        log.info("Saved %d chunks for %s", len(entries), metadata.repo_path)
        return metadata

    def try_load(self, repo_path: str) -> LoadResult:
        path = self.index_path(repo_path)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return LoadResult(error=CacheMissingError(f"No index at {path}"))
        except OSError as exc:
            return LoadResult(error=CacheCorruptError(f"Cannot read {path}: {exc}"))

        try:
            index = EmbeddingIndex.model_validate_json(raw, strict=True)
        except SchemaValidationError as exc:
            return LoadResult(
                error=CacheCorruptError(
                    f"Invalid index structure in {path}: {exc.error_count()} error(s)"
                )
            )

        if index.metadata.version != INDEX_SCHEMA_VERSION:
            return LoadResult(
                error=CacheVersionError(
                    f"Index version mismatch. Expected {INDEX_SCHEMA_VERSION}, "
                    f"got {index.metadata.version}"
                )
            )
        return LoadResult(index=index)

    def load(self, repo_path: str) -> EmbeddingIndex | None:
        result = self.try_load(repo_path)
        if result.error is not None:
            self._log_unusable(result.error)
        return result.index

    def update(
        self,
        repo_path: str,
        updates: list[EmbeddingEntry],
        *,
        replace_files: Iterable[str] = (),
    ) -> IndexMetadata:
        """
        Merge ``updates`` into the stored index by chunk id.

        Existing ids are replaced in place, new ids are appended. Entries whose
        chunk id disappeared after a file was re-chunked are kept unless that
        file is listed in ``replace_files``, in which case all of its previous
        entries are dropped before merging.
        """
        index = self.load(repo_path)
        if index is None:
            raise NotIndexedError("Cannot update an index that does not exist")

        dropped = set(replace_files)
        merged: dict[str, EmbeddingEntry] = {
            entry.chunk_id: entry
            for entry in index.chunks
            if entry.file_path not in dropped
        }
        expected = len(index.chunks[0].embedding) if index.chunks else None
        _check_dimensions(updates, expected)

        for entry in updates:
            merged[entry.chunk_id] = entry

        chunks = list(merged.values())
        metadata = index.metadata.model_copy(
            update={
                "indexed_at": datetime.now(timezone.utc),
                "total_chunks": len(chunks),
            }
        )
        self._write(repo_path, EmbeddingIndex(metadata=metadata, chunks=chunks))
        log.info(
            "Updated %d chunks for %s (%d total)",
            len(updates),
            metadata.repo_path,
            len(chunks),
        )
        return metadata

    def get_metadata(self, repo_path: str) -> IndexMetadata | None:
        """
        Decode only the metadata header of the stored index.

        The chunk payload is not validated, so a document with corrupt chunks
        still returns metadata here while ``load`` and ``exists`` treat it as absent.
        """
        path = self.index_path(repo_path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                head = handle.read(_HEAD_CHARS)
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            self._log_unusable(CacheCorruptError(f"Cannot read {path}: {exc}"))
            return None

        metadata_json = self._metadata_slice(head)
        if metadata_json is None:
            # Metadata not at the head of the document; decode the whole thing.
            index = self.load(repo_path)
            return index.metadata if index is not None else None

        try:
            metadata = IndexMetadata.model_validate_json(metadata_json, strict=True)
        except SchemaValidationError:
            self._log_unusable(CacheCorruptError(f"Invalid index metadata in {path}"))
            return None
        if metadata.version != INDEX_SCHEMA_VERSION:
            self._log_unusable(
                CacheVersionError(
                    f"Index version mismatch. Expected {INDEX_SCHEMA_VERSION}, "
                    f"got {metadata.version}"
                )
            )
            return None
        return metadata

    def exists(self, repo_path: str) -> bool:
        return self.load(repo_path) is not None

    def clear(self, repo_path: str) -> None:
        self.index_path(repo_path).unlink(missing_ok=True)

    def index_size(self, repo_path: str) -> int:
        try:
            return self.index_path(repo_path).stat().st_size
        except FileNotFoundError:
            return 0

    def _write(self, repo_path: str, index: EmbeddingIndex) -> None:
        path = self.index_path(repo_path)
        payload = index.model_dump_json(by_alias=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    @staticmethod
    def _metadata_slice(head: str) -> str | None:
        match = _METADATA_PREFIX.match(head)
        if match is None:
            return None
        try:
            _, end = json.JSONDecoder().raw_decode(head, match.end())
        except json.JSONDecodeError:
            return None
        return head[match.end() : end]

    @staticmethod
    def _log_unusable(error: Exception) -> None:
        if isinstance(error, CacheMissingError):
            log.debug("%s", error)
        else:
            log.warning("Ignoring stored index: %s", error)
