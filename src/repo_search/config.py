"""
Configuration helpers for local index storage and indexing defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_INDEX_DIR = "~/.repo_search/indexes"
ENV_INDEX_DIR = "REPO_SEARCH_INDEX_DIR"


def resolve_index_dir(override_path: str | None = None) -> str:
    """
    Resolve the index directory from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) REPO_SEARCH_INDEX_DIR
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_INDEX_DIR) or DEFAULT_INDEX_DIR
    resolved = Path(raw_path).expanduser().resolve()
    resolved.mkdir(parents=True, exist_ok=True)
    return str(resolved)


@dataclass(slots=True)
class IndexingConfig:
    max_chunk_size: int = field(
        default_factory=lambda: int(os.getenv("REPO_SEARCH_MAX_CHUNK_SIZE", "2000"))
    )
    overlap: int = field(
        default_factory=lambda: int(os.getenv("REPO_SEARCH_CHUNK_OVERLAP", "200"))
    )
    batch_size: int = field(
        default_factory=lambda: int(os.getenv("REPO_SEARCH_BATCH_SIZE", "5"))
    )
    max_retries: int = field(
        default_factory=lambda: int(os.getenv("REPO_SEARCH_MAX_RETRIES", "4"))
    )
