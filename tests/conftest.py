from __future__ import annotations

import string
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from repo_search.storage import JsonIndexStore


def letter_histogram(text: str) -> list[float]:
    """Deterministic 27-dim vector: letter counts plus a constant bias term."""
    lowered = text.lower()
    return [float(lowered.count(ch)) for ch in string.ascii_lowercase] + [1.0]


@dataclass
class FakeEmbedder:
    """Stands in for EmbeddingProvider in orchestrator tests."""

    model: str = "fake-embedding-001"
    vectorize: Callable[[str], list[float]] = letter_histogram
    fail_on: Callable[[str], bool] = lambda text: False
    document_calls: list[tuple[str, str | None]] = field(default_factory=list)
    query_calls: list[tuple[str, str | None]] = field(default_factory=list)

    async def embed(self, text: str, *, model: str | None = None) -> list[float]:
        from repo_search.errors import ProviderError

        self.document_calls.append((text, model))
        if self.fail_on(text):
            raise ProviderError(f"embedding refused for {text[:20]!r}")
        return self.vectorize(text)

    async def embed_query(self, query: str, *, model: str | None = None) -> list[float]:
        self.query_calls.append((query, model))
        return self.vectorize(query)


# ---------------------------------------------------------------------------
# google-genai client fakes
# ---------------------------------------------------------------------------


@dataclass
class FakeEmbedding:
    values: list[float]


@dataclass
class FakeEmbedResult:
    embeddings: list[FakeEmbedding]


class FakeAioModels:
    """Records calls and returns deterministic embeddings, failing on demand."""

    def __init__(self, failures: int = 0) -> None:
        self.calls: list[dict[str, Any]] = []
        self.failures = failures

    async def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> FakeEmbedResult:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError("429 RESOURCE_EXHAUSTED")
        dim = config.get("output_dimensionality", 4)
        return FakeEmbedResult(
            embeddings=[FakeEmbedding(values=[0.5] * dim) for _ in contents]
        )


class FakeAio:
    def __init__(self, models: FakeAioModels) -> None:
        self.models = models


class FakeGenAIClient:
    def __init__(self, failures: int = 0) -> None:
        self.aio = FakeAio(FakeAioModels(failures=failures))


@pytest.fixture
def store(tmp_path: Path) -> JsonIndexStore:
    return JsonIndexStore(str(tmp_path / "indexes"))


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    (root / "src").mkdir(parents=True)
    (root / "src" / "auth.py").write_text(
        "def login(user, password):\n"
        "    token = issue_token(user)\n"
        "    return token\n"
    )
    (root / "src" / "math_utils.py").write_text(
        "def add(a, b):\n    return a + b\n\n\ndef mul(a, b):\n    return a * b\n"
    )
    (root / "README.md").write_text("# Demo\n\nA tiny repository used for search tests.\n")
    return root
