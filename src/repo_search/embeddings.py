"""
Embedding provider for vector-based semantic search.

Wraps the Google GenAI async embedding API for document and query embedding
with configurable model, dimensions, and retry policy.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any

from google.genai import Client as GenAIClient
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential,
)

from .errors import ProviderError


_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768

log = logging.getLogger("repo_search.embeddings")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retries with exponential backoff.

    Attempt ``n`` (1-based) that fails waits ``base_delay * 2 ** (n - 1)``
    seconds, capped at ``max_delay``, before the next attempt.
    """

    max_attempts: int = 4
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be >= 0")

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, max=self.max_delay),
            before_sleep=before_sleep_log(log, logging.WARNING),
        )


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        retry_policy: RetryPolicy | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("REPO_SEARCH_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("REPO_SEARCH_EMBEDDING_DIM", str(_DEFAULT_DIM)))
        self.retry_policy = retry_policy or RetryPolicy()

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    async def embed(self, text: str, *, model: str | None = None) -> list[float]:
        """Embed a chunk of source text for storage in an index."""
        return await self._embed_with_retry(
            text, model=model or self.model, task_type="RETRIEVAL_DOCUMENT"
        )

    async def embed_query(self, query: str, *, model: str | None = None) -> list[float]:
        """Embed a single query text for retrieval."""
        return await self._embed_with_retry(
            query, model=model or self.model, task_type="RETRIEVAL_QUERY"
        )

    async def _embed_with_retry(self, text: str, *, model: str, task_type: str) -> list[float]:
        try:
            return await self.retry_policy.retrying()(
                self._embed_once, text, model, task_type
            )
        except RetryError as exc:
            last = exc.last_attempt.exception()
            raise ProviderError(
                f"Embedding failed after {self.retry_policy.max_attempts} attempt(s): {last}"
            ) from last

    async def _embed_once(self, text: str, model: str, task_type: str) -> list[float]:
        result = await self._client.aio.models.embed_content(
            model=model,
            contents=[text],
            config={
                "task_type": task_type,
                "output_dimensionality": self.dim,
            },
        )
        if not result.embeddings:
            raise ProviderError(f"Provider returned no embedding for model {model}")
        return list(result.embeddings[0].values)
