"""Embedding client using OpenAI text-embedding-3-small."""

from __future__ import annotations

import logging
import math
import time

from openai import (
    APIConnectionError,
    APITimeoutError,
    InternalServerError,
    OpenAI,
    RateLimitError,
)

from src.retry import provider_retry

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 100

TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (
    APIConnectionError,
    APITimeoutError,
    RateLimitError,
    InternalServerError,
)


class EmbeddingClient:
    """Turns text into fixed-length vectors.

    Args:
        client: OpenAI client handle.
        model: Embedding model name.
        dimensions: Output vector width; must match the vector collection.
        max_attempts: Attempts per provider call, first try included.
        retry_wait: Initial backoff in seconds between attempts.
    """

    def __init__(
        self,
        client: OpenAI,
        model: str = "text-embedding-3-small",
        dimensions: int = 1536,
        max_attempts: int = 3,
        retry_wait: float = 1.0,
    ) -> None:
        self._client = client
        self.model = model
        self.dimensions = dimensions
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait

    def _create(self, texts: str | list[str]):  # type: ignore[no-untyped-def]
        retrying = provider_retry(
            TRANSIENT_ERRORS, self._max_attempts, "embeddings.create", self._retry_wait
        )
        return retrying(
            self._client.embeddings.create,
            input=texts,
            model=self.model,
            dimensions=self.dimensions,
        )

    def embed(self, text: str) -> list[float]:
        """Embed a single text (used for questions)."""
        start = time.perf_counter()
        response = self._create(text)
        logger.debug("Generated embedding in %.0fms", (time.perf_counter() - start) * 1000)
        return list(response.data[0].embedding)

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed many texts, returning vectors in input order.

        Requests go out in batches of at most 100.  Each batch is re-sorted by
        the provider's ``index`` field since response order is not guaranteed.
        """
        if not texts:
            return []

        start = time.perf_counter()
        vectors: list[list[float]] = []

        for offset in range(0, len(texts), MAX_BATCH_SIZE):
            batch = texts[offset : offset + MAX_BATCH_SIZE]
            response = self._create(batch)
            ordered = sorted(response.data, key=lambda item: item.index)
            vectors.extend(list(item.embedding) for item in ordered)
            logger.debug(
                "Embedded batch %d (%d texts)", offset // MAX_BATCH_SIZE + 1, len(batch)
            )

        logger.info(
            "Generated %d embeddings in %.0fms (~%d tokens)",
            len(texts),
            (time.perf_counter() - start) * 1000,
            estimate_batch_tokens(texts),
        )
        return vectors


def estimate_batch_tokens(texts: list[str]) -> int:
    """Rough token estimate for a batch: total characters / 4."""
    return math.ceil(sum(len(t) for t in texts) / 4)
