"""
OpenAI embeddings client.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence

import openai
from openai import OpenAI

from docstore.errors import BackendError, RateLimitError

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_EMBED_BATCH_SIZE = 64

# Native output sizes; text-embedding-3-* also accept a smaller `dimensions`.
KNOWN_DIMENSIONS: Dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}

logger = logging.getLogger(__name__)


def _retry_after(exc: openai.APIStatusError) -> float | None:
    value = exc.response.headers.get("retry-after") if exc.response is not None else None
    try:
        return float(value) if value else None
    except ValueError:
        return None


class EmbeddingsClient:
    def __init__(
        self,
        model: str = DEFAULT_EMBEDDING_MODEL,
        batch_size: int = DEFAULT_EMBED_BATCH_SIZE,
        dimension: int | None = None,
        api_key: str | None = None,
        client: OpenAI | None = None,
    ) -> None:
        self.model = model
        self.batch_size = batch_size
        self._dimension = dimension
        # Retries are driven by the document store's backoff policy
        self.client = client or OpenAI(api_key=api_key, max_retries=0)

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = KNOWN_DIMENSIONS.get(self.model) or len(self.embed_text("dimension check"))
        return self._dimension

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []

        embeddings: List[List[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = list(texts[i : i + self.batch_size])
            response = self._create(batch)
            embeddings.extend([item.embedding for item in response.data])
        return embeddings

    def embed_text(self, text: str) -> List[float]:
        vectors = self.embed_texts([text])
        return vectors[0] if vectors else []

    def _create(self, batch: List[str]) -> Any:
        kwargs: Dict[str, Any] = {"model": self.model, "input": batch}
        if self._dimension and self.model.startswith("text-embedding-3") and self._dimension != KNOWN_DIMENSIONS.get(self.model):
            kwargs["dimensions"] = self._dimension

        try:
            return self.client.embeddings.create(**kwargs)
        except openai.RateLimitError as exc:
            raise RateLimitError(
                f"OpenAI rate limit: {exc}", retry_after=_retry_after(exc), details={"model": self.model}
            ) from exc
        except (openai.APIConnectionError, openai.InternalServerError) as exc:
            raise BackendError(f"OpenAI unavailable: {exc}", retryable=True, details={"model": self.model}) from exc
        except openai.APIError as exc:
            logger.error("OpenAI embeddings request rejected", extra={"model": self.model, "error": str(exc)})
            raise BackendError(f"OpenAI rejected request: {exc}", retryable=False, details={"model": self.model}) from exc


__all__ = ["EmbeddingsClient", "DEFAULT_EMBEDDING_MODEL", "KNOWN_DIMENSIONS"]
