"""
Client for a self-hosted embedding service.

The service accepts ``{"texts": [...]}`` and answers
``{"items": [{"vector": [...]}, ...]}`` in input order.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

import httpx

from docstore.errors import BackendError, RateLimitError

logger = logging.getLogger(__name__)


class HTTPEmbeddingsClient:
    def __init__(
        self,
        url: str,
        batch_size: int = 64,
        dimension: int | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = url
        self.batch_size = batch_size
        self._dimension = dimension
        self.client = client or httpx.Client(timeout=timeout)

    @property
    def dimension(self) -> int:
        # Unknown until the service answers once
        if self._dimension is None:
            self._dimension = len(self.embed_text("dimension check"))
            logger.info("Embedder dimension detected", extra={"dimension": self._dimension})
        return self._dimension

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        if not texts:
            return []

        embeddings: List[List[float]] = []
        for i in range(0, len(texts), self.batch_size):
            batch = list(texts[i : i + self.batch_size])
            items = self._post(batch)
            if len(items) != len(batch):
                raise BackendError(
                    f"Embedder returned {len(items)} vectors for {len(batch)} texts", retryable=False
                )
            try:
                embeddings.extend([[float(x) for x in item["vector"]] for item in items])
            except (KeyError, TypeError, ValueError) as exc:
                raise BackendError(f"Embedder returned a malformed item: {exc!r}", retryable=False) from exc
        return embeddings

    def embed_text(self, text: str) -> List[float]:
        vectors = self.embed_texts([text])
        return vectors[0] if vectors else []

    def _post(self, batch: List[str]) -> list:
        try:
            resp = self.client.post(self.url, json={"texts": batch})
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status == 429:
                retry_after = exc.response.headers.get("retry-after")
                raise RateLimitError(
                    "Embedder rate limit",
                    retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                ) from exc
            raise BackendError(f"Embedder HTTP {status}", retryable=status >= 500) from exc
        except httpx.HTTPError as exc:
            logger.error("Embedder request failed", extra={"url": self.url, "error": str(exc)})
            raise BackendError(f"Embedder error: {exc}", retryable=True) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            raise BackendError("Embedder returned invalid JSON", retryable=False) from exc
        if not isinstance(data, dict) or not data.get("items"):
            raise BackendError("No embeddings returned", retryable=False)
        return data["items"]


__all__ = ["HTTPEmbeddingsClient"]
