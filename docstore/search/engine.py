"""
Similarity search: embed the query, ask the backend for the nearest
documents matching the filter, normalise distances to a higher-is-better score.
"""

from __future__ import annotations

import logging
import numbers
from typing import Any, List, Sequence

from docstore.documents.batching import RetryPolicy
from docstore.documents.filters import matches, validate_filter
from docstore.documents.store import to_document
from docstore.embeddings.base import EmbeddingProvider
from docstore.errors import BackendError, ValidationError
from docstore.models.schemas import Collection, SearchResult
from docstore.registry.collections import CollectionRegistry
from docstore.vector_store.base import VectorStore

DEFAULT_TOP_K = 5
# Extra neighbours requested so ties at the cut-off are settled by id here,
# not by backend order. Ties wider than this are still cut by the backend.
TIE_MARGIN = 8

logger = logging.getLogger(__name__)


def distance_to_score(metric: str, distance: float) -> float:
    if metric == "l2":
        return 1.0 / (1.0 + max(0.0, distance))
    # cosine and ip distances are both 1 - similarity
    return 1.0 - distance


class SearchEngine:
    def __init__(
        self,
        vector_store: VectorStore,
        embeddings: EmbeddingProvider,
        registry: CollectionRegistry,
        retry_policy: RetryPolicy | None = None,
        default_top_k: int = DEFAULT_TOP_K,
    ) -> None:
        self.vector_store = vector_store
        self.embeddings = embeddings
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_top_k = default_top_k

    def search(
        self,
        collection_id: str,
        query: str | Sequence[float],
        top_k: int | None = None,
        filter: Any = None,
    ) -> List[SearchResult]:
        top_k = self.default_top_k if top_k is None else top_k
        if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
            raise ValidationError("top_k must be a positive integer")
        where = validate_filter(filter)
        collection = self.registry.get(collection_id)

        vector = self._query_vector(collection, query)
        raw = self.retry_policy.call(
            lambda: self.vector_store.search(
                collection.id, vector, top_k=top_k + TIE_MARGIN, where=where or None
            )
        )

        results: List[SearchResult] = []
        for stored, distance in raw:
            # Backends may post-filter; never return a non-matching document
            if not matches(stored.metadata, where):
                continue
            results.append(
                SearchResult(
                    document=to_document(collection.id, stored),
                    score=distance_to_score(collection.metric, distance),
                )
            )

        results.sort(key=lambda r: (-r.score, r.document.id))
        results = results[:top_k]
        logger.info(
            "Search completed",
            extra={
                "collection": collection.id,
                "requested": top_k,
                "returned": len(results),
                "filtered": bool(where),
                "top_score": round(results[0].score, 3) if results else None,
            },
        )
        return results

    def _query_vector(self, collection: Collection, query: Any) -> List[float]:
        if isinstance(query, str):
            if not query.strip():
                raise ValidationError("query must not be empty")
            vector = self.retry_policy.call(lambda: self.embeddings.embed_text(query))
            if len(vector) != collection.vector_dimension:
                raise BackendError(
                    f"Query embedding has {len(vector)} dimensions, collection expects {collection.vector_dimension}",
                    retryable=False,
                    details={"collection_id": collection.id},
                )
            return vector

        if isinstance(query, (list, tuple)):
            if not all(isinstance(x, numbers.Real) and not isinstance(x, bool) for x in query):
                raise ValidationError("query vector must contain only numbers")
            if len(query) != collection.vector_dimension:
                raise ValidationError(
                    f"query vector has {len(query)} dimensions, collection expects {collection.vector_dimension}"
                )
            return [float(x) for x in query]

        raise ValidationError("query must be text or a list of numbers")


__all__ = ["SearchEngine", "distance_to_score", "DEFAULT_TOP_K", "TIE_MARGIN"]
