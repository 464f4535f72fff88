"""
Process-local VectorStore used for development and tests.

Distances follow Chroma's conventions so scores normalise the same way for
both backends: cosine -> 1 - cos, ip -> 1 - dot, l2 -> squared euclidean.
"""

from __future__ import annotations

import logging
import math
import threading
from copy import deepcopy
from typing import Dict, List, Optional, Sequence, Tuple

from docstore.errors import BackendError
from docstore.vector_store.base import CollectionRecord, MetadataFilter, StoredDocument, VectorStore, matches

logger = logging.getLogger(__name__)


def distance(metric: str, a: Sequence[float], b: Sequence[float]) -> float:
    if metric == "l2":
        return sum((x - y) ** 2 for x, y in zip(a, b))
    dot = sum(x * y for x, y in zip(a, b))
    if metric == "ip":
        return 1.0 - dot
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 1.0
    return 1.0 - dot / norm


class InMemoryVectorStore(VectorStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._collections: Dict[str, CollectionRecord] = {}
        self._documents: Dict[str, Dict[str, StoredDocument]] = {}

    def create_collection(self, record: CollectionRecord) -> None:
        with self._lock:
            if record.id in self._collections:
                raise BackendError(f"Collection '{record.id}' already exists", retryable=False)
            self._collections[record.id] = deepcopy(record)
            self._documents[record.id] = {}

    def get_collection(self, collection_id: str) -> Optional[CollectionRecord]:
        with self._lock:
            record = self._collections.get(collection_id)
            return deepcopy(record) if record else None

    def list_collections(self) -> List[CollectionRecord]:
        with self._lock:
            return [deepcopy(record) for record in self._collections.values()]

    def update_collection(self, record: CollectionRecord) -> None:
        with self._lock:
            self._require(record.id)
            self._collections[record.id] = deepcopy(record)

    def delete_collection(self, collection_id: str) -> None:
        with self._lock:
            self._require(collection_id)
            del self._collections[collection_id]
            del self._documents[collection_id]

    def upsert_documents(self, collection_id: str, documents: Sequence[StoredDocument]) -> None:
        with self._lock:
            docs = self._require(collection_id)
            for doc in documents:
                docs[doc.id] = deepcopy(doc)

    def get_documents(
        self, collection_id: str, ids: Sequence[str], include_embeddings: bool = False
    ) -> List[StoredDocument]:
        with self._lock:
            docs = self._require(collection_id)
            found = [self._copy(docs[doc_id], include_embeddings) for doc_id in ids if doc_id in docs]
        return found

    def list_documents(self, collection_id: str, limit: int, offset: int = 0) -> List[StoredDocument]:
        with self._lock:
            docs = self._require(collection_id)
            ordered = sorted(docs)[offset : offset + limit]
            return [self._copy(docs[doc_id], False) for doc_id in ordered]

    def find_ids(self, collection_id: str, where: Optional[MetadataFilter] = None) -> List[str]:
        with self._lock:
            docs = self._require(collection_id)
            return [doc_id for doc_id, doc in docs.items() if matches(doc.metadata, where)]

    def delete_documents(self, collection_id: str, ids: Sequence[str]) -> None:
        with self._lock:
            docs = self._require(collection_id)
            for doc_id in ids:
                docs.pop(doc_id, None)

    def count(self, collection_id: str) -> int:
        with self._lock:
            return len(self._require(collection_id))

    def search(
        self,
        collection_id: str,
        query_embedding: List[float],
        top_k: int,
        where: Optional[MetadataFilter] = None,
    ) -> List[Tuple[StoredDocument, float]]:
        if top_k <= 0:
            return []
        with self._lock:
            docs = self._require(collection_id)
            metric = self._collections[collection_id].metric
            scored = [
                (doc, distance(metric, query_embedding, doc.embedding or []))
                for doc in docs.values()
                if matches(doc.metadata, where)
            ]
            scored.sort(key=lambda item: (item[1], item[0].id))
            return [(self._copy(doc, False), dist) for doc, dist in scored[:top_k]]

    def _require(self, collection_id: str) -> Dict[str, StoredDocument]:
        docs = self._documents.get(collection_id)
        if docs is None:
            raise BackendError(f"Collection '{collection_id}' does not exist", retryable=False)
        return docs

    @staticmethod
    def _copy(doc: StoredDocument, include_embeddings: bool) -> StoredDocument:
        copied = deepcopy(doc)
        if not include_embeddings:
            copied.embedding = None
        return copied


__all__ = ["InMemoryVectorStore", "distance"]
