"""
Vector store interface and shared types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple, Union

MetadataValue = Union[str, int, float, bool]
Metadata = Dict[str, MetadataValue]
# Conjunction of equality conditions, field -> value.
MetadataFilter = Dict[str, MetadataValue]

DISTANCE_METRICS = ("cosine", "l2", "ip")


def matches(metadata: Mapping[str, Any], where: Optional[Mapping[str, Any]]) -> bool:
    """True when every ``key == value`` condition in ``where`` holds."""
    if not where:
        return True
    for key, expected in where.items():
        if key not in metadata:
            return False
        actual = metadata[key]
        # True == 1 in Python; keep bool and number filters apart
        if isinstance(actual, bool) != isinstance(expected, bool) or actual != expected:
            return False
    return True


@dataclass
class CollectionRecord:
    id: str
    name: str
    vector_dimension: int
    metric: str
    created_at: datetime
    description: Optional[str] = None


@dataclass
class StoredDocument:
    id: str
    text: str
    metadata: Metadata
    updated_at: datetime
    embedding: Optional[List[float]] = field(default=None, repr=False)


class VectorStore(Protocol):
    """Durable state behind every docstore component.

    Writes to the same document id are last-write-wins; serialising them is
    the backend's job, the store above it holds no locks.
    """

    def create_collection(self, record: CollectionRecord) -> None:
        ...

    def get_collection(self, collection_id: str) -> Optional[CollectionRecord]:
        ...

    def list_collections(self) -> List[CollectionRecord]:
        ...

    def update_collection(self, record: CollectionRecord) -> None:
        ...

    def delete_collection(self, collection_id: str) -> None:
        ...

    def upsert_documents(self, collection_id: str, documents: Sequence[StoredDocument]) -> None:
        ...

    def get_documents(
        self, collection_id: str, ids: Sequence[str], include_embeddings: bool = False
    ) -> List[StoredDocument]:
        ...

    def list_documents(self, collection_id: str, limit: int, offset: int = 0) -> List[StoredDocument]:
        ...

    def find_ids(self, collection_id: str, where: Optional[MetadataFilter] = None) -> List[str]:
        ...

    def delete_documents(self, collection_id: str, ids: Sequence[str]) -> None:
        ...

    def count(self, collection_id: str) -> int:
        ...

    def search(
        self,
        collection_id: str,
        query_embedding: List[float],
        top_k: int,
        where: Optional[MetadataFilter] = None,
    ) -> List[Tuple[StoredDocument, float]]:
        """Return ``(document, distance)`` pairs, nearest first, restricted to ``where``."""
        ...


__all__ = [
    "CollectionRecord",
    "DISTANCE_METRICS",
    "Metadata",
    "MetadataFilter",
    "MetadataValue",
    "StoredDocument",
    "VectorStore",
    "matches",
]
