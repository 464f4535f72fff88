"""
Collection registry: named, isolated namespaces bound to an embedding size.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, List

from docstore.embeddings.base import EmbeddingProvider
from docstore.errors import ConflictError, NotFoundError, ValidationError
from docstore.models.schemas import Collection
from docstore.vector_store.base import DISTANCE_METRICS, CollectionRecord, VectorStore

MAX_NAME_LENGTH = 128

_UNSET: Any = object()

logger = logging.getLogger(__name__)


def _validate_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Collection name must be a non-empty string")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"Collection name must be at most {MAX_NAME_LENGTH} characters")
    return name


def _validate_description(description: Any) -> str | None:
    if description is not None and not isinstance(description, str):
        raise ValidationError("Collection description must be a string")
    return description


def to_collection(record: CollectionRecord) -> Collection:
    return Collection(
        id=record.id,
        name=record.name,
        description=record.description,
        vector_dimension=record.vector_dimension,
        metric=record.metric,
        created_at=record.created_at,
    )


class CollectionRegistry:
    def __init__(self, vector_store: VectorStore, embeddings: EmbeddingProvider, metric: str = "cosine") -> None:
        if metric not in DISTANCE_METRICS:
            raise ValueError(f"Unsupported distance metric: {metric}")
        self.vector_store = vector_store
        self.embeddings = embeddings
        self.metric = metric
        # Name checks and the write that follows them must not interleave
        self._names_lock = threading.Lock()

    def create(self, name: str, description: str | None = None) -> Collection:
        name = _validate_name(name)
        description = _validate_description(description)
        dimension = self.embeddings.dimension

        with self._names_lock:
            self._ensure_name_free(name)
            record = CollectionRecord(
                id=str(uuid.uuid4()),
                name=name,
                description=description,
                vector_dimension=dimension,
                metric=self.metric,
                created_at=datetime.now(timezone.utc),
            )
            self.vector_store.create_collection(record)
        logger.info(
            "Collection created",
            extra={"collection": record.id, "collection_name": name, "dimension": record.vector_dimension},
        )
        return to_collection(record)

    def list(self) -> List[Collection]:
        records = sorted(self.vector_store.list_collections(), key=lambda r: (r.created_at, r.id))
        return [to_collection(record) for record in records]

    def get(self, collection_id: str) -> Collection:
        return to_collection(self._record(collection_id))

    def update(self, collection_id: str, name: Any = _UNSET, description: Any = _UNSET) -> Collection:
        if name is not _UNSET:
            name = _validate_name(name)
        if description is not _UNSET:
            description = _validate_description(description)

        with self._names_lock:
            record = self._record(collection_id)
            if name is not _UNSET:
                if name != record.name:
                    self._ensure_name_free(name, exclude_id=collection_id)
                record.name = name
            if description is not _UNSET:
                record.description = description
            self.vector_store.update_collection(record)
        logger.info("Collection updated", extra={"collection": collection_id})
        return to_collection(record)

    def delete(self, collection_id: str) -> None:
        self._record(collection_id)
        # Cascades: the backend drops every document with the collection
        self.vector_store.delete_collection(collection_id)
        logger.warning("Collection deleted", extra={"collection": collection_id})

    def _record(self, collection_id: str) -> CollectionRecord:
        record = self.vector_store.get_collection(collection_id) if collection_id else None
        if record is None:
            raise NotFoundError(f"Collection '{collection_id}' not found", details={"collection_id": collection_id})
        return record

    def _ensure_name_free(self, name: str, exclude_id: str | None = None) -> None:
        for record in self.vector_store.list_collections():
            if record.name == name and record.id != exclude_id:
                raise ConflictError(
                    f"Collection name '{name}' is already in use",
                    details={"collection_id": record.id, "name": name},
                )


__all__ = ["CollectionRegistry", "to_collection", "MAX_NAME_LENGTH"]
