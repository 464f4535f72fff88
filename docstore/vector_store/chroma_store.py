"""
Chroma-based VectorStore implementation.

Every docstore collection maps to one Chroma collection named after the
collection id. Registry fields live in the Chroma collection metadata, and
the document ``updated_at`` timestamp is kept under a reserved metadata key.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import chromadb

from docstore.errors import BackendError
from docstore.vector_store.base import CollectionRecord, MetadataFilter, StoredDocument, VectorStore

MANAGED_MARKER = "docstore_managed"
UPDATED_AT_KEY = "_updated_at"
DELETE_BATCH_SIZE = 500

logger = logging.getLogger(__name__)


def build_where(where: Optional[MetadataFilter]) -> Optional[Dict[str, Any]]:
    """Translate an equality filter into Chroma's ``where`` syntax."""
    if not where:
        return None
    clauses = [{key: {"$eq": value}} for key, value in sorted(where.items())]
    # Chroma requires exactly one top-level operator
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


@contextmanager
def _backend_errors(operation: str, collection_id: str | None = None) -> Iterator[None]:
    try:
        yield
    except BackendError:
        raise
    except (ConnectionError, TimeoutError) as exc:
        raise BackendError(
            f"Chroma {operation} failed: {exc}",
            retryable=True,
            details={"collection_id": collection_id},
        ) from exc
    except Exception as exc:
        raise BackendError(
            f"Chroma {operation} failed: {exc}",
            retryable=False,
            details={"collection_id": collection_id},
        ) from exc


class ChromaVectorStore(VectorStore):
    def __init__(self, persist_directory: str, client: Any | None = None) -> None:
        self.persist_directory = persist_directory
        self.client = client or chromadb.PersistentClient(path=self.persist_directory)
        self._handles: Dict[str, Any] = {}
        logger.info("ChromaVectorStore initialised", extra={"persist_directory": self.persist_directory})

    # --- Collections ---
    def create_collection(self, record: CollectionRecord) -> None:
        metadata = {"hnsw:space": record.metric, **self._record_metadata(record)}
        with _backend_errors("create_collection", record.id):
            self._handles[record.id] = self.client.create_collection(name=record.id, metadata=metadata)
        logger.info("Chroma collection created", extra={"collection": record.id, "metric": record.metric})

    def get_collection(self, collection_id: str) -> Optional[CollectionRecord]:
        handle = self._handle(collection_id)
        if handle is None:
            return None
        return self._record_from_metadata(collection_id, handle.metadata or {})

    def list_collections(self) -> List[CollectionRecord]:
        records: List[CollectionRecord] = []
        for name in self._collection_names():
            record = self.get_collection(name)
            if record is not None:
                records.append(record)
        return records

    def update_collection(self, record: CollectionRecord) -> None:
        handle = self._require(record.id)
        # hnsw:* keys cannot be modified after creation
        with _backend_errors("update_collection", record.id):
            handle.modify(metadata=self._record_metadata(record))

    def delete_collection(self, collection_id: str) -> None:
        with _backend_errors("delete_collection", collection_id):
            self.client.delete_collection(collection_id)
        self._handles.pop(collection_id, None)
        logger.info("Chroma collection deleted", extra={"collection": collection_id})

    # --- Documents ---
    def upsert_documents(self, collection_id: str, documents: Sequence[StoredDocument]) -> None:
        if not documents:
            return
        handle = self._require(collection_id)

        ids = [doc.id for doc in documents]
        embeddings = [doc.embedding for doc in documents]
        metadatas = [self._to_chroma_metadata(doc) for doc in documents]
        texts = [doc.text for doc in documents]

        with _backend_errors("upsert", collection_id):
            handle.upsert(ids=ids, embeddings=embeddings, metadatas=metadatas, documents=texts)
        logger.debug("Upserted documents into Chroma", extra={"count": len(documents), "collection": collection_id})

    def get_documents(
        self, collection_id: str, ids: Sequence[str], include_embeddings: bool = False
    ) -> List[StoredDocument]:
        if not ids:
            return []
        handle = self._require(collection_id)
        include = ["documents", "metadatas"]
        if include_embeddings:
            include.append("embeddings")
        with _backend_errors("get", collection_id):
            result = handle.get(ids=list(ids), include=include)
        return self._documents_from_get(result, include_embeddings)

    def list_documents(self, collection_id: str, limit: int, offset: int = 0) -> List[StoredDocument]:
        handle = self._require(collection_id)
        with _backend_errors("get", collection_id):
            result = handle.get(include=["documents", "metadatas"], limit=limit, offset=offset)
        return self._documents_from_get(result, include_embeddings=False)

    def find_ids(self, collection_id: str, where: Optional[MetadataFilter] = None) -> List[str]:
        handle = self._require(collection_id)
        with _backend_errors("get", collection_id):
            result = handle.get(where=build_where(where), include=[])
        return list(result.get("ids") or [])

    def delete_documents(self, collection_id: str, ids: Sequence[str]) -> None:
        if not ids:
            return
        handle = self._require(collection_id)
        ids = list(ids)
        with _backend_errors("delete", collection_id):
            for i in range(0, len(ids), DELETE_BATCH_SIZE):
                handle.delete(ids=ids[i : i + DELETE_BATCH_SIZE])
        logger.info("Deleted documents from Chroma", extra={"count": len(ids), "collection": collection_id})

    def count(self, collection_id: str) -> int:
        handle = self._require(collection_id)
        with _backend_errors("count", collection_id):
            return int(handle.count())

    def search(
        self,
        collection_id: str,
        query_embedding: List[float],
        top_k: int,
        where: Optional[MetadataFilter] = None,
    ) -> List[Tuple[StoredDocument, float]]:
        if top_k <= 0:
            return []
        handle = self._require(collection_id)

        with _backend_errors("query", collection_id):
            if handle.count() == 0:
                return []
            result = handle.query(
                query_embeddings=[query_embedding],
                n_results=top_k,
                where=build_where(where),
                include=["documents", "metadatas", "distances"],
            )

        ids = (result.get("ids") or [[]])[0] or []
        texts = (result.get("documents") or [[]])[0] or []
        metadatas = (result.get("metadatas") or [[]])[0] or []
        distances = (result.get("distances") or [[]])[0] or []

        hits: List[Tuple[StoredDocument, float]] = []
        for doc_id, text, metadata, distance in zip(ids, texts, metadatas, distances):
            hits.append((self._from_chroma(doc_id, text, metadata), float(distance)))
        return hits

    # --- Helpers ---
    def _collection_names(self) -> List[str]:
        with _backend_errors("list_collections"):
            items = self.client.list_collections()
        # Older clients return names, newer ones return Collection objects
        return [item if isinstance(item, str) else item.name for item in items]

    def _handle(self, collection_id: str) -> Any | None:
        handle = self._handles.get(collection_id)
        if handle is not None:
            return handle
        if collection_id not in self._collection_names():
            return None
        with _backend_errors("get_collection", collection_id):
            handle = self.client.get_collection(name=collection_id)
        if not (handle.metadata or {}).get(MANAGED_MARKER):
            return None
        self._handles[collection_id] = handle
        return handle

    def _require(self, collection_id: str) -> Any:
        handle = self._handle(collection_id)
        if handle is None:
            raise BackendError(
                f"Chroma collection '{collection_id}' does not exist",
                retryable=False,
                details={"collection_id": collection_id},
            )
        return handle

    @staticmethod
    def _record_metadata(record: CollectionRecord) -> Dict[str, Any]:
        metadata: Dict[str, Any] = {
            MANAGED_MARKER: True,
            "display_name": record.name,
            "vector_dimension": record.vector_dimension,
            "metric": record.metric,
            "created_at": record.created_at.isoformat(),
        }
        # Chroma metadata values cannot be None
        if record.description is not None:
            metadata["description"] = record.description
        return metadata

    @staticmethod
    def _record_from_metadata(collection_id: str, metadata: Dict[str, Any]) -> CollectionRecord:
        return CollectionRecord(
            id=collection_id,
            name=metadata["display_name"],
            description=metadata.get("description"),
            vector_dimension=int(metadata["vector_dimension"]),
            metric=metadata.get("metric") or metadata.get("hnsw:space", "l2"),
            created_at=datetime.fromisoformat(metadata["created_at"]),
        )

    @staticmethod
    def _to_chroma_metadata(doc: StoredDocument) -> Dict[str, Any]:
        return {**doc.metadata, UPDATED_AT_KEY: doc.updated_at.isoformat()}

    @staticmethod
    def _from_chroma(
        doc_id: str, text: str | None, metadata: Dict[str, Any] | None, embedding: Any = None
    ) -> StoredDocument:
        metadata = dict(metadata or {})
        updated_raw = metadata.pop(UPDATED_AT_KEY, None)
        updated_at = datetime.fromisoformat(updated_raw) if updated_raw else datetime.now(timezone.utc)
        return StoredDocument(
            id=doc_id,
            text=text or "",
            metadata=metadata,
            updated_at=updated_at,
            embedding=[float(x) for x in embedding] if embedding is not None else None,
        )

    def _documents_from_get(self, result: Dict[str, Any], include_embeddings: bool) -> List[StoredDocument]:
        ids = result.get("ids") or []
        texts = result.get("documents") or [None] * len(ids)
        metadatas = result.get("metadatas") or [None] * len(ids)
        embeddings = result.get("embeddings") if include_embeddings else None
        if embeddings is None:
            embeddings = [None] * len(ids)
        return [
            self._from_chroma(doc_id, text, metadata, embedding)
            for doc_id, text, metadata, embedding in zip(ids, texts, metadatas, embeddings)
        ]


__all__ = ["ChromaVectorStore", "build_where", "MANAGED_MARKER", "UPDATED_AT_KEY"]
