"""
Document lifecycle inside a collection: add, read, update, delete.

Re-adding an existing id is an upsert: content, metadata and embedding are all
replaced. Batch calls report per-item outcomes instead of failing as a whole.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Sequence

from pydantic import ValidationError as PydanticValidationError

from docstore.documents.batching import RetryPolicy, run_batch
from docstore.documents.filters import validate_filter, validate_metadata
from docstore.embeddings.base import EmbeddingProvider
from docstore.errors import BackendError, DocStoreError, NotFoundError, ValidationError
from docstore.models.schemas import (
    AddDocumentsResponse,
    Collection,
    DeleteByFilterResponse,
    Document,
    DocumentInput,
    DocumentUpdate,
    ItemFailure,
    UpdateDocumentsResponse,
)
from docstore.registry.collections import CollectionRegistry
from docstore.vector_store.base import Metadata, StoredDocument, VectorStore

MAX_LIST_LIMIT = 1000

logger = logging.getLogger(__name__)


@dataclass
class _PendingWrite:
    index: int
    id: str
    content: str | None
    metadata: Metadata | None
    embedding: List[float] | None = None


def to_document(collection_id: str, stored: StoredDocument) -> Document:
    return Document(
        id=stored.id,
        collection_id=collection_id,
        content=stored.text,
        metadata=stored.metadata,
        updated_at=stored.updated_at,
    )


def _failure(index: int, doc_id: str | None, exc: DocStoreError) -> ItemFailure:
    return ItemFailure(index=index, id=doc_id, code=exc.code, message=exc.message, retryable=exc.retryable)


def _pydantic_failure(index: int, raw: Any, exc: PydanticValidationError) -> ItemFailure:
    doc_id = raw.get("id") if isinstance(raw, dict) else None
    first = exc.errors()[0] if exc.errors() else {"msg": str(exc), "loc": ()}
    where = ".".join(str(part) for part in first.get("loc", ()))
    message = f"{where}: {first['msg']}" if where else first["msg"]
    return ItemFailure(index=index, id=doc_id if isinstance(doc_id, str) else None, code=ValidationError.code, message=message)


class DocumentStore:
    def __init__(
        self,
        vector_store: VectorStore,
        embeddings: EmbeddingProvider,
        registry: CollectionRegistry,
        retry_policy: RetryPolicy | None = None,
        max_concurrency: int = 4,
    ) -> None:
        self.vector_store = vector_store
        self.embeddings = embeddings
        self.registry = registry
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_concurrency = max_concurrency

    # --- Public API ---
    def add_documents(self, collection_id: str, documents: Sequence[DocumentInput | dict]) -> AddDocumentsResponse:
        if not documents:
            raise ValidationError("documents must contain at least one item")
        collection = self.registry.get(collection_id)

        failed: List[ItemFailure] = []
        pending: List[_PendingWrite] = []
        seen: set[str] = set()

        for idx, raw in enumerate(documents):
            try:
                doc = raw if isinstance(raw, DocumentInput) else DocumentInput.model_validate(raw)
            except PydanticValidationError as exc:
                failed.append(_pydantic_failure(idx, raw, exc))
                continue

            doc_id = doc.id or str(uuid.uuid4())
            try:
                if not doc.content.strip():
                    raise ValidationError("content must not be empty")
                metadata = validate_metadata(doc.metadata)
                if doc_id in seen:
                    raise ValidationError(f"id '{doc_id}' appears more than once in this batch")
            except ValidationError as exc:
                failed.append(_failure(idx, doc_id, exc))
                continue

            seen.add(doc_id)
            pending.append(_PendingWrite(index=idx, id=doc_id, content=doc.content, metadata=metadata))

        started = time.time()
        self._embed_pending(collection, pending)
        outcomes = run_batch(pending, lambda item: self._write_new(collection, item), self.max_concurrency)

        ids: List[str] = []
        for item, outcome in zip(pending, outcomes):
            if outcome.ok:
                ids.append(item.id)
            else:
                failed.append(_failure(item.index, item.id, outcome.error))

        failed.sort(key=lambda f: f.index)
        logger.info(
            "Documents added",
            extra={
                "collection": collection.id,
                "requested": len(documents),
                "stored": len(ids),
                "failed": len(failed),
                "elapsed_sec": round(time.time() - started, 2),
            },
        )
        return AddDocumentsResponse(ids=ids, failed=failed)

    def get_document(self, collection_id: str, document_id: str) -> Document:
        collection = self.registry.get(collection_id)
        stored = self._fetch(collection.id, document_id)
        return to_document(collection.id, stored)

    def list_documents(self, collection_id: str, limit: int = 20, offset: int = 0) -> List[Document]:
        if isinstance(limit, bool) or not isinstance(limit, int) or not 0 < limit <= MAX_LIST_LIMIT:
            raise ValidationError(f"limit must be an integer between 1 and {MAX_LIST_LIMIT}")
        if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
            raise ValidationError("offset must be a non-negative integer")
        collection = self.registry.get(collection_id)
        stored = self.vector_store.list_documents(collection.id, limit=limit, offset=offset)
        return [to_document(collection.id, doc) for doc in stored]

    def update_documents(
        self, collection_id: str, updates: Sequence[DocumentUpdate | dict]
    ) -> UpdateDocumentsResponse:
        if not updates:
            raise ValidationError("updates must contain at least one item")
        collection = self.registry.get(collection_id)

        failed: List[ItemFailure] = []
        pending: List[_PendingWrite] = []
        seen: set[str] = set()

        for idx, raw in enumerate(updates):
            try:
                update = raw if isinstance(raw, DocumentUpdate) else DocumentUpdate.model_validate(raw)
            except PydanticValidationError as exc:
                failed.append(_pydantic_failure(idx, raw, exc))
                continue

            try:
                if update.content is None and update.metadata is None:
                    raise ValidationError("update must set content, metadata or both")
                if update.content is not None and not update.content.strip():
                    raise ValidationError("content must not be empty")
                metadata = validate_metadata(update.metadata) if update.metadata is not None else None
                if update.id in seen:
                    raise ValidationError(f"id '{update.id}' appears more than once in this batch")
            except ValidationError as exc:
                failed.append(_failure(idx, update.id, exc))
                continue

            seen.add(update.id)
            pending.append(_PendingWrite(index=idx, id=update.id, content=update.content, metadata=metadata))

        self._embed_pending(collection, pending)
        outcomes = run_batch(pending, lambda item: self._write_update(collection, item), self.max_concurrency)

        updated_ids: List[str] = []
        not_found_ids: List[str] = []
        for item, outcome in zip(pending, outcomes):
            if outcome.ok:
                updated_ids.append(item.id)
            elif isinstance(outcome.error, NotFoundError):
                not_found_ids.append(item.id)
            else:
                failed.append(_failure(item.index, item.id, outcome.error))

        failed.sort(key=lambda f: f.index)
        logger.info(
            "Documents updated",
            extra={
                "collection": collection.id,
                "updated": len(updated_ids),
                "not_found": len(not_found_ids),
                "failed": len(failed),
            },
        )
        return UpdateDocumentsResponse(
            updated_ids=updated_ids,
            updated_count=len(updated_ids),
            not_found_ids=not_found_ids,
            failed=failed,
        )

    def delete_document(self, collection_id: str, document_id: str) -> None:
        collection = self.registry.get(collection_id)
        self._fetch(collection.id, document_id)
        self.retry_policy.call(lambda: self.vector_store.delete_documents(collection.id, [document_id]))
        logger.info("Document deleted", extra={"collection": collection.id, "document": document_id})

    def delete_documents_by_metadata(
        self, collection_id: str, filter: Any, confirm_bulk_delete: bool = False
    ) -> DeleteByFilterResponse:
        where = validate_filter(filter)
        if not where and not confirm_bulk_delete:
            raise ValidationError(
                "An empty filter deletes every document in the collection; "
                "set confirm_bulk_delete to proceed"
            )
        collection = self.registry.get(collection_id)

        ids = self.vector_store.find_ids(collection.id, where or None)
        if ids:
            self.retry_policy.call(lambda: self.vector_store.delete_documents(collection.id, ids))

        log = logger.warning if not where else logger.info
        log(
            "Documents deleted by metadata",
            extra={"collection": collection.id, "filter": where, "deleted": len(ids)},
        )
        return DeleteByFilterResponse(deleted_count=len(ids))

    def prune_documents(self, collection_id: str, where: Metadata, keep: Sequence[str]) -> int:
        """Delete documents matching ``where`` whose id is not in ``keep``."""
        kept = set(keep)
        ids = [doc_id for doc_id in self.vector_store.find_ids(collection_id, where) if doc_id not in kept]
        if ids:
            self.retry_policy.call(lambda: self.vector_store.delete_documents(collection_id, ids))
            logger.info("Pruned documents", extra={"collection": collection_id, "deleted": len(ids)})
        return len(ids)

    # --- Steps ---
    def embed(self, collection: Collection, text: str) -> List[float]:
        vector = self.retry_policy.call(lambda: self.embeddings.embed_text(text))
        return self._check_dimension(collection, vector)

    def _check_dimension(self, collection: Collection, vector: List[float]) -> List[float]:
        if len(vector) != collection.vector_dimension:
            raise BackendError(
                f"Embedding has {len(vector)} dimensions, collection expects {collection.vector_dimension}",
                retryable=False,
                details={"collection_id": collection.id},
            )
        return vector

    def _embed_pending(self, collection: Collection, items: List[_PendingWrite]) -> None:
        """Embed every item carrying new content with one provider call.

        When the batch call fails the items are left without an embedding and
        get embedded one by one, so each still reports its own outcome.
        """
        targets = [item for item in items if item.content is not None]
        if not targets:
            return
        texts = [item.content or "" for item in targets]
        try:
            vectors = self.retry_policy.call(lambda: self.embeddings.embed_texts(texts))
        except DocStoreError as exc:
            logger.warning(
                "Batch embedding failed, embedding items one by one",
                extra={"collection": collection.id, "count": len(targets), "error": exc.message},
            )
            return
        if len(vectors) != len(targets):
            logger.warning(
                "Batch embedding returned %d vectors for %d texts, embedding items one by one",
                len(vectors),
                len(targets),
            )
            return
        for item, vector in zip(targets, vectors):
            item.embedding = vector

    def _vector_for(self, collection: Collection, item: _PendingWrite) -> List[float]:
        if item.embedding is not None:
            return self._check_dimension(collection, item.embedding)
        return self.embed(collection, item.content or "")

    def _fetch(self, collection_id: str, document_id: str, include_embeddings: bool = False) -> StoredDocument:
        found = self.vector_store.get_documents(collection_id, [document_id], include_embeddings=include_embeddings)
        if not found:
            raise NotFoundError(
                f"Document '{document_id}' not found in collection '{collection_id}'",
                details={"collection_id": collection_id, "document_id": document_id},
            )
        return found[0]

    def _write_new(self, collection: Collection, item: _PendingWrite) -> str:
        embedding = self._vector_for(collection, item)
        record = StoredDocument(
            id=item.id,
            text=item.content or "",
            metadata=item.metadata or {},
            updated_at=datetime.now(timezone.utc),
            embedding=embedding,
        )
        self.retry_policy.call(lambda: self.vector_store.upsert_documents(collection.id, [record]))
        return item.id

    def _write_update(self, collection: Collection, item: _PendingWrite) -> str:
        existing = self._fetch(collection.id, item.id, include_embeddings=item.content is None)

        text, embedding = existing.text, existing.embedding
        if item.content is not None:
            text = item.content
            embedding = self._vector_for(collection, item)

        record = StoredDocument(
            id=item.id,
            text=text,
            metadata=item.metadata if item.metadata is not None else existing.metadata,
            updated_at=datetime.now(timezone.utc),
            embedding=embedding,
        )
        self.retry_policy.call(lambda: self.vector_store.upsert_documents(collection.id, [record]))
        return item.id


__all__ = ["DocumentStore", "to_document", "MAX_LIST_LIMIT"]
