"""
Chunking pipeline: fetch a source, extract text, chunk, and feed the chunks
through the document store.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from typing import Any, List

from pydantic import ValidationError as PydanticValidationError
from tqdm import tqdm

from docstore.documents.filters import validate_metadata
from docstore.documents.store import DocumentStore
from docstore.errors import IngestionCancelledError, ValidationError
from docstore.indexing.chunker import TextChunk, split_text, validate_chunk_params
from docstore.indexing.fetcher import SourceFetcher
from docstore.indexing.parser import SUPPORTED_TYPES, extract_text
from docstore.models.schemas import ChunkFileRequest, ChunkFileResponse, DocumentInput, ItemFailure
from docstore.registry.collections import CollectionRegistry

logger = logging.getLogger(__name__)


def chunk_id(url: str, index: int) -> str:
    """Stable id so re-ingesting a source replaces its chunks."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{url}#chunk-{index}"))


def chunk_documents(
    chunks: List[TextChunk], url: str, source_type: str, metadata: dict
) -> List[DocumentInput]:
    documents: List[DocumentInput] = []
    for chunk in chunks:
        provenance = {
            "source_url": url,
            "source_type": source_type,
            "chunk_index": chunk.index,
            "chunk_count": len(chunks),
            "position": chunk.position,
        }
        documents.append(
            DocumentInput(id=chunk_id(url, chunk.index), content=chunk.text, metadata={**metadata, **provenance})
        )
    return documents


class ChunkingPipeline:
    def __init__(
        self,
        document_store: DocumentStore,
        registry: CollectionRegistry,
        fetcher: SourceFetcher,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        embed_batch: int = 64,
    ) -> None:
        self.document_store = document_store
        self.registry = registry
        self.fetcher = fetcher
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.embed_batch = embed_batch

    def chunk_file_to_collection(
        self,
        collection_id: str,
        request: ChunkFileRequest | dict,
        cancel_event: threading.Event | None = None,
        timeout: float | None = None,
    ) -> ChunkFileResponse:
        started = time.time()
        request = self._parse_request(request)
        timeout = timeout if timeout is not None else request.timeout_sec
        deadline = started + timeout if timeout else None

        # Everything the caller controls is checked before touching the network
        source_type = request.type.strip().lower()
        if source_type not in SUPPORTED_TYPES:
            raise ValidationError(
                f"Unsupported source type '{request.type}'; expected one of {', '.join(SUPPORTED_TYPES)}"
            )
        chunk_size, chunk_overlap = self._chunk_params(request)
        metadata = validate_metadata(request.options.metadata)
        self.fetcher.check_url(request.url)
        collection = self.registry.get(collection_id)

        fetched = self.fetcher.fetch(request.url)
        text = extract_text(source_type, fetched.content)
        chunks = split_text(text, chunk_size, chunk_overlap)
        documents = chunk_documents(chunks, request.url, source_type, metadata)
        total = len(documents)
        logger.info(
            "Parsed source",
            extra={
                "collection": collection.id,
                "url": request.url,
                "type": source_type,
                "chars": len(text),
                "chunks": total,
            },
        )

        ids: List[str] = []
        failed: List[ItemFailure] = []
        for offset in tqdm(range(0, total, self.embed_batch), desc="Chunking", unit="batch", disable=None):
            self._check_cancelled(cancel_event, deadline, stored=len(ids), total=total)
            batch = documents[offset : offset + self.embed_batch]
            result = self.document_store.add_documents(collection.id, batch)
            ids.extend(result.ids)
            failed.extend(item.model_copy(update={"index": item.index + offset}) for item in result.failed)
            logger.info("Ingested batch", extra={"count": len(result.ids), "offset": offset})

        # Chunks left over from a longer earlier version of this source
        stale = self.document_store.prune_documents(
            collection.id, {"source_url": request.url}, keep=[doc.id for doc in documents]
        )

        elapsed = time.time() - started
        message = f"Ingested {len(ids)} of {total} chunks from {request.url} into collection '{collection.name}'"
        if failed:
            message += f"; {len(failed)} failed"
        logger.info(
            "Chunking completed",
            extra={
                "collection": collection.id,
                "chunks_indexed": len(ids),
                "failed": len(failed),
                "stale_removed": stale,
                "elapsed_sec": round(elapsed, 2),
            },
        )
        return ChunkFileResponse(message=message, chunk_count=total, ids=ids, failed=failed)

    @staticmethod
    def _parse_request(request: Any) -> ChunkFileRequest:
        if isinstance(request, ChunkFileRequest):
            return request
        try:
            return ChunkFileRequest.model_validate(request)
        except PydanticValidationError as exc:
            raise ValidationError(f"Invalid chunk request: {exc.errors()[0]['msg']}") from exc

    def _chunk_params(self, request: ChunkFileRequest) -> tuple[int, int]:
        options = request.options
        chunk_size = options.chunk_size if options.chunk_size is not None else self.chunk_size
        if options.chunk_overlap is not None:
            chunk_overlap = options.chunk_overlap
        else:
            chunk_overlap = min(self.chunk_overlap, chunk_size // 2)
        validate_chunk_params(chunk_size, chunk_overlap)
        return chunk_size, chunk_overlap

    @staticmethod
    def _check_cancelled(
        cancel_event: threading.Event | None, deadline: float | None, stored: int, total: int
    ) -> None:
        reason = None
        if cancel_event is not None and cancel_event.is_set():
            reason = "cancelled"
        elif deadline is not None and time.time() >= deadline:
            reason = "timed out"
        if reason:
            logger.warning("Chunk ingestion stopped", extra={"reason": reason, "stored": stored, "total": total})
            raise IngestionCancelledError(
                f"Chunk ingestion {reason} after {stored} of {total} chunks",
                details={"stored": stored, "total": total},
            )


__all__ = ["ChunkingPipeline", "chunk_id", "chunk_documents"]
