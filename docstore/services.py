"""
Wiring of the docstore components from one immutable Settings value.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from docstore.config import Settings
from docstore.documents.batching import RetryPolicy
from docstore.documents.store import DocumentStore
from docstore.embeddings import EmbeddingProvider, get_embedding_provider
from docstore.indexing.fetcher import SourceFetcher
from docstore.indexing.pipeline import ChunkingPipeline
from docstore.registry.collections import CollectionRegistry
from docstore.search.engine import SearchEngine
from docstore.vector_store import VectorStore, get_vector_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Services:
    settings: Settings
    vector_store: VectorStore
    embeddings: EmbeddingProvider
    registry: CollectionRegistry
    documents: DocumentStore
    search: SearchEngine
    chunking: ChunkingPipeline


def build_services(
    settings: Settings,
    vector_store: VectorStore | None = None,
    embeddings: EmbeddingProvider | None = None,
    fetcher: SourceFetcher | None = None,
) -> Services:
    """
    Build every component once. Backend and provider are chosen here and
    never mixed per call.
    """
    vector_store = vector_store or get_vector_store(settings)
    embeddings = embeddings or get_embedding_provider(settings)
    retry_policy = RetryPolicy.from_settings(settings)

    registry = CollectionRegistry(vector_store, embeddings, metric=settings.distance_metric)
    documents = DocumentStore(
        vector_store,
        embeddings,
        registry,
        retry_policy=retry_policy,
        max_concurrency=settings.max_concurrency,
    )
    search = SearchEngine(
        vector_store,
        embeddings,
        registry,
        retry_policy=retry_policy,
        default_top_k=settings.default_top_k,
    )
    chunking = ChunkingPipeline(
        documents,
        registry,
        fetcher or SourceFetcher(timeout=settings.fetch_timeout_sec, max_bytes=settings.max_source_bytes),
        chunk_size=settings.chunk_size_chars,
        chunk_overlap=settings.chunk_overlap_chars,
        embed_batch=settings.embed_batch_size,
    )
    logger.info(
        "Services built",
        extra={"backend": settings.vector_store_backend, "embedding_provider": settings.embedding_provider},
    )
    return Services(
        settings=settings,
        vector_store=vector_store,
        embeddings=embeddings,
        registry=registry,
        documents=documents,
        search=search,
        chunking=chunking,
    )


__all__ = ["Services", "build_services"]
