"""
Vector store abstractions and factories.
"""

from docstore.config import Settings
from docstore.vector_store.base import CollectionRecord, StoredDocument, VectorStore
from docstore.vector_store.chroma_store import ChromaVectorStore
from docstore.vector_store.memory_store import InMemoryVectorStore


def get_vector_store(settings: Settings) -> VectorStore:
    """
    Factory to obtain the configured VectorStore instance.
    """
    backend = settings.vector_store_backend.lower()
    if backend == "chroma":
        return ChromaVectorStore(persist_directory=settings.vector_store_path)
    if backend == "memory":
        return InMemoryVectorStore()
    raise ValueError(f"Unsupported vector store backend: {backend}")


__all__ = [
    "get_vector_store",
    "ChromaVectorStore",
    "InMemoryVectorStore",
    "CollectionRecord",
    "StoredDocument",
    "VectorStore",
]
