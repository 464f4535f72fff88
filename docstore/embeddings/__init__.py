"""
Embedding providers and factories.
"""

from docstore.config import Settings
from docstore.embeddings.base import EmbeddingProvider
from docstore.embeddings.client import EmbeddingsClient
from docstore.embeddings.http_client import HTTPEmbeddingsClient


def get_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """
    Factory to obtain the configured EmbeddingProvider.
    """
    provider = settings.embedding_provider.lower()
    if provider == "openai":
        api_key = settings.openai_api_key.get_secret_value() if settings.openai_api_key else None
        return EmbeddingsClient(
            model=settings.embedding_model_name,
            batch_size=settings.embed_batch_size,
            dimension=settings.embedding_dimension,
            api_key=api_key,
        )
    if provider == "http":
        return HTTPEmbeddingsClient(
            url=settings.embedder_url,
            batch_size=settings.embed_batch_size,
            dimension=settings.embedding_dimension,
            timeout=settings.fetch_timeout_sec,
        )
    raise ValueError(f"Unsupported embedding provider: {provider}")


__all__ = ["get_embedding_provider", "EmbeddingProvider", "EmbeddingsClient", "HTTPEmbeddingsClient"]
