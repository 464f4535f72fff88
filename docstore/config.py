"""
Service configuration loaded from environment variables.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Immutable service settings, passed explicitly to every component."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    api_key: SecretStr | None = Field(default=None, alias="DOCSTORE_API_KEY")
    openai_api_key: SecretStr | None = Field(default=None, alias="OPENAI_API_KEY")

    embedding_provider: Literal["openai", "http"] = Field(default="openai", alias="EMBEDDING_PROVIDER")
    embedding_model_name: str = Field(default="text-embedding-3-small", alias="EMBEDDING_MODEL_NAME")
    embedding_dimension: int | None = Field(default=None, gt=0, alias="EMBEDDING_DIMENSION")
    embedder_url: str = Field(default="http://127.0.0.1:8000/embed", alias="EMBEDDER_URL")
    embed_batch_size: int = Field(default=64, gt=0, alias="EMBED_BATCH_SIZE")

    vector_store_backend: Literal["chroma", "memory"] = Field(default="chroma", alias="VECTOR_STORE_BACKEND")
    vector_store_path: str = Field(default="./data/vector_store", alias="VECTOR_STORE_PATH")
    distance_metric: Literal["cosine", "l2", "ip"] = Field(default="cosine", alias="DISTANCE_METRIC")

    default_top_k: int = Field(default=5, gt=0, alias="DEFAULT_TOP_K")

    chunk_size_chars: int = Field(default=1000, gt=0, alias="CHUNK_SIZE_CHARS")
    chunk_overlap_chars: int = Field(default=200, ge=0, alias="CHUNK_OVERLAP_CHARS")

    max_concurrency: int = Field(default=4, gt=0, alias="MAX_CONCURRENCY")
    retry_attempts: int = Field(default=4, gt=0, alias="RETRY_ATTEMPTS")
    retry_min_wait: float = Field(default=1.0, ge=0, alias="RETRY_MIN_WAIT")
    retry_max_wait: float = Field(default=30.0, ge=0, alias="RETRY_MAX_WAIT")

    fetch_timeout_sec: float = Field(default=30.0, gt=0, alias="FETCH_TIMEOUT_SEC")
    max_source_bytes: int = Field(default=50 * 1024 * 1024, gt=0, alias="MAX_SOURCE_BYTES")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure base logging for the service.
    """
    logging.basicConfig(
        level=level.upper(),
        format="[%(asctime)s] [%(levelname)s] %(name)s - %(message)s",
    )
    return logging.getLogger("docstore")


def public_settings(settings: Settings) -> Dict[str, Any]:
    """
    Return settings without secrets for safe logging/inspection.
    """
    return settings.model_dump(
        exclude={"api_key", "openai_api_key"},
        exclude_none=True,
    )


__all__ = ["Settings", "get_settings", "setup_logging", "public_settings"]
