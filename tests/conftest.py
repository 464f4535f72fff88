from __future__ import annotations

import hashlib
import math
from typing import Callable, Dict, List, Sequence

import httpx
import pytest
from fastapi.testclient import TestClient

from docstore.config import Settings
from docstore.indexing.fetcher import SourceFetcher
from docstore.main import create_app
from docstore.services import build_services
from docstore.vector_store.memory_store import InMemoryVectorStore

API_KEY = "test-key"


class FakeEmbeddings:
    """Deterministic bag-of-words embeddings; similar wording gives similar vectors."""

    def __init__(self, dimension: int = 16) -> None:
        self._dimension = dimension
        self.calls: List[str] = []
        self.batch_calls: List[List[str]] = []
        # text -> exception raised on the next embed of that text
        self.failures: Dict[str, List[Exception]] = {}

    @property
    def dimension(self) -> int:
        return self._dimension

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        self.batch_calls.append(list(texts))
        return [self.embed_text(text) for text in texts]

    def embed_text(self, text: str) -> List[float]:
        self.calls.append(text)
        pending = self.failures.get(text)
        if pending:
            raise pending.pop(0)

        vector = [0.0] * self._dimension
        for word in text.lower().split():
            digest = hashlib.sha256(word.strip(".,!?").encode()).digest()
            vector[digest[0] % self._dimension] += 1.0
        norm = math.sqrt(sum(x * x for x in vector))
        return [x / norm for x in vector] if norm else vector


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        api_key=API_KEY,
        vector_store_backend="memory",
        chunk_size_chars=200,
        chunk_overlap_chars=40,
        embed_batch_size=4,
        retry_attempts=3,
        retry_min_wait=0,
        retry_max_wait=0,
        log_level="WARNING",
    )


@pytest.fixture
def embeddings() -> FakeEmbeddings:
    return FakeEmbeddings()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def source_routes() -> Dict[str, httpx.Response]:
    """URL -> canned response served by the fake transport."""
    return {}


@pytest.fixture
def fetched_urls() -> List[str]:
    return []


@pytest.fixture
def fetcher(source_routes, fetched_urls) -> SourceFetcher:
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        fetched_urls.append(url)
        response = source_routes.get(url)
        if response is None:
            return httpx.Response(404, text="missing")
        return response

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return SourceFetcher(timeout=5, max_bytes=1024 * 1024, client=client, retry_delay_base=0)


@pytest.fixture
def services(settings, vector_store, embeddings, fetcher):
    return build_services(settings, vector_store=vector_store, embeddings=embeddings, fetcher=fetcher)


@pytest.fixture
def client(services) -> TestClient:
    app = create_app(services=services)
    with TestClient(app) as test_client:
        test_client.headers.update({"Authorization": f"Bearer {API_KEY}"})
        yield test_client


@pytest.fixture
def make_collection(services) -> Callable[..., str]:
    def make(name: str = "KB", description: str | None = None) -> str:
        return services.registry.create(name, description).id

    return make


@pytest.fixture
def embeddings_factory() -> Callable[..., FakeEmbeddings]:
    return FakeEmbeddings
