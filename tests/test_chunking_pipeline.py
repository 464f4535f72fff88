import threading

import httpx
import pytest

from docstore.errors import IngestionCancelledError, NotFoundError, SourceError, SourceParseError, ValidationError
from docstore.indexing.pipeline import chunk_id

URL = "https://docs.example.com/guide.md"

GUIDE = "\n\n".join(
    f"## Section {i}\n\nParagraph {i} explains one small topic in a couple of plain sentences. "
    f"It keeps going a little so chunks have something to hold."
    for i in range(12)
)


@pytest.fixture
def guide(source_routes):
    source_routes[URL] = httpx.Response(200, text=GUIDE, headers={"content-type": "text/markdown"})
    return URL


def test_overlap_not_below_size_fails_before_fetch(services, make_collection, guide, fetched_urls):
    collection_id = make_collection()
    request = {"type": "markdown", "url": guide, "options": {"chunk_size": 500, "chunk_overlap": 600}}

    with pytest.raises(ValidationError):
        services.chunking.chunk_file_to_collection(collection_id, request)

    assert fetched_urls == []


def test_unsupported_type_fails_before_fetch(services, make_collection, guide, fetched_urls):
    with pytest.raises(ValidationError):
        services.chunking.chunk_file_to_collection(make_collection(), {"type": "xlsx", "url": guide})

    assert fetched_urls == []


def test_unknown_collection_fails_before_fetch(services, guide, fetched_urls):
    with pytest.raises(NotFoundError):
        services.chunking.chunk_file_to_collection("missing", {"type": "markdown", "url": guide})

    assert fetched_urls == []


def test_chunks_are_ingested_with_provenance(services, vector_store, make_collection, guide):
    collection_id = make_collection("Guides")

    result = services.chunking.chunk_file_to_collection(
        collection_id,
        {"type": "Markdown", "url": guide, "options": {"chunk_size": 300, "chunk_overlap": 50, "metadata": {"team": "docs"}}},
    )

    assert result.chunk_count > 1
    assert len(result.ids) == result.chunk_count
    assert result.failed == []
    assert result.message == f"Ingested {result.chunk_count} of {result.chunk_count} chunks from {guide} into collection 'Guides'"
    assert vector_store.count(collection_id) == result.chunk_count

    first = services.documents.get_document(collection_id, chunk_id(guide, 0))
    assert first.metadata["team"] == "docs"
    assert first.metadata["source_url"] == guide
    assert first.metadata["source_type"] == "markdown"
    assert first.metadata["chunk_index"] == 0
    assert first.metadata["chunk_count"] == result.chunk_count
    assert "##" not in first.content
    assert len(first.content) <= 300


def test_reingesting_replaces_chunks(services, vector_store, make_collection, guide):
    collection_id = make_collection()
    request = {"type": "markdown", "url": guide, "options": {"chunk_size": 300, "chunk_overlap": 50}}

    first = services.chunking.chunk_file_to_collection(collection_id, request)
    second = services.chunking.chunk_file_to_collection(collection_id, request)

    assert first.ids == second.ids
    assert vector_store.count(collection_id) == first.chunk_count


def test_reingesting_a_shorter_source_drops_leftover_chunks(
    services, vector_store, source_routes, make_collection, guide
):
    collection_id = make_collection()
    services.documents.add_documents(collection_id, [{"id": "note", "content": "Unrelated note."}])
    request = {"type": "markdown", "url": guide, "options": {"chunk_size": 300, "chunk_overlap": 50}}

    first = services.chunking.chunk_file_to_collection(collection_id, request)
    source_routes[URL] = httpx.Response(200, text="## Short\n\nOnly one paragraph now.")
    second = services.chunking.chunk_file_to_collection(collection_id, request)

    assert first.chunk_count > 1
    assert second.ids == [chunk_id(URL, 0)]
    remaining = services.documents.list_documents(collection_id)
    assert sorted(doc.id for doc in remaining) == sorted([chunk_id(URL, 0), "note"])
    chunk = services.documents.get_document(collection_id, chunk_id(URL, 0))
    assert chunk.metadata["chunk_count"] == 1
    assert vector_store.count(collection_id) == 2


def test_defaults_come_from_settings(services, settings, make_collection, guide):
    collection_id = make_collection()

    result = services.chunking.chunk_file_to_collection(collection_id, {"type": "markdown", "url": guide})

    for doc_id in result.ids:
        assert len(services.documents.get_document(collection_id, doc_id).content) <= settings.chunk_size_chars


def test_caller_metadata_cannot_override_provenance(services, make_collection, guide):
    collection_id = make_collection()

    result = services.chunking.chunk_file_to_collection(
        collection_id, {"type": "markdown", "url": guide, "options": {"metadata": {"source_url": "spoofed"}}}
    )

    assert services.documents.get_document(collection_id, result.ids[0]).metadata["source_url"] == guide


def test_missing_source_ingests_nothing(services, vector_store, make_collection):
    collection_id = make_collection()

    with pytest.raises(SourceError) as exc:
        services.chunking.chunk_file_to_collection(collection_id, {"type": "txt", "url": "https://docs.example.com/gone.txt"})

    assert exc.value.retryable is False
    assert vector_store.count(collection_id) == 0


def test_unparseable_source(services, source_routes, make_collection):
    url = "https://docs.example.com/broken.pdf"
    source_routes[url] = httpx.Response(200, content=b"definitely not a pdf")

    with pytest.raises(SourceParseError):
        services.chunking.chunk_file_to_collection(make_collection(), {"type": "pdf", "url": url})


def test_cancel_stops_before_next_batch(services, vector_store, make_collection, guide):
    collection_id = make_collection()
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(IngestionCancelledError) as exc:
        services.chunking.chunk_file_to_collection(
            collection_id, {"type": "markdown", "url": guide}, cancel_event=cancel
        )

    assert exc.value.status_code == 408
    assert exc.value.details["stored"] == 0
    assert vector_store.count(collection_id) == 0


def test_cancel_keeps_already_ingested_batches(services, vector_store, make_collection, guide, monkeypatch):
    collection_id = make_collection()
    cancel = threading.Event()
    add_documents = services.documents.add_documents

    def add_then_cancel(*args, **kwargs):
        result = add_documents(*args, **kwargs)
        cancel.set()
        return result

    monkeypatch.setattr(services.documents, "add_documents", add_then_cancel)

    with pytest.raises(IngestionCancelledError) as exc:
        services.chunking.chunk_file_to_collection(
            collection_id, {"type": "markdown", "url": guide}, cancel_event=cancel
        )

    stored = exc.value.details["stored"]
    assert stored == services.chunking.embed_batch
    assert vector_store.count(collection_id) == stored
