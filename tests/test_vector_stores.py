import uuid
from datetime import datetime, timezone

import chromadb
import pytest

from docstore.errors import BackendError
from docstore.vector_store.base import CollectionRecord, StoredDocument, matches
from docstore.vector_store.chroma_store import ChromaVectorStore, build_where
from docstore.vector_store.memory_store import InMemoryVectorStore, distance


def make_record(metric="cosine", name="KB"):
    return CollectionRecord(
        id=str(uuid.uuid4()),
        name=name,
        vector_dimension=3,
        metric=metric,
        created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )


def make_doc(doc_id, embedding, **metadata):
    return StoredDocument(
        id=doc_id,
        text=f"text of {doc_id}",
        metadata=metadata,
        updated_at=datetime(2024, 1, 3, tzinfo=timezone.utc),
        embedding=embedding,
    )


@pytest.fixture(params=["memory", "chroma"])
def store(request):
    if request.param == "memory":
        return InMemoryVectorStore()
    return ChromaVectorStore(persist_directory="unused", client=chromadb.EphemeralClient())


def test_build_where():
    assert build_where(None) is None
    assert build_where({}) is None
    assert build_where({"a": 1}) == {"a": {"$eq": 1}}
    assert build_where({"b": "x", "a": True}) == {"$and": [{"a": {"$eq": True}}, {"b": {"$eq": "x"}}]}


def test_matches_keeps_bools_and_numbers_apart():
    assert matches({"flag": True}, {"flag": True})
    assert not matches({"flag": 1}, {"flag": True})
    assert not matches({"n": True}, {"n": 1})
    assert matches({"n": 1}, {"n": 1.0})
    assert not matches({}, {"missing": "x"})
    assert matches({"anything": 1}, None)


def test_distances():
    assert distance("cosine", [1, 0], [1, 0]) == pytest.approx(0.0)
    assert distance("cosine", [1, 0], [0, 1]) == pytest.approx(1.0)
    assert distance("cosine", [0, 0], [1, 0]) == 1.0
    assert distance("l2", [0, 0], [3, 4]) == pytest.approx(25.0)
    assert distance("ip", [1, 2], [3, 4]) == pytest.approx(-10.0)


def test_collection_record_roundtrip(store):
    record = make_record()
    store.create_collection(record)

    loaded = store.get_collection(record.id)
    assert loaded.name == "KB"
    assert loaded.vector_dimension == 3
    assert loaded.metric == "cosine"
    assert loaded.created_at == record.created_at
    assert record.id in [r.id for r in store.list_collections()]

    record.name = "renamed"
    record.description = "about"
    store.update_collection(record)
    assert store.get_collection(record.id).name == "renamed"
    assert store.get_collection(record.id).description == "about"

    store.delete_collection(record.id)
    assert store.get_collection(record.id) is None


def test_documents_roundtrip(store):
    record = make_record()
    store.create_collection(record)
    store.upsert_documents(
        record.id,
        [
            make_doc("a", [1.0, 0.0, 0.0], kind="x", n=1),
            make_doc("b", [0.0, 1.0, 0.0], kind="y", n=2),
            make_doc("c", [0.9, 0.1, 0.0], kind="x", n=2),
        ],
    )

    assert store.count(record.id) == 3
    got = store.get_documents(record.id, ["a", "missing"], include_embeddings=True)
    assert [d.id for d in got] == ["a"]
    assert got[0].metadata == {"kind": "x", "n": 1}
    assert got[0].embedding == pytest.approx([1.0, 0.0, 0.0])
    assert got[0].updated_at == datetime(2024, 1, 3, tzinfo=timezone.utc)

    assert sorted(store.find_ids(record.id, {"kind": "x"})) == ["a", "c"]
    assert store.find_ids(record.id, {"kind": "x", "n": 2}) == ["c"]

    hits = store.search(record.id, [1.0, 0.0, 0.0], top_k=2)
    assert [doc.id for doc, _ in hits] == ["a", "c"]
    assert hits[0][1] <= hits[1][1]

    filtered = store.search(record.id, [1.0, 0.0, 0.0], top_k=5, where={"kind": "y"})
    assert [doc.id for doc, _ in filtered] == ["b"]

    store.delete_documents(record.id, ["a", "b"])
    assert store.count(record.id) == 1


def test_search_on_empty_collection(store):
    record = make_record()
    store.create_collection(record)

    assert store.search(record.id, [1.0, 0.0, 0.0], top_k=3) == []


def test_missing_collection_is_a_backend_error(store):
    with pytest.raises(BackendError):
        store.count("0" * 36)
