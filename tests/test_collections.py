import logging
import threading
import time

import pytest

from docstore.errors import ConflictError, NotFoundError, ValidationError


def test_create_binds_embedding_dimension(services, embeddings):
    collection = services.registry.create("KB", "knowledge base")

    assert collection.name == "KB"
    assert collection.description == "knowledge base"
    assert collection.vector_dimension == embeddings.dimension
    assert collection.metric == "cosine"
    assert services.registry.get(collection.id) == collection


def test_duplicate_name_conflicts(services):
    services.registry.create("KB")

    with pytest.raises(ConflictError) as exc:
        services.registry.create("KB")

    assert exc.value.status_code == 409


@pytest.mark.parametrize("name", ["", "   ", "x" * 129])
def test_invalid_name_rejected(services, name):
    with pytest.raises(ValidationError):
        services.registry.create(name)


def test_list_is_ordered_by_creation(services):
    assert services.registry.list() == []

    first = services.registry.create("first")
    second = services.registry.create("second")

    assert [c.id for c in services.registry.list()] == [first.id, second.id]


def test_update_is_partial(services):
    collection = services.registry.create("KB", "old")

    renamed = services.registry.update(collection.id, name="KB2")
    assert renamed.name == "KB2"
    assert renamed.description == "old"

    cleared = services.registry.update(collection.id, description=None)
    assert cleared.name == "KB2"
    assert cleared.description is None


def test_update_to_taken_name_conflicts(services):
    services.registry.create("a")
    b = services.registry.create("b")

    with pytest.raises(ConflictError):
        services.registry.update(b.id, name="a")

    # Renaming to its own name is a no-op, not a conflict
    assert services.registry.update(b.id, name="b").name == "b"


def test_delete_cascades_to_documents(services, make_collection):
    collection_id = make_collection()
    services.documents.add_documents(collection_id, [{"id": "doc1", "content": "Cats are small."}])

    services.registry.delete(collection_id)

    with pytest.raises(NotFoundError):
        services.registry.get(collection_id)
    with pytest.raises(NotFoundError):
        services.documents.get_document(collection_id, "doc1")
    assert services.registry.list() == []


def test_unknown_collection_not_found(services):
    with pytest.raises(NotFoundError):
        services.registry.get("missing")
    with pytest.raises(NotFoundError):
        services.registry.delete("missing")
    with pytest.raises(NotFoundError):
        services.registry.update("missing", name="x")


def test_create_logs_at_info(services, caplog):
    caplog.set_level(logging.INFO)

    collection = services.registry.create("KB")

    record = next(r for r in caplog.records if r.getMessage() == "Collection created")
    assert record.collection == collection.id
    assert record.collection_name == "KB"


def test_concurrent_creates_with_one_name(services, vector_store, monkeypatch):
    list_collections = vector_store.list_collections

    def slow_list_collections():
        records = list_collections()
        time.sleep(0.1)
        return records

    monkeypatch.setattr(vector_store, "list_collections", slow_list_collections)
    outcomes = []

    def create():
        try:
            outcomes.append(services.registry.create("KB").id)
        except ConflictError as exc:
            outcomes.append(exc)

    threads = [threading.Thread(target=create) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert sum(isinstance(outcome, ConflictError) for outcome in outcomes) == 1
    assert [c.name for c in services.registry.list()] == ["KB"]
