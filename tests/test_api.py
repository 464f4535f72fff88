import dataclasses
import logging

import httpx
from fastapi.testclient import TestClient

from docstore.main import create_app


def create_collection(client, name="KB"):
    response = client.post("/collections", json={"name": name, "description": "test"})
    assert response.status_code == 201
    return response.json()["id"]


def test_health_needs_no_auth(services):
    with TestClient(create_app(services=services)) as anonymous:
        assert anonymous.get("/health").json() == {"status": "ok"}


def test_missing_token_is_rejected(services):
    with TestClient(create_app(services=services)) as anonymous:
        response = anonymous.get("/collections")

    assert response.status_code == 401
    assert response.json()["code"] == "auth_error"
    assert response.headers["www-authenticate"] == "Bearer"


def test_wrong_token_is_rejected_before_validation(client):
    response = client.post("/collections", json={}, headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


def test_unconfigured_key_is_a_server_error(services, settings):
    services = dataclasses.replace(services, settings=settings.model_copy(update={"api_key": None}))

    with TestClient(create_app(services=services)) as anonymous:
        response = anonymous.get("/collections", headers={"Authorization": "Bearer anything"})

    assert response.status_code == 500


def test_collection_lifecycle(client):
    collection_id = create_collection(client)

    assert client.get(f"/collections/{collection_id}").json()["name"] == "KB"
    assert [c["id"] for c in client.get("/collections").json()] == [collection_id]

    patched = client.patch(f"/collections/{collection_id}", json={"description": None})
    assert patched.json()["name"] == "KB"
    assert patched.json()["description"] is None

    assert client.delete(f"/collections/{collection_id}").json() == {"status": "deleted"}
    missing = client.get(f"/collections/{collection_id}")
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"


def test_duplicate_name_is_a_conflict(client):
    create_collection(client)

    response = client.post("/collections", json={"name": "KB"})

    assert response.status_code == 409
    assert response.json()["code"] == "conflict"


def test_malformed_body_is_a_validation_error(client):
    response = client.post("/collections", json={"name": ""})

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_document_routes(client):
    collection_id = create_collection(client)
    base = f"/collections/{collection_id}/documents"

    added = client.post(
        base,
        json={
            "documents": [
                {"id": "doc1", "content": "Cats are independent.", "metadata": {"category": "animal"}},
                {"id": "doc2", "content": "Dogs are loyal.", "metadata": {"category": "animal"}},
            ]
        },
    )
    assert added.json() == {"ids": ["doc1", "doc2"], "failed": []}

    updated = client.patch(
        base,
        json={"updates": [{"id": "doc2", "metadata": {"category": "pet"}}, {"id": "ghost", "content": "x"}]},
    )
    assert updated.json()["updated_ids"] == ["doc2"]
    assert updated.json()["not_found_ids"] == ["ghost"]

    deleted = client.post(f"{base}:deleteByFilter", json={"filter": {"category": "pet"}})
    assert deleted.json() == {"deleted_count": 1}

    assert client.get(f"{base}/doc2").status_code == 404
    doc1 = client.get(f"{base}/doc1").json()
    assert doc1["content"] == "Cats are independent."
    assert doc1["metadata"] == {"category": "animal"}

    listed = client.get(base, params={"limit": 10})
    assert [d["id"] for d in listed.json()] == ["doc1"]

    assert client.delete(f"{base}/doc1").json() == {"status": "deleted"}
    assert client.delete(f"{base}/doc1").status_code == 404


def test_bulk_delete_needs_confirmation(client):
    collection_id = create_collection(client)
    base = f"/collections/{collection_id}/documents"
    client.post(base, json={"documents": [{"content": "a"}, {"content": "b"}]})

    refused = client.post(f"{base}:deleteByFilter", json={"filter": {}})
    assert refused.status_code == 400

    confirmed = client.post(f"{base}:deleteByFilter", json={"filter": {}, "confirm_bulk_delete": True})
    assert confirmed.json() == {"deleted_count": 2}


def test_search_route(client):
    collection_id = create_collection(client)
    base = f"/collections/{collection_id}/documents"
    client.post(
        base,
        json={
            "documents": [
                {"id": "cats", "content": "Cats are independent animals"},
                {"id": "tax", "content": "Quarterly tax filing deadlines"},
            ]
        },
    )

    results = client.post(f"{base}:search", json={"query": "independent cats", "top_k": 1}).json()

    assert len(results) == 1
    assert results[0]["document"]["id"] == "cats"
    assert 0 < results[0]["score"] <= 1

    assert client.post(f"{base}:search", json={"query": "cats", "top_k": 0}).status_code == 400
    assert client.post(f"{base}:search", json={"query": "cats", "top_k": "3"}).status_code == 400


def test_chunk_file_route(client, source_routes, fetched_urls):
    collection_id = create_collection(client)
    url = "https://docs.example.com/page.html"
    source_routes[url] = httpx.Response(
        200, text="<html><body><h1>Guide</h1><p>" + "Plain words here. " * 40 + "</p></body></html>"
    )
    base = f"/collections/{collection_id}/documents"

    rejected = client.post(
        f"{base}:chunkFile",
        json={"type": "html", "url": url, "options": {"chunk_size": 500, "chunk_overlap": 600}},
    )
    assert rejected.status_code == 400
    assert fetched_urls == []

    response = client.post(f"{base}:chunkFile", json={"type": "html", "url": url})
    body = response.json()
    assert response.status_code == 200
    assert body["chunk_count"] == len(body["ids"]) > 1
    assert body["message"].startswith(f"Ingested {body['chunk_count']} of {body['chunk_count']} chunks")


def test_source_errors_render_as_json(client):
    collection_id = create_collection(client)

    response = client.post(
        f"/collections/{collection_id}/documents:chunkFile",
        json={"type": "txt", "url": "https://docs.example.com/missing.txt"},
    )

    assert response.status_code == 502
    assert response.json()["code"] == "source_error"
    assert response.json()["retryable"] is False


def test_create_collection_with_info_logging(client, caplog):
    caplog.set_level(logging.INFO)

    response = client.post("/collections", json={"name": "KB"})

    assert response.status_code == 201


def test_chunk_file_rejects_local_paths(client, services, tmp_path):
    collection_id = create_collection(client)
    secret = tmp_path / "secret.txt"
    secret.write_text("private notes")

    response = client.post(
        f"/collections/{collection_id}/documents:chunkFile",
        json={"type": "txt", "url": secret.as_uri()},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert services.documents.list_documents(collection_id) == []
