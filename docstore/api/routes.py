from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status

from docstore.api.auth import require_api_key
from docstore.models.schemas import (
    AddDocumentsRequest,
    AddDocumentsResponse,
    ChunkFileRequest,
    ChunkFileResponse,
    Collection,
    CollectionCreateRequest,
    CollectionUpdateRequest,
    DeleteByFilterRequest,
    DeleteByFilterResponse,
    DeleteResponse,
    Document,
    SearchRequest,
    SearchResult,
    UpdateDocumentsRequest,
    UpdateDocumentsResponse,
)
from docstore.services import Services

router = APIRouter(prefix="/collections", tags=["collections"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger(__name__)


def get_services(request: Request) -> Services:
    return request.app.state.services


# Collections
@router.post("", response_model=Collection, status_code=status.HTTP_201_CREATED, summary="Create collection")
def create_collection(body: CollectionCreateRequest, services: Services = Depends(get_services)) -> Collection:
    return services.registry.create(body.name, body.description)


@router.get("", response_model=List[Collection], summary="List collections")
def list_collections(services: Services = Depends(get_services)) -> List[Collection]:
    return services.registry.list()


@router.get("/{collection_id}", response_model=Collection, summary="Get collection")
def get_collection(collection_id: str, services: Services = Depends(get_services)) -> Collection:
    return services.registry.get(collection_id)


@router.patch("/{collection_id}", response_model=Collection, summary="Update collection")
def update_collection(
    collection_id: str, body: CollectionUpdateRequest, services: Services = Depends(get_services)
) -> Collection:
    return services.registry.update(collection_id, **body.model_dump(exclude_unset=True))


@router.delete("/{collection_id}", response_model=DeleteResponse, summary="Delete collection and its documents")
def delete_collection(collection_id: str, services: Services = Depends(get_services)) -> DeleteResponse:
    services.registry.delete(collection_id)
    return DeleteResponse()


# Documents
@router.post("/{collection_id}/documents", response_model=AddDocumentsResponse, summary="Add or upsert documents")
def add_documents(
    collection_id: str, body: AddDocumentsRequest, services: Services = Depends(get_services)
) -> AddDocumentsResponse:
    return services.documents.add_documents(collection_id, body.documents)


@router.get("/{collection_id}/documents", response_model=List[Document], summary="List documents")
def list_documents(
    collection_id: str,
    limit: int = Query(default=20, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    services: Services = Depends(get_services),
) -> List[Document]:
    return services.documents.list_documents(collection_id, limit=limit, offset=offset)


@router.patch("/{collection_id}/documents", response_model=UpdateDocumentsResponse, summary="Update documents")
def update_documents(
    collection_id: str, body: UpdateDocumentsRequest, services: Services = Depends(get_services)
) -> UpdateDocumentsResponse:
    return services.documents.update_documents(collection_id, body.updates)


@router.post(
    "/{collection_id}/documents:deleteByFilter",
    response_model=DeleteByFilterResponse,
    summary="Delete documents matching a metadata filter",
)
def delete_documents_by_metadata(
    collection_id: str, body: DeleteByFilterRequest, services: Services = Depends(get_services)
) -> DeleteByFilterResponse:
    return services.documents.delete_documents_by_metadata(
        collection_id, body.filter, confirm_bulk_delete=body.confirm_bulk_delete
    )


@router.post("/{collection_id}/documents:search", response_model=List[SearchResult], summary="Similarity search")
def search_documents(
    collection_id: str, body: SearchRequest, services: Services = Depends(get_services)
) -> List[SearchResult]:
    logger.info("Search request", extra={"collection": collection_id, "top_k": body.top_k})
    return services.search.search(collection_id, body.query, top_k=body.top_k, filter=body.filter)


@router.post(
    "/{collection_id}/documents:chunkFile",
    response_model=ChunkFileResponse,
    summary="Fetch, chunk and ingest a file",
)
def chunk_file(
    collection_id: str, body: ChunkFileRequest, services: Services = Depends(get_services)
) -> ChunkFileResponse:
    logger.info("Chunk file requested", extra={"collection": collection_id, "type": body.type, "url": body.url})
    return services.chunking.chunk_file_to_collection(collection_id, body)


@router.get("/{collection_id}/documents/{document_id}", response_model=Document, summary="Get document")
def get_document(collection_id: str, document_id: str, services: Services = Depends(get_services)) -> Document:
    return services.documents.get_document(collection_id, document_id)


@router.delete(
    "/{collection_id}/documents/{document_id}", response_model=DeleteResponse, summary="Delete document"
)
def delete_document(
    collection_id: str, document_id: str, services: Services = Depends(get_services)
) -> DeleteResponse:
    services.documents.delete_document(collection_id, document_id)
    return DeleteResponse()


__all__ = ["router"]
