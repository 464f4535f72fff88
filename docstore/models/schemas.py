from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Union

from pydantic import BaseModel, Field, StrictInt

MetadataValue = Union[str, int, float, bool]


# Collections
class CollectionCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str | None = None


class CollectionUpdateRequest(BaseModel):
    """Partial update; only fields present in the request body change."""

    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None


class Collection(BaseModel):
    id: str
    name: str
    description: str | None = None
    vector_dimension: int
    metric: str
    created_at: datetime


# Documents
class DocumentInput(BaseModel):
    id: str | None = Field(default=None, min_length=1, max_length=256)
    content: str
    metadata: Dict[str, MetadataValue] = Field(default_factory=dict)


class AddDocumentsRequest(BaseModel):
    documents: List[DocumentInput] = Field(..., min_length=1)


class ItemFailure(BaseModel):
    index: int = Field(..., ge=0, description="Position of the item in the request")
    id: str | None = None
    code: str
    message: str
    retryable: bool = False


class AddDocumentsResponse(BaseModel):
    ids: List[str]
    failed: List[ItemFailure] = Field(default_factory=list)


class Document(BaseModel):
    id: str
    collection_id: str
    content: str
    metadata: Dict[str, MetadataValue]
    updated_at: datetime


class DocumentUpdate(BaseModel):
    """Omitted fields stay untouched; ``metadata`` replaces the whole mapping."""

    id: str = Field(..., min_length=1)
    content: str | None = None
    metadata: Dict[str, MetadataValue] | None = None


class UpdateDocumentsRequest(BaseModel):
    updates: List[DocumentUpdate] = Field(..., min_length=1)


class UpdateDocumentsResponse(BaseModel):
    updated_ids: List[str]
    updated_count: int = Field(..., ge=0)
    not_found_ids: List[str] = Field(default_factory=list)
    failed: List[ItemFailure] = Field(default_factory=list)


class DeleteByFilterRequest(BaseModel):
    filter: Dict[str, MetadataValue] = Field(default_factory=dict)
    confirm_bulk_delete: bool = Field(
        default=False,
        description="Required when `filter` is empty, which deletes every document",
    )


class DeleteByFilterResponse(BaseModel):
    deleted_count: int = Field(..., ge=0)


class DeleteResponse(BaseModel):
    status: Literal["deleted"] = "deleted"


# Search
class SearchRequest(BaseModel):
    query: Union[str, List[float]]
    top_k: StrictInt | None = None
    filter: Dict[str, MetadataValue] | None = None


class SearchResult(BaseModel):
    document: Document
    score: float


# Chunking
class ChunkOptions(BaseModel):
    chunk_size: int | None = Field(default=None, description="Characters per chunk")
    chunk_overlap: int | None = Field(default=None, description="Characters shared by neighbouring chunks")
    metadata: Dict[str, MetadataValue] = Field(default_factory=dict)


class ChunkFileRequest(BaseModel):
    type: str = Field(..., description="pdf, html, markdown, txt or docx")
    url: str = Field(..., min_length=1)
    options: ChunkOptions = Field(default_factory=ChunkOptions)
    timeout_sec: float | None = Field(default=None, gt=0, description="Stop ingesting after this many seconds")


class ChunkFileResponse(BaseModel):
    message: str
    chunk_count: int = Field(..., ge=0)
    ids: List[str]
    failed: List[ItemFailure] = Field(default_factory=list)


__all__ = [
    "AddDocumentsRequest",
    "AddDocumentsResponse",
    "ChunkFileRequest",
    "ChunkFileResponse",
    "ChunkOptions",
    "Collection",
    "CollectionCreateRequest",
    "CollectionUpdateRequest",
    "DeleteByFilterRequest",
    "DeleteByFilterResponse",
    "DeleteResponse",
    "Document",
    "DocumentInput",
    "DocumentUpdate",
    "ItemFailure",
    "MetadataValue",
    "SearchRequest",
    "SearchResult",
    "UpdateDocumentsRequest",
    "UpdateDocumentsResponse",
]
