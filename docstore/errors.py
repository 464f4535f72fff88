"""
Error taxonomy shared by every docstore component.

Each error carries a stable ``code`` and an HTTP status so the API layer can
render it without knowing which component raised it.
"""

from __future__ import annotations

from typing import Any, Dict


class DocStoreError(Exception):
    """Base exception for docstore errors."""

    code = "docstore_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, *, retryable: bool | None = None, details: Dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
            "details": self.details,
        }


class ValidationError(DocStoreError):
    """Malformed input. Never retried."""

    code = "validation_error"
    status_code = 400


class AuthError(DocStoreError):
    """Missing or invalid credentials."""

    code = "auth_error"
    status_code = 401


class NotFoundError(DocStoreError):
    """Unknown collection or document."""

    code = "not_found"
    status_code = 404


class ConflictError(DocStoreError):
    """Collection name already taken."""

    code = "conflict"
    status_code = 409


class RateLimitError(DocStoreError):
    """Provider or backend asked us to slow down."""

    code = "rate_limited"
    status_code = 429
    retryable = True

    def __init__(self, message: str, *, retry_after: float | None = None, details: Dict[str, Any] | None = None):
        super().__init__(message, details=details)
        self.retry_after = retry_after


class BackendError(DocStoreError):
    """Vector backend or embedding provider failure.

    ``retryable`` separates transient failures (connection reset, 5xx) from
    structural ones such as a dimension mismatch.
    """

    code = "backend_error"
    status_code = 502


class SourceError(DocStoreError):
    """A chunking source could not be fetched or parsed."""

    code = "source_error"
    status_code = 502


class SourceParseError(SourceError):
    """The source was fetched but its text could not be extracted."""

    status_code = 422


class IngestionCancelledError(DocStoreError):
    """Chunk ingestion stopped before every chunk was stored."""

    code = "cancelled"
    status_code = 408


__all__ = [
    "DocStoreError",
    "ValidationError",
    "AuthError",
    "NotFoundError",
    "ConflictError",
    "RateLimitError",
    "BackendError",
    "SourceError",
    "SourceParseError",
    "IngestionCancelledError",
]
