"""
Validation for document metadata and equality filters.

Both are flat mappings of string keys to scalars. Range or negation operators
are not part of the grammar; a filter is a conjunction of ``key == value``.
"""

from __future__ import annotations

import math
from typing import Any, Mapping

from docstore.errors import ValidationError
from docstore.vector_store.base import Metadata, MetadataFilter, matches

RESERVED_PREFIX = "_"
MAX_KEY_LENGTH = 256


def _check_pairs(mapping: Any, what: str) -> dict:
    if mapping is None:
        return {}
    if not isinstance(mapping, Mapping):
        raise ValidationError(f"{what} must be an object")

    checked: dict = {}
    for key, value in mapping.items():
        if not isinstance(key, str) or not key:
            raise ValidationError(f"{what} keys must be non-empty strings")
        if len(key) > MAX_KEY_LENGTH:
            raise ValidationError(f"{what} key '{key[:32]}...' is too long")
        if key.startswith(RESERVED_PREFIX):
            raise ValidationError(f"{what} key '{key}' uses the reserved '{RESERVED_PREFIX}' prefix")
        if not isinstance(value, (str, int, float, bool)):
            raise ValidationError(
                f"{what} value for '{key}' must be a string, number or boolean",
                details={"key": key, "type": type(value).__name__},
            )
        if isinstance(value, float) and not math.isfinite(value):
            raise ValidationError(f"{what} value for '{key}' must be finite")
        checked[key] = value
    return checked


def validate_metadata(metadata: Any) -> Metadata:
    return _check_pairs(metadata, "metadata")


def validate_filter(where: Any) -> MetadataFilter:
    return _check_pairs(where, "filter")


__all__ = ["matches", "validate_metadata", "validate_filter", "RESERVED_PREFIX"]
