"""
Text chunking utilities.

Sizes are measured in characters. A window holds at most ``chunk_size``
characters; its end is pulled back to the nearest paragraph break, line
break, sentence end or space found in the second half of the window, and the
next window starts exactly ``chunk_overlap`` characters before that end.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from docstore.errors import ValidationError

BREAK_SEPARATORS = ("\n\n", "\n", ". ", "? ", "! ", " ")


@dataclass
class TextChunk:
    index: int
    text: str
    position: int


def validate_chunk_params(chunk_size: int, chunk_overlap: int) -> None:
    for name, value in (("chunk_size", chunk_size), ("chunk_overlap", chunk_overlap)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"{name} must be an integer")
    if chunk_size <= 0:
        raise ValidationError("chunk_size must be positive")
    if not 0 <= chunk_overlap < chunk_size:
        raise ValidationError(
            f"chunk_overlap must satisfy 0 <= chunk_overlap < chunk_size (got {chunk_overlap} >= {chunk_size})"
            if chunk_overlap >= chunk_size
            else "chunk_overlap must not be negative",
            details={"chunk_size": chunk_size, "chunk_overlap": chunk_overlap},
        )


def _find_break(text: str, start: int, end: int, chunk_size: int, chunk_overlap: int) -> int:
    # Any break must leave room for the next window to move forward
    earliest = start + max(chunk_overlap + 1, chunk_size // 2)
    if earliest >= end:
        return end
    for sep in BREAK_SEPARATORS:
        idx = text.rfind(sep, earliest, end)
        if idx != -1:
            return idx + len(sep)
    return end


def split_text(text: str, chunk_size: int, chunk_overlap: int) -> List[TextChunk]:
    validate_chunk_params(chunk_size, chunk_overlap)

    chunks: List[TextChunk] = []
    length = len(text)
    start = 0

    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            end = _find_break(text, start, end, chunk_size, chunk_overlap)

        raw = text[start:end]
        stripped = raw.strip()
        if stripped:
            offset = len(raw) - len(raw.lstrip())
            chunks.append(TextChunk(index=len(chunks), text=stripped, position=start + offset))

        if end >= length:
            break
        start = end - chunk_overlap

    return chunks


__all__ = ["TextChunk", "split_text", "validate_chunk_params"]
