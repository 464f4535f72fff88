"""
Embedding provider interface.
"""

from __future__ import annotations

from typing import List, Protocol, Sequence


class EmbeddingProvider(Protocol):
    @property
    def dimension(self) -> int:
        ...

    def embed_texts(self, texts: Sequence[str]) -> List[List[float]]:
        ...

    def embed_text(self, text: str) -> List[float]:
        ...


__all__ = ["EmbeddingProvider"]
