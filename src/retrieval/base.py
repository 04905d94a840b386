"""Vector store contract used by the retrieval engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from src.rag.document import Document, SearchResult
from src.rag.errors import StorageError
from src.rag.result import Result

MEMORY_PATH = ":memory:"


class VectorStore(ABC):
    """A table of (id, content, embedding) rows with a fixed embedding dimension.

    Implementations must be safe for concurrent reads. Writers are
    serialized by the engine.
    """

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Embedding length recorded when the store was opened."""
        ...

    @property
    @abstractmethod
    def count(self) -> int:
        """Number of stored documents."""
        ...

    @abstractmethod
    def upsert(self, document: Document) -> Result[None, StorageError]:
        """Insert or wholly replace the document with ``document.id``."""
        ...

    @abstractmethod
    def delete(self, doc_id: str) -> Result[int, StorageError]:
        """Delete by id and return the number of rows removed."""
        ...

    @abstractmethod
    def scan(self) -> Result[list[Document], StorageError]:
        """Return every document ordered by id, embeddings omitted."""
        ...

    @abstractmethod
    def top_k(self, query: np.ndarray, k: int) -> Result[list[SearchResult], StorageError]:
        """Return up to ``k`` documents ranked against a normalized query vector."""
        ...

    def close(self) -> None:
        """Release backend resources."""

    def _check_dimension(self, doc_id: str, embedding: Optional[tuple[float, ...]]) -> Optional[StorageError]:
        if embedding is not None and len(embedding) != self.dimension:
            return StorageError(
                f"embedding for '{doc_id}' has dimension {len(embedding)}, "
                f"store expects {self.dimension}"
            )
        return None
