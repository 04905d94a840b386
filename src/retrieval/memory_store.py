"""In-process VectorStore used for tests and throwaway servers."""

from __future__ import annotations

import threading
from typing import Optional

import numpy as np

from src.rag.document import Document, SearchResult
from src.rag.errors import StorageError
from src.rag.result import Err, Ok, Result
from src.retrieval.base import VectorStore
from src.retrieval.ranking import rank_top_k


class InMemoryVectorStore(VectorStore):
    """Keeps documents in a dict and ranks them inline with numpy.

    Documents may be stored without an embedding; they are listed but never
    ranked.
    """

    def __init__(self, dimension: int) -> None:
        self._dimension = dimension
        self._rows: dict[str, tuple[str, Optional[np.ndarray]]] = {}
        self._lock = threading.RLock()

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._rows)

    def upsert(self, document: Document) -> Result[None, StorageError]:
        mismatch = self._check_dimension(document.id, document.embedding)
        if mismatch is not None:
            return Err(mismatch)

        vector = (
            np.array(document.embedding, dtype=np.float64)
            if document.embedding is not None
            else None
        )
        with self._lock:
            self._rows[document.id] = (document.content, vector)
        return Ok(None)

    def delete(self, doc_id: str) -> Result[int, StorageError]:
        with self._lock:
            return Ok(1 if self._rows.pop(doc_id, None) is not None else 0)

    def scan(self) -> Result[list[Document], StorageError]:
        with self._lock:
            snapshot = sorted(self._rows.items())
        return Ok([Document(id=doc_id, content=content) for doc_id, (content, _) in snapshot])

    def top_k(self, query: np.ndarray, k: int) -> Result[list[SearchResult], StorageError]:
        with self._lock:
            rows = [(doc_id, content, vector) for doc_id, (content, vector) in self._rows.items()]
        try:
            return Ok(rank_top_k(query, rows, k))
        except ValueError as e:
            return Err(StorageError(f"failed to query documents: {e}"))

    def close(self) -> None:
        with self._lock:
            self._rows.clear()
