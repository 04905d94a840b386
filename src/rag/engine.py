"""Retrieval engine: add, query, list and delete documents by semantic similarity.

The engine owns one embedding provider and one vector store:
1. Text is embedded by the provider and L2-normalized
2. Normalized vectors are upserted into, or ranked by, the store

The provider is an exclusive-use resource, so every call into it goes
through a single lock. Store writes go through a second lock. Listing and
deleting never wait on the embedding lock.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import numpy as np

from src.rag.config import Settings
from src.rag.document import Document, SearchResult
from src.rag.embeddings import EmbeddingProvider, create_embedding_provider
from src.rag.errors import EmbeddingError, NotFoundError, RAGError, StorageError, ValidationError
from src.rag.result import Err, Ok, Result
from src.retrieval.base import VectorStore
from src.retrieval.factory import create_vector_store
from src.retrieval.ranking import normalize

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5


class RetrievalEngine:
    """Semantic document store over an embedding provider and a vector store.

    Usage:
        engine = RetrievalEngine(MockEmbeddingProvider(), InMemoryVectorStore(384))
        engine.add_document("doc1", "The capital of France is Paris")
        results = engine.query("capital of France", top_k=1).unwrap()

    All operations are thread-safe. ``timeout`` bounds how long an operation
    waits for the embedding model before failing with EmbeddingError; None
    waits indefinitely.
    """

    def __init__(
        self,
        embeddings: EmbeddingProvider,
        store: VectorStore,
        embed_timeout: Optional[float] = None,
    ) -> None:
        if embeddings.dimensions != store.dimension:
            raise StorageError(
                f"store expects {store.dimension}-dimensional embeddings, "
                f"provider produces {embeddings.dimensions}"
            )
        self._embeddings = embeddings
        self._store = store
        self._embed_timeout = embed_timeout
        self._embed_lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._closed = False

    @property
    def dimension(self) -> int:
        return self._store.dimension

    @property
    def document_count(self) -> int:
        """Return the number of stored documents."""
        return self._store.count

    def _embed(self, text: str, timeout: Optional[float]) -> Result[np.ndarray, RAGError]:
        wait = self._embed_timeout if timeout is None else timeout
        acquired = self._embed_lock.acquire(timeout=-1 if wait is None else wait)
        if not acquired:
            return Err(EmbeddingError(f"timed out after {wait}s waiting for the embedding model"))
        try:
            started = time.monotonic()
            raw = self._embeddings.embed(text)
        finally:
            self._embed_lock.release()

        if raw.is_err():
            return Err(raw.error)  # type: ignore[union-attr]

        vector = raw.unwrap()
        if len(vector) != self.dimension:
            return Err(
                EmbeddingError(
                    f"provider returned {len(vector)} values, expected {self.dimension}"
                )
            )
        logger.debug(
            "Embedded %d chars in %.1fms", len(text), (time.monotonic() - started) * 1000
        )
        return Ok(normalize(vector))

    def add_document(
        self, doc_id: str, content: str, timeout: Optional[float] = None
    ) -> Result[None, RAGError]:
        """Embed ``content`` and store it under ``doc_id``, replacing any prior version."""
        if not doc_id:
            return Err(ValidationError("document ID is required"))

        embedded = self._embed(content, timeout).map_err(
            lambda e: EmbeddingError(f"failed to generate embedding: {e}")
        )
        if embedded.is_err():
            return embedded  # type: ignore[return-value]

        document = Document(
            id=doc_id, content=content, embedding=tuple(embedded.unwrap().tolist())
        )
        with self._write_lock:
            stored = self._store.upsert(document)
        if stored.is_err():
            return stored

        logger.info("Stored document %s (%d chars)", doc_id, len(content))
        return Ok(None)

    def query(
        self, text: str, top_k: int = DEFAULT_TOP_K, timeout: Optional[float] = None
    ) -> Result[list[SearchResult], RAGError]:
        """Return up to ``top_k`` documents most similar to ``text``.

        A ``top_k`` of zero or less is coerced to the default of 5.
        """
        if top_k <= 0:
            logger.debug("Coercing top_k=%d to default %d", top_k, DEFAULT_TOP_K)
            top_k = DEFAULT_TOP_K

        embedded = self._embed(text, timeout).map_err(
            lambda e: EmbeddingError(f"failed to generate query embedding: {e}")
        )
        if embedded.is_err():
            return embedded  # type: ignore[return-value]

        results = self._store.top_k(embedded.unwrap(), top_k)
        if results.is_ok():
            logger.debug("Query returned %d results (top_k=%d)", len(results.unwrap()), top_k)
        return results

    def list_documents(self) -> Result[list[Document], RAGError]:
        """Return every document ordered by id, without embeddings."""
        return self._store.scan()

    def delete_document(self, doc_id: str) -> Result[None, RAGError]:
        """Remove ``doc_id``; fails with NotFoundError if nothing was deleted."""
        if not doc_id:
            return Err(ValidationError("document ID is required"))

        with self._write_lock:
            deleted = self._store.delete(doc_id)
        if deleted.is_err():
            return Err(deleted.error)  # type: ignore[union-attr]
        if deleted.unwrap() == 0:
            return Err(NotFoundError(f"document '{doc_id}' not found"))

        logger.info("Deleted document %s", doc_id)
        return Ok(None)

    def close(self) -> None:
        """Release the store, then the embedding model. Idempotent."""
        if self._closed:
            return
        self._closed = True
        try:
            self._store.close()
        finally:
            self._embeddings.close()

    def __enter__(self) -> RetrievalEngine:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


def create_engine(settings: Settings) -> RetrievalEngine:
    """Build an engine from resolved settings.

    If the store cannot be opened the already-loaded model is released
    before the error propagates.
    """
    embeddings = create_embedding_provider(settings)
    try:
        store = create_vector_store(settings, embeddings.dimensions)
    except Exception:
        embeddings.close()
        raise
    return RetrievalEngine(embeddings, store, embed_timeout=settings.embed_timeout_seconds)
