"""Vector store backed by ChromaDB.

Documents live in a single cosine-space collection. The embedding dimension
is recorded in the collection metadata when it is created and checked every
time the collection is reopened.
"""

from __future__ import annotations

import logging
from typing import Optional

import chromadb
import numpy as np
from chromadb.config import Settings

from src.rag.document import Document, SearchResult
from src.rag.errors import StorageError
from src.rag.result import Err, Ok, Result
from src.retrieval.base import MEMORY_PATH, VectorStore
from src.retrieval.ranking import order_results

logger = logging.getLogger(__name__)


class ChromaVectorStore(VectorStore):
    """ChromaDB-backed vector store for whole documents.

    Args:
        dimension: Embedding length every stored vector must have.
        path: Directory for persistent storage, or ":memory:" for an
            ephemeral in-process collection.
        collection: Name of the Chroma collection.
        client: Pre-built Chroma client; overrides ``path``.
    """

    def __init__(
        self,
        dimension: int,
        path: str = MEMORY_PATH,
        collection: str = "documents",
        client: Optional[chromadb.ClientAPI] = None,
    ) -> None:
        self._dimension = dimension
        self._collection_name = collection

        try:
            if client is not None:
                self._client = client
            elif path == MEMORY_PATH:
                self._client = chromadb.EphemeralClient(
                    settings=Settings(anonymized_telemetry=False)
                )
            else:
                self._client = chromadb.PersistentClient(
                    path=path, settings=Settings(anonymized_telemetry=False)
                )

            # vectors always come from the engine, never from Chroma's own embedder
            try:
                self._collection = self._client.get_collection(
                    name=collection, embedding_function=None
                )
            except Exception:
                self._collection = self._client.create_collection(
                    name=collection,
                    metadata={"hnsw:space": "cosine", "dimension": dimension},
                    embedding_function=None,
                )
        except Exception as e:
            raise StorageError(f"unable to open collection '{collection}': {e}") from e

        recorded = (self._collection.metadata or {}).get("dimension")
        if recorded is not None and int(recorded) != dimension:
            raise StorageError(
                f"collection '{collection}' stores {recorded}-dimensional embeddings, "
                f"model produces {dimension}"
            )
        logger.debug("Opened Chroma collection %s at %s (dim=%d)", collection, path, dimension)

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def count(self) -> int:
        """Return the number of documents in the store."""
        return self._collection.count()

    def upsert(self, document: Document) -> Result[None, StorageError]:
        if document.embedding is None:
            return Err(StorageError(f"document '{document.id}' has no embedding"))
        mismatch = self._check_dimension(document.id, document.embedding)
        if mismatch is not None:
            return Err(mismatch)

        try:
            # a single upsert call is atomic in Chroma's sqlite-backed segment
            self._collection.upsert(
                ids=[document.id],
                embeddings=[list(document.embedding)],
                documents=[document.content],
            )
            return Ok(None)
        except Exception as e:
            return Err(StorageError(f"failed to insert document: {e}"))

    def delete(self, doc_id: str) -> Result[int, StorageError]:
        try:
            existing = self._collection.get(ids=[doc_id], include=["documents"])
            affected = len(existing["ids"])
            if affected:
                self._collection.delete(ids=[doc_id])
            return Ok(affected)
        except Exception as e:
            return Err(StorageError(f"failed to delete document: {e}"))

    def scan(self) -> Result[list[Document], StorageError]:
        try:
            rows = self._collection.get(include=["documents"])
        except Exception as e:
            return Err(StorageError(f"failed to list documents: {e}"))

        documents = rows["documents"] or []
        docs = [
            Document(id=doc_id, content=content or "")
            for doc_id, content in zip(rows["ids"], documents, strict=True)
        ]
        docs.sort(key=lambda d: d.id)
        return Ok(docs)

    def top_k(self, query: np.ndarray, k: int) -> Result[list[SearchResult], StorageError]:
        if query.shape[0] != self._dimension:
            return Err(
                StorageError(
                    f"query has dimension {query.shape[0]}, store expects {self._dimension}"
                )
            )

        try:
            total = self._collection.count()
            if total == 0:
                return Ok([])

            # over-fetch so equal scores at the cut can be re-ordered by id;
            # ties are exact only while the tied group fits in the 2k rows
            results = self._collection.query(
                query_embeddings=[query.tolist()],
                n_results=min(total, k * 2),
                include=["documents", "distances"],
            )
        except Exception as e:
            return Err(StorageError(f"failed to query documents: {e}"))

        if not results["ids"] or not results["ids"][0]:
            return Ok([])

        ids = results["ids"][0]
        documents = results["documents"][0] if results["documents"] else [""] * len(ids)  # type: ignore[index]
        distances = results["distances"][0] if results["distances"] else [1.0] * len(ids)  # type: ignore[index]

        # Chroma reports cosine distance; similarity is 1 - distance
        scored = [
            SearchResult(id=doc_id, content=content or "", score=1.0 - float(distance))
            for doc_id, content, distance in zip(ids, documents, distances, strict=True)
        ]
        return Ok(order_results(scored, k))

    def close(self) -> None:
        logger.debug("Closing Chroma collection %s", self._collection_name)
