"""Factory for vector stores."""

from __future__ import annotations

from src.rag.config import Settings, StoreBackend
from src.retrieval.base import VectorStore
from src.retrieval.memory_store import InMemoryVectorStore


def create_vector_store(settings: Settings, dimension: int) -> VectorStore:
    """Create the configured vector store for embeddings of ``dimension``."""
    if settings.store == StoreBackend.MEMORY:
        return InMemoryVectorStore(dimension)

    from src.retrieval.store import ChromaVectorStore

    return ChromaVectorStore(dimension, path=settings.db_path, collection=settings.collection)
