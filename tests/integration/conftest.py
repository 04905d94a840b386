"""Shared fixtures for integration tests."""

from typing import Iterator

import pytest

from src.rag.embeddings import MockEmbeddingProvider
from src.rag.engine import RetrievalEngine
from src.retrieval.memory_store import InMemoryVectorStore
from src.server.tools import ToolHandler

DIM = 64


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def engine() -> Iterator[RetrievalEngine]:
    with RetrievalEngine(MockEmbeddingProvider(dimensions=DIM), InMemoryVectorStore(DIM)) as eng:
        yield eng


@pytest.fixture
def handler(engine: RetrievalEngine) -> ToolHandler:
    return ToolHandler(engine)
