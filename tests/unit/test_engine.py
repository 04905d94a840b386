"""Tests for the retrieval engine."""

import threading
import uuid
from typing import Iterator

import numpy as np
import pytest
from hypothesis import given, settings, strategies as st

from src.rag.config import MockConfig, StoreBackend
from src.rag.embeddings import EmbeddingProvider, MockEmbeddingProvider
from src.rag.engine import DEFAULT_TOP_K, RetrievalEngine, create_engine
from src.rag.errors import EmbeddingError, NotFoundError, StorageError, ValidationError
from src.rag.result import Err, Ok, Result
from src.retrieval.memory_store import InMemoryVectorStore

DIM = 64


class _BlockingProvider(EmbeddingProvider):
    """Holds the embedding call open until released."""

    def __init__(self) -> None:
        self.entered = threading.Event()
        self.release = threading.Event()
        self._inner = MockEmbeddingProvider(dimensions=DIM)

    @property
    def dimensions(self) -> int:
        return DIM

    def embed(self, text: str) -> Result[list[float], EmbeddingError]:
        self.entered.set()
        self.release.wait(timeout=5)
        return self._inner.embed(text)


class _FailingProvider(EmbeddingProvider):
    @property
    def dimensions(self) -> int:
        return DIM

    def embed(self, text: str) -> Result[list[float], EmbeddingError]:
        return Err(EmbeddingError("model crashed"))


class _WrongSizeProvider(EmbeddingProvider):
    @property
    def dimensions(self) -> int:
        return DIM

    def embed(self, text: str) -> Result[list[float], EmbeddingError]:
        return Ok([1.0] * (DIM - 1))


@pytest.fixture
def engine() -> Iterator[RetrievalEngine]:
    with RetrievalEngine(MockEmbeddingProvider(dimensions=DIM), InMemoryVectorStore(DIM)) as eng:
        yield eng


class TestAddDocument:
    def test_add_then_list(self, engine: RetrievalEngine) -> None:
        assert engine.add_document("doc1", "hello world").is_ok()
        docs = engine.list_documents().unwrap()
        assert [(d.id, d.content) for d in docs] == [("doc1", "hello world")]

    def test_replace_semantics(self, engine: RetrievalEngine) -> None:
        engine.add_document("doc1", "first version")
        engine.add_document("doc1", "second version")
        docs = engine.list_documents().unwrap()
        assert len(docs) == 1
        assert docs[0].content == "second version"
        assert engine.document_count == 1

    def test_empty_id_rejected(self, engine: RetrievalEngine) -> None:
        result = engine.add_document("", "content")
        assert isinstance(result.error, ValidationError)  # type: ignore[union-attr]
        assert engine.document_count == 0

    def test_embedding_failure(self) -> None:
        eng = RetrievalEngine(_FailingProvider(), InMemoryVectorStore(DIM))
        result = eng.add_document("doc1", "text")
        assert result.is_err()
        error = result.error  # type: ignore[union-attr]
        assert isinstance(error, EmbeddingError)
        assert str(error) == "failed to generate embedding: model crashed"
        assert eng.document_count == 0

    def test_wrong_vector_length(self) -> None:
        eng = RetrievalEngine(_WrongSizeProvider(), InMemoryVectorStore(DIM))
        result = eng.add_document("doc1", "text")
        assert isinstance(result.error, EmbeddingError)  # type: ignore[union-attr]

    def test_stored_embedding_is_normalized(self) -> None:
        store = InMemoryVectorStore(DIM)
        eng = RetrievalEngine(MockEmbeddingProvider(dimensions=DIM), store)
        eng.add_document("doc1", "some words here")
        query = MockEmbeddingProvider(dimensions=DIM).embed("some words here").unwrap()
        query_vector = np.array(query) / np.linalg.norm(query)
        result = store.top_k(query_vector, 1).unwrap()
        assert result[0].score == pytest.approx(1.0)


class TestQuery:
    def test_capital_of_france(self, engine: RetrievalEngine) -> None:
        engine.add_document("doc1", "The capital of France is Paris")
        engine.add_document("doc2", "Rust is a systems language")

        results = engine.query("capital of France", top_k=1).unwrap()
        assert [r.id for r in results] == ["doc1"]

        both = engine.query("capital of France", top_k=2).unwrap()
        assert both[0].id == "doc1"
        assert both[0].score > both[1].score

    def test_empty_store(self, engine: RetrievalEngine) -> None:
        result = engine.query("anything", top_k=3)
        assert result.is_ok()
        assert result.unwrap() == []

    def test_at_most_k_non_increasing(self, engine: RetrievalEngine) -> None:
        for i in range(10):
            engine.add_document(f"doc{i}", f"document number {i} about topic {i % 3}")
        results = engine.query("topic 1 document", top_k=4).unwrap()
        assert len(results) == 4
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)

    @pytest.mark.parametrize("top_k", [0, -3])
    def test_non_positive_top_k_uses_default(self, engine: RetrievalEngine, top_k: int) -> None:
        for i in range(8):
            engine.add_document(f"doc{i}", f"shared words {i}")
        coerced = engine.query("shared words", top_k=top_k).unwrap()
        default = engine.query("shared words", top_k=DEFAULT_TOP_K).unwrap()
        assert coerced == default
        assert len(coerced) == DEFAULT_TOP_K

    def test_embedding_failure(self) -> None:
        eng = RetrievalEngine(_FailingProvider(), InMemoryVectorStore(DIM))
        result = eng.query("text")
        assert str(result.error) == "failed to generate query embedding: model crashed"  # type: ignore[union-attr]


class TestDeleteDocument:
    def test_delete_missing(self, engine: RetrievalEngine) -> None:
        result = engine.delete_document("ghost")
        error = result.error  # type: ignore[union-attr]
        assert isinstance(error, NotFoundError)
        assert str(error) == "document 'ghost' not found"

    def test_delete_then_list(self, engine: RetrievalEngine) -> None:
        engine.add_document("b", "bravo")
        engine.add_document("a", "alpha")
        assert engine.delete_document("b").is_ok()
        assert [d.id for d in engine.list_documents().unwrap()] == ["a"]

    def test_empty_id_rejected(self, engine: RetrievalEngine) -> None:
        assert isinstance(engine.delete_document("").error, ValidationError)  # type: ignore[union-attr]


class TestEmbed:
    @given(st.text(max_size=200))
    @settings(max_examples=50, deadline=None)
    def test_self_similarity_is_one_or_zero(self, text: str) -> None:
        provider = MockEmbeddingProvider(dimensions=DIM)
        eng = RetrievalEngine(provider, InMemoryVectorStore(DIM))
        eng.add_document("doc", text)
        [hit] = eng.query(text, top_k=1).unwrap()
        if np.any(provider.embed(text).unwrap()):
            assert hit.score == pytest.approx(1.0, abs=1e-6)
        else:
            assert hit.score == 0.0


class TestConcurrency:
    def test_embedding_lock_timeout(self) -> None:
        provider = _BlockingProvider()
        eng = RetrievalEngine(provider, InMemoryVectorStore(DIM))
        writer = threading.Thread(target=eng.add_document, args=("slow", "slow text"))
        writer.start()
        try:
            assert provider.entered.wait(timeout=5)
            result = eng.query("another", timeout=0.05)
            error = result.error  # type: ignore[union-attr]
            assert isinstance(error, EmbeddingError)
            assert "timed out" in str(error)

            # list and delete never wait on the embedding model
            assert eng.list_documents().unwrap() == []
            assert isinstance(eng.delete_document("slow").error, NotFoundError)  # type: ignore[union-attr]
        finally:
            provider.release.set()
            writer.join(timeout=5)
        assert [d.id for d in eng.list_documents().unwrap()] == ["slow"]

    def test_concurrent_adds(self, engine: RetrievalEngine) -> None:
        threads = [
            threading.Thread(target=engine.add_document, args=(f"doc{i}", f"text {i}"))
            for i in range(16)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert engine.document_count == 16


class TestLifecycle:
    def test_dimension_mismatch_rejected(self) -> None:
        with pytest.raises(StorageError):
            RetrievalEngine(MockEmbeddingProvider(dimensions=8), InMemoryVectorStore(16))

    def test_close_idempotent(self) -> None:
        provider = MockEmbeddingProvider(dimensions=DIM)
        eng = RetrievalEngine(provider, InMemoryVectorStore(DIM))
        eng.close()
        eng.close()
        assert provider.embed("x").is_err()

    def test_create_engine_mock(self) -> None:
        with create_engine(MockConfig.with_overrides(embedding_dimensions=32)) as eng:
            assert eng.dimension == 32
            assert eng.add_document("a", "alpha").is_ok()

    def test_create_engine_chroma(self) -> None:
        settings = MockConfig.with_overrides(
            store=StoreBackend.CHROMA, collection=f"test-{uuid.uuid4().hex}"
        )
        with create_engine(settings) as eng:
            eng.add_document("doc1", "The capital of France is Paris")
            eng.add_document("doc2", "Rust is a systems language")
            assert [r.id for r in eng.query("capital of France", 1).unwrap()] == ["doc1"]
