"""Tests for document models."""

import pytest
from hypothesis import given, strategies as st

from src.rag.document import Document, SearchResult, truncate


class TestDocument:
    def test_create_document(self) -> None:
        doc = Document(id="doc1", content="Hello world")
        assert doc.id == "doc1"
        assert doc.content == "Hello world"
        assert doc.embedding is None

    def test_empty_id_raises(self) -> None:
        with pytest.raises(ValueError, match="id cannot be empty"):
            Document(id="", content="Hello")

    def test_empty_content_allowed(self) -> None:
        doc = Document(id="doc1", content="")
        assert doc.content == ""

    def test_without_embedding(self) -> None:
        doc = Document(id="doc1", content="Hello", embedding=(0.6, 0.8))
        bare = doc.without_embedding()
        assert bare.embedding is None
        assert bare.id == "doc1"
        assert bare.content == "Hello"

    def test_immutable(self) -> None:
        doc = Document(id="doc1", content="Hello")
        with pytest.raises(AttributeError):
            doc.content = "changed"  # type: ignore[misc]


class TestSearchResult:
    def test_fields(self) -> None:
        result = SearchResult(id="doc1", content="Hello", score=0.92)
        assert result.id == "doc1"
        assert result.score == 0.92

    def test_negative_score_kept(self) -> None:
        result = SearchResult(id="doc1", content="Hello", score=-0.4)
        assert result.score == -0.4


class TestTruncate:
    def test_short_text_unchanged(self) -> None:
        assert truncate("short", 10) == "short"

    def test_exact_length_unchanged(self) -> None:
        assert truncate("x" * 10, 10) == "x" * 10

    def test_long_text_marked(self) -> None:
        assert truncate("abcdefghijkl", 10) == "abcdefg..."

    @given(st.text(max_size=300), st.integers(min_value=3, max_value=200))
    def test_never_exceeds_limit(self, text: str, max_len: int) -> None:
        assert len(truncate(text, max_len)) <= max_len
