"""Document models for the retrieval engine.

``Document`` is the persisted unit (id, content, embedding); ``SearchResult``
is the transient projection returned from a similarity query.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Document:
    """A stored document.

    ``embedding`` is omitted (None) in listings and for records that were
    stored without a vector.
    """

    id: str
    content: str
    embedding: Optional[tuple[float, ...]] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Document id cannot be empty")

    def without_embedding(self) -> Document:
        return Document(id=self.id, content=self.content)


@dataclass(frozen=True, slots=True)
class SearchResult:
    """A document returned from a similarity query with its cosine score.

    Scores sit roughly in [-1, 1] and are not clamped.
    """

    id: str
    content: str
    score: float


def truncate(text: str, max_len: int) -> str:
    """Shorten ``text`` to at most ``max_len`` characters, marking the cut."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
