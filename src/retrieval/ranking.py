"""Similarity ranking protocol.

Stored and query vectors are both L2-normalized with ``normalize`` so the
dot product of two vectors is their cosine similarity. Ranked output is
ordered by descending score with ascending document id as the secondary key,
capped at ``k``. Records without an embedding never enter the ranking.

Stores that push ranking down into a database still pass their rows through
``order_results`` so every backend honours the same ordering.
"""

from __future__ import annotations

import math
from typing import Iterable, Optional, Sequence

import numpy as np

from src.rag.document import SearchResult


def normalize(vector: Sequence[float]) -> np.ndarray:
    """Return an L2-normalized float64 copy of ``vector``.

    The sum of squares is accumulated in double precision. An all-zero
    vector is returned unchanged rather than divided by zero.
    """
    arr = np.array(vector, dtype=np.float64)
    total = float(np.dot(arr, arr))
    if total == 0.0:
        return arr
    return arr * (1.0 / math.sqrt(total))


def _sort_key(result: SearchResult) -> tuple[float, str]:
    return (-result.score, result.id)


def _finite(score: float) -> float:
    # a zero vector on either side yields NaN from some backends
    return score if math.isfinite(score) else 0.0


def order_results(results: Iterable[SearchResult], k: int) -> list[SearchResult]:
    """Apply the ordering contract to already-scored rows and cap at ``k``."""
    if k <= 0:
        raise ValueError(f"k must be positive, got {k}")
    cleaned = [
        SearchResult(id=r.id, content=r.content, score=_finite(float(r.score)))
        for r in results
    ]
    cleaned.sort(key=_sort_key)
    return cleaned[:k]


def rank_top_k(
    query: np.ndarray,
    rows: Iterable[tuple[str, str, Optional[np.ndarray]]],
    k: int,
) -> list[SearchResult]:
    """Score ``(id, content, embedding)`` rows against ``query`` by dot product.

    Rows whose embedding is None are skipped. Raises ValueError if an
    embedding's length differs from the query's.
    """
    if k <= 0:
        raise ValueError(f"k must be positive, got {k}")

    ids: list[str] = []
    contents: list[str] = []
    vectors: list[np.ndarray] = []
    for doc_id, content, embedding in rows:
        if embedding is None:
            continue
        if embedding.shape != query.shape:
            raise ValueError(
                f"embedding for '{doc_id}' has dimension {embedding.shape[0]}, "
                f"query has {query.shape[0]}"
            )
        ids.append(doc_id)
        contents.append(content)
        vectors.append(embedding)

    if not vectors:
        return []

    scores = np.vstack(vectors) @ query
    results = [
        SearchResult(id=doc_id, content=content, score=float(score))
        for doc_id, content, score in zip(ids, contents, scores, strict=True)
    ]
    return order_results(results, k)
