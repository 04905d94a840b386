"""Vector stores and the similarity ranking protocol."""

from src.retrieval.base import VectorStore
from src.retrieval.factory import create_vector_store
from src.retrieval.memory_store import InMemoryVectorStore
from src.retrieval.ranking import normalize, order_results, rank_top_k

__all__ = [
    "VectorStore",
    "InMemoryVectorStore",
    "create_vector_store",
    "normalize",
    "order_results",
    "rank_top_k",
]
