"""RAG core module - configuration, documents, embeddings and the retrieval engine."""

from src.rag.config import MockConfig, Settings, load_settings
from src.rag.document import Document, SearchResult
from src.rag.result import Err, Ok, Result

__all__ = [
    "Settings",
    "MockConfig",
    "load_settings",
    "Document",
    "SearchResult",
    "Result",
    "Ok",
    "Err",
]
