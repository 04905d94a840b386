"""Error taxonomy for the retrieval engine.

Errors are carried as values inside ``Err`` results rather than raised
across layer boundaries. Each class maps to one failure domain:

- ValidationError: caller-supplied input is missing or empty
- EmbeddingError: the embedding provider could not vectorize text
- StorageError: the vector store failed to read or write
- NotFoundError: a delete targeted an id with no stored document
- ConfigError: settings could not be resolved
- ServerError: a transport failed to bind or serve
"""

from __future__ import annotations


class RAGError(Exception):
    """Base class for all retrieval engine failures."""

    kind: str = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return self.message


class ValidationError(RAGError):
    """Required input was missing or empty."""

    kind = "validation"


class EmbeddingError(RAGError):
    """The embedding provider failed to produce a vector."""

    kind = "embedding"


class StorageError(RAGError):
    """The vector store failed to persist or read documents."""

    kind = "storage"


class NotFoundError(RAGError):
    """No document exists with the requested id."""

    kind = "not_found"


class ConfigError(RAGError):
    """Settings could not be resolved into a usable engine."""

    kind = "config"


class ServerError(RAGError):
    """A tool server transport could not start or serve."""

    kind = "server"
