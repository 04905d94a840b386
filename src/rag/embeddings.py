"""Embedding providers with dependency injection for mock mode.

Supports:
- llama.cpp GGUF embedding models (production)
- Mock embeddings (demo/testing - deterministic, no model file)

Providers are single-owner resources and are not safe for concurrent calls;
the retrieval engine serializes access to them.
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import numpy as np

from src.rag.config import RunMode, Settings
from src.rag.errors import ConfigError, EmbeddingError
from src.rag.result import Err, Ok, Result

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class EmbeddingProvider(ABC):
    """Abstract embedding provider interface."""

    @abstractmethod
    def embed(self, text: str) -> Result[list[float], EmbeddingError]:
        """Generate the raw (unnormalized) embedding for ``text``."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Return the embedding dimensions."""
        ...

    def close(self) -> None:
        """Release model resources. Calling more than once is a no-op."""


class MockEmbeddingProvider(EmbeddingProvider):
    """Deterministic mock embeddings for testing and demos.

    Each lowercase word token maps to a fixed pseudo-random vector seeded
    from its hash; a text's embedding is the sum over its tokens. Texts that
    share words therefore have higher cosine similarity, and text with no
    word tokens embeds to the zero vector.
    """

    def __init__(self, dimensions: int = 384) -> None:
        self._dimensions = dimensions
        self._closed = False

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> Result[list[float], EmbeddingError]:
        if self._closed:
            return Err(EmbeddingError("embedding provider is closed"))
        try:
            return Ok(self._generate_embedding(text).tolist())
        except Exception as e:
            return Err(EmbeddingError(f"mock embedding failed: {e}"))

    def close(self) -> None:
        self._closed = True

    def _generate_embedding(self, text: str) -> np.ndarray:
        vector = np.zeros(self._dimensions, dtype=np.float64)
        for word in _TOKEN_RE.findall(text.lower()):
            word_hash = hashlib.md5(word.encode()).hexdigest()
            word_rng = np.random.RandomState(int(word_hash[:8], 16))
            vector += word_rng.randn(self._dimensions)
        return vector


class LlamaCppEmbeddingProvider(EmbeddingProvider):
    """Local GGUF embedding model served through llama-cpp-python.

    The model is loaded in embedding mode with mean pooling. If ``lib_path``
    is given it is exported as LLAMA_CPP_LIB_PATH before llama_cpp is
    imported, so a custom llama.cpp build can be used.

    Args:
        model_path: Path to the GGUF model file.
        lib_path: Optional path to a llama.cpp shared library.
        context_size: Context window in tokens.
        batch_size: Batch size for prompt processing.
        verbose: Let llama.cpp write its own logs to stderr.
    """

    def __init__(
        self,
        model_path: str,
        lib_path: str = "",
        context_size: int = 512,
        batch_size: int = 512,
        verbose: bool = False,
    ) -> None:
        if not model_path:
            raise ConfigError("model path is required (set --model or YDRAG_MODEL)")
        if lib_path:
            os.environ["LLAMA_CPP_LIB_PATH"] = lib_path

        try:
            import llama_cpp
        except ImportError as exc:
            raise EmbeddingError(
                "llama-cpp-python is required for LlamaCppEmbeddingProvider. "
                "Install it with: pip install 'ydrag[llama]'"
            ) from exc
        except OSError as exc:
            raise EmbeddingError(f"unable to load llama library: {exc}") from exc

        try:
            self._llm: Optional[Any] = llama_cpp.Llama(
                model_path=model_path,
                embedding=True,
                n_ctx=context_size,
                n_batch=batch_size,
                pooling_type=llama_cpp.LLAMA_POOLING_TYPE_MEAN,
                verbose=verbose,
            )
        except Exception as exc:
            raise EmbeddingError(f"unable to load model from {model_path}: {exc}") from exc

        try:
            self._dimensions = int(self._llm.n_embd())
        except Exception as exc:
            self.close()
            raise EmbeddingError(f"unable to read embedding size from {model_path}: {exc}") from exc
        logger.info("Loaded embedding model %s (dim=%d)", model_path, self._dimensions)

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str) -> Result[list[float], EmbeddingError]:
        if self._llm is None:
            return Err(EmbeddingError("embedding provider is closed"))
        try:
            vector = self._llm.embed(text, normalize=False, truncate=True)
        except Exception as e:
            return Err(EmbeddingError(f"failed to get embeddings: {e}"))

        # pooled models return one vector; unpooled ones return per-token rows
        if vector and isinstance(vector[0], list):
            vector = np.mean(np.asarray(vector, dtype=np.float64), axis=0).tolist()
        return Ok([float(v) for v in vector])

    def close(self) -> None:
        if self._llm is None:
            return
        llm, self._llm = self._llm, None
        # Llama.close frees the context before the model
        close = getattr(llm, "close", None)
        if close is not None:
            close()
        logger.debug("Embedding model released")


def create_embedding_provider(settings: Settings) -> EmbeddingProvider:
    """Factory function to create the appropriate embedding provider."""
    if settings.mode == RunMode.MOCK:
        return MockEmbeddingProvider(dimensions=settings.embedding_dimensions)
    return LlamaCppEmbeddingProvider(
        model_path=settings.model,
        lib_path=settings.lib_path,
        context_size=settings.context_size,
        batch_size=settings.batch_size,
        verbose=settings.verbose,
    )
