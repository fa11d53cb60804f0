"""Embedding step: providers and the per-file embedding driver."""

from .driver import EmbeddingDriver
from .provider import (
    DummyEmbedder,
    EmbeddingProvider,
    EmbeddingResult,
    OpenAIEmbedder,
    get_embedding_provider,
)

__all__ = [
    "DummyEmbedder",
    "EmbeddingDriver",
    "EmbeddingProvider",
    "EmbeddingResult",
    "OpenAIEmbedder",
    "get_embedding_provider",
]
