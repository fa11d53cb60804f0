from __future__ import annotations

import hashlib
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import numpy as np
import openai

from ....core.config import SETTINGS


@dataclass(frozen=True)
class EmbeddingResult:
    embedding: list[float]
    total_tokens: int  # tokens billed by the provider for this call


class EmbeddingProvider(ABC):
    """Abstract base class for embedding providers."""

    @abstractmethod
    def embed(self, text: str, api_key: Optional[str] = None) -> EmbeddingResult:
        """Generate an embedding and report token usage.

        ``api_key`` overrides the configured credential for this call
        (bring-your-own-key projects).
        """

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Embedding dimension."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier."""


class DummyEmbedder(EmbeddingProvider):
    """Deterministic dummy embedder for testing (no network required)."""

    def __init__(self, dim: int = 384):
        self.dim = dim

    def embed(self, text: str, api_key: Optional[str] = None) -> EmbeddingResult:
        """Generate deterministic embedding from SHA256 hash."""
        normalized_text = " ".join(text.strip().lower().split())
        hash_bytes = hashlib.sha256(normalized_text.encode("utf-8")).digest()

        # Repeat hash to fill dimension, 4 bytes per float32
        needed_bytes = self.dim * 4
        extended_bytes = (hash_bytes * ((needed_bytes // len(hash_bytes)) + 1))[:needed_bytes]

        int_array = np.frombuffer(extended_bytes, dtype=np.uint32)
        float_array = int_array.astype(np.float32) / (2**32)  # Normalize to [0, 1)

        return EmbeddingResult(
            embedding=float_array[: self.dim].tolist(),
            total_tokens=math.ceil(len(text) / 4),
        )

    @property
    def dimension(self) -> int:
        return self.dim

    @property
    def provider_name(self) -> str:
        return "dummy"


class OpenAIEmbedder(EmbeddingProvider):
    """OpenAI embedding provider.

    The SDK's own retries are disabled; backoff is applied by the caller.
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        dim: int = 1536,
        api_key: Optional[str] = None,
    ):
        self.model = model
        self.dim = dim
        self.api_key = api_key or SETTINGS.OPENAI_API_KEY
        self._client: Optional[openai.OpenAI] = None

    def _client_for(self, api_key: Optional[str]) -> openai.OpenAI:
        if api_key and api_key != self.api_key:
            return openai.OpenAI(api_key=api_key, max_retries=0)
        if not self.api_key:
            raise ValueError("OPENAI_API_KEY is required for OpenAI embeddings")
        if self._client is None:
            self._client = openai.OpenAI(api_key=self.api_key, max_retries=0)
        return self._client

    def embed(self, text: str, api_key: Optional[str] = None) -> EmbeddingResult:
        """Generate embedding using OpenAI API."""
        client = self._client_for(api_key)
        response = client.embeddings.create(
            model=self.model,
            input=text,
            dimensions=(self.dim if self.model.startswith("text-embedding-3") else openai.NOT_GIVEN),
        )
        usage = response.usage.total_tokens if response.usage else 0
        return EmbeddingResult(embedding=response.data[0].embedding, total_tokens=usage or 0)

    @property
    def dimension(self) -> int:
        return self.dim

    @property
    def provider_name(self) -> str:
        return "openai"


def get_embedding_provider(
    provider_name: Optional[str] = None,
    settings=None,
) -> EmbeddingProvider:
    """
    Get embedding provider based on configuration.

    Args:
        provider_name: Provider name ("dummy", "openai") or None to use
                      EMBED_PROVIDER from settings
        settings: Settings instance (defaults to the global SETTINGS)

    Returns:
        EmbeddingProvider instance
    """
    settings = settings or SETTINGS
    provider_name = provider_name or settings.EMBED_PROVIDER

    if provider_name == "dummy":
        return DummyEmbedder(dim=settings.EMBED_DUMMY_DIM)
    elif provider_name == "openai":
        return OpenAIEmbedder(
            model=settings.EMBED_MODEL,
            dim=settings.EMBED_DIMENSIONS,
            api_key=settings.OPENAI_API_KEY,
        )
    else:
        raise ValueError(f"Unknown embedding provider: {provider_name}")
