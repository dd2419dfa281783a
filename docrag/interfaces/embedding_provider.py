"""Abstract base class for text-embedding service providers.

Defines the contract for turning text into fixed-length vectors.
Implementations may wrap a hosted API (OpenAI and compatibles) or a local
ONNX model (fastembed).  The adapter pattern keeps the ingestion and
retrieval services independent of the backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   FastEmbedEmbeddingProvider - local ONNX runtime, no API key
#   OpenAIEmbeddingProvider    - OpenAI-compatible embeddings endpoint
# Located in: docrag/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for embedding services used by ingestion and retrieval.

    A provider instance always returns vectors of the same dimension, and
    ``embed_batch(texts)[i]`` is equivalent to ``embed(texts[i])``.
    """

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string.

        Parameters
        ----------
        text:
            The text to embed (a chunk or a search query).

        Returns
        -------
        list[float]
            Vector of length :meth:`get_dimension`.

        Raises
        ------
        docrag.utils.errors.EmbeddingUnavailableError
            If the backend cannot be reached or returns an error.
        """

    @abstractmethod
    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for several texts in one call.

        Parameters
        ----------
        texts:
            Texts to embed.  Implementations batch internally when the
            backend has a per-call limit.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*.

        Raises
        ------
        docrag.utils.errors.EmbeddingUnavailableError
            If the backend cannot be reached or returns an error.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def get_model_version(self) -> str:
        """Return the model identifier stamped on every stored chunk.

        Vectors produced by different models are not comparable; a change
        here means stored chunks must be reprocessed.
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured and usable.

        Implementations check credentials / installed packages without
        generating an embedding.
        """
