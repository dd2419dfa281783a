"""Local ONNX-based embedding provider using fastembed.

Wraps the ``fastembed`` library to implement :class:`IEmbeddingProvider`
using ONNX Runtime, so no PyTorch and no API key are needed.  Model
inference is CPU-bound and runs in a worker thread to keep the event loop
responsive while documents are being ingested.

Default model: ``BAAI/bge-small-en-v1.5`` (384 dimensions).
"""

from __future__ import annotations

import asyncio
import importlib.util
from typing import Any

import structlog

from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.utils.errors import EmbeddingUnavailableError

logger = structlog.get_logger(logger_name=__name__)

# Known model dimensions for fastembed-supported models.
_MODEL_DIMENSIONS: dict[str, int] = {
    "BAAI/bge-small-en-v1.5": 384,
    "BAAI/bge-base-en-v1.5": 768,
    "intfloat/multilingual-e5-large": 1024,
    "sentence-transformers/all-MiniLM-L6-v2": 384,
}

_DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"
_BATCH_LIMIT = 64


class FastEmbedEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by fastembed (ONNX Runtime).

    Loads the ONNX model on first use; the first run downloads the weights
    and caches them locally.
    """

    def __init__(self, model_name: str | None = None, batch_size: int = _BATCH_LIMIT) -> None:
        self._model_name = model_name or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model_name, 384)
        self._batch_size = max(1, batch_size)
        self._model: Any = None
        self._load_lock = asyncio.Lock()

    async def _ensure_model(self) -> None:
        if self._model is not None:
            return
        async with self._load_lock:
            if self._model is not None:
                return
            try:
                from fastembed import TextEmbedding

                logger.info("loading_fastembed_model", model=self._model_name)
                self._model = await asyncio.to_thread(TextEmbedding, model_name=self._model_name)
                logger.info(
                    "fastembed_model_loaded",
                    model=self._model_name,
                    dimension=self._dimension,
                )
            except Exception as exc:
                raise EmbeddingUnavailableError(
                    message=f"Failed to load fastembed model '{self._model_name}': {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for start in range(0, len(texts), self._batch_size):
            batch = texts[start : start + self._batch_size]
            # fastembed yields numpy arrays lazily
            vectors.extend(v.tolist() for v in self._model.embed(batch))
        return vectors

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts."""
        if not texts:
            return []

        await self._ensure_model()

        try:
            return await asyncio.to_thread(self._embed_sync, list(texts))
        except Exception as exc:
            raise EmbeddingUnavailableError(
                message=f"Fastembed embedding error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def embed(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed_batch([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"fastembed_{self._model_name.split('/')[-1]}"

    def get_model_version(self) -> str:
        return f"fastembed:{self._model_name}"

    def is_available(self) -> bool:
        """Return ``True`` if fastembed is installed."""
        return importlib.util.find_spec("fastembed") is not None
