"""Embedding provider implementations.

Two implementations of IEmbeddingProvider:
    1. FastEmbedEmbeddingProvider - ONNX-based, local, no API key.  Default.
    2. OpenAIEmbeddingProvider    - hosted OpenAI-compatible embeddings.

Selection happens in ``docrag.main.build_embedding_provider`` from the
``EMBEDDING_PROVIDER`` setting.
"""

from docrag.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from docrag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["FastEmbedEmbeddingProvider", "OpenAIEmbeddingProvider"]
