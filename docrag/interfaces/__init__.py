"""Public interface definitions for every external collaborator.

Business logic in ``docrag/services/`` talks only to these abstract base
classes.  Concrete adapters live in ``docrag/providers/`` and are injected
at startup (``docrag/main.py``) or in tests (``tests/conftest.py``).

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingProvider         →  FastEmbedEmbeddingProvider,
                                  OpenAIEmbeddingProvider
    IVectorStoreProvider       →  InMemoryVectorStore, ChromaDBProvider
    IOCRProvider               →  TesseractOCRProvider
    IDocumentStore             →  SQLiteDocumentStore
"""

from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.ocr_provider import IOCRProvider
from docrag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IDocumentStore",
    "IEmbeddingProvider",
    "IOCRProvider",
    "IVectorStoreProvider",
]
