"""Vector store provider implementations.

* InMemoryVectorStore - exhaustive numpy cosine search; used by tests and
  by ``VECTOR_STORE=memory`` deployments that do not need persistence.
* ChromaDBProvider    - persistent ChromaDB, one collection per tenant,
  generation-flipped document replacement.

To add another backend, implement IVectorStoreProvider and register it in
``docrag.main.build_vector_store``.
"""

from docrag.providers.vector_store.chromadb_provider import ChromaDBProvider
from docrag.providers.vector_store.memory_provider import InMemoryVectorStore

__all__ = ["ChromaDBProvider", "InMemoryVectorStore"]
