"""Abstract base class for tenant-scoped vector stores.

Defines the contract for persisting a document's embedded chunks and
answering cosine-similarity queries inside one tenant's namespace.
Implementations may be in-process (numpy) or backed by a vector database
(ChromaDB).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.rag import Chunk, CorpusStats, SimilarityResult


# Concrete implementations:
#   InMemoryVectorStore - exhaustive numpy cosine search, process-local
#   ChromaDBProvider    - persistent ChromaDB, one collection per tenant
# Located in: docrag/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for vector stores used by the ingestion and retrieval services.

    Guarantees every implementation must keep:

    * **Tenant isolation** - no operation ever reads or writes chunks of a
      ``company_id`` other than the one passed in.
    * **Atomic replace** - :meth:`upsert_chunks` swaps a document's whole
      chunk set; concurrent readers observe the old set or the new one,
      never a mix or an empty gap.
    * **Deterministic ranking** - results are ordered by score descending,
      ties broken by ``chunk_index`` then ``document_id`` ascending.
    """

    @abstractmethod
    async def upsert_chunks(
        self,
        company_id: str,
        document_id: str,
        chunks: list[Chunk],
    ) -> int:
        """Replace every stored chunk of ``(company_id, document_id)`` with *chunks*.

        Parameters
        ----------
        company_id:
            Tenant namespace to write into.
        document_id:
            Document whose chunk set is replaced.
        chunks:
            The complete new chunk set, each carrying its vector.  An empty
            list removes the document.

        Returns
        -------
        int
            Number of chunks stored.

        Raises
        ------
        docrag.utils.errors.ValidationError
            If a chunk belongs to another tenant/document or the indices
            are not contiguous from zero.
        docrag.utils.errors.StoreUnavailableError
            If the backend write fails; the previous set stays visible.
        """

    @abstractmethod
    async def delete_document(self, company_id: str, document_id: str) -> int:
        """Remove all chunks of a document.  Returns the number removed."""

    @abstractmethod
    async def query_similar(
        self,
        company_id: str,
        query_vector: list[float],
        top_k: int,
    ) -> list[SimilarityResult]:
        """Return the *top_k* chunks of the tenant closest to *query_vector*.

        Parameters
        ----------
        company_id:
            Tenant namespace to search.
        query_vector:
            Embedding of the query.
        top_k:
            Positive result limit.  When the tenant has fewer chunks, all of
            them are returned.

        Returns
        -------
        list[SimilarityResult]
            Ranked results; empty for a tenant with no chunks.

        Raises
        ------
        docrag.utils.errors.ValidationError
            If *top_k* is not a positive integer.
        """

    @abstractmethod
    async def get_document_chunks(self, company_id: str, document_id: str) -> list[Chunk]:
        """Return a document's stored chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def list_document_ids(self, company_id: str) -> set[str]:
        """Return ids of documents that currently have chunks stored."""

    @abstractmethod
    async def get_stats(self, company_id: str) -> CorpusStats:
        """Return chunk / document counts for a tenant."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the store can currently be reached."""
