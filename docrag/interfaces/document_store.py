"""Abstract base class for the upload-side document store.

The upload handler owns document records and raw bytes; the ingestion
orchestrator only needs to read them back and to record status changes
and processing results.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.document import Document, ProcessingResult, ProcessingStatus


# Concrete implementation: SQLiteDocumentStore (docrag/providers/document_store/)
class IDocumentStore(ABC):
    """Contract for document record persistence."""

    @abstractmethod
    async def initialize(self) -> None:
        """Create tables / directories if they do not exist."""

    @abstractmethod
    async def save_document(self, document: Document, data: bytes) -> Document:
        """Insert or replace a document record together with its raw bytes."""

    @abstractmethod
    async def get_document(self, company_id: str, document_id: str) -> Document | None:
        """Return a document record, or ``None`` when it does not exist."""

    @abstractmethod
    async def list_documents(self, company_id: str) -> list[Document]:
        """Return every document of a tenant, oldest first."""

    @abstractmethod
    async def load_bytes(self, company_id: str, document_id: str) -> bytes | None:
        """Return the raw bytes stored for a document, or ``None``."""

    @abstractmethod
    async def update_status(
        self,
        company_id: str,
        document_id: str,
        status: ProcessingStatus,
        error: str | None = None,
    ) -> None:
        """Record a state-machine transition on the document."""

    @abstractmethod
    async def record_result(
        self,
        company_id: str,
        document_id: str,
        result: ProcessingResult,
    ) -> None:
        """Persist the final outcome of an ingestion run."""

    @abstractmethod
    async def delete_document(self, company_id: str, document_id: str) -> bool:
        """Remove a document record.  Returns ``True`` if one existed."""
