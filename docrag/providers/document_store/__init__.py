"""Document store implementations (upload-side persistence)."""

from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore

__all__ = ["SQLiteDocumentStore"]
