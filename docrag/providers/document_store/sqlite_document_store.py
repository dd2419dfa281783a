"""SQLite-backed document store.

Persists document records and their raw bytes to a local SQLite database
at ``data/documents.db`` using ``aiosqlite`` for async I/O.  Rows are keyed
by ``(company_id, document_id)`` so two tenants may reuse a document id.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from docrag.interfaces.document_store import IDocumentStore
from docrag.models.document import Document, ProcessingResult, ProcessingStatus

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/documents.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS documents (
    company_id         TEXT    NOT NULL,
    document_id        TEXT    NOT NULL,
    filename           TEXT    NOT NULL,
    mime_type          TEXT    NOT NULL,
    size_bytes         INTEGER NOT NULL DEFAULT 0,
    source_location    TEXT    NOT NULL DEFAULT '',
    processing_status  TEXT    NOT NULL DEFAULT 'pending',
    processing_error   TEXT,
    extraction_method  TEXT,
    content_length     INTEGER NOT NULL DEFAULT 0,
    extracted_text     TEXT,
    processed_at       TEXT,
    created_at         TEXT    NOT NULL,
    content            BLOB,
    PRIMARY KEY (company_id, document_id)
);
"""

_CREATE_INDICES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_documents_company ON documents(company_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(processing_status);",
]

_UPSERT_SQL = """\
INSERT INTO documents (
    company_id, document_id, filename, mime_type, size_bytes, source_location,
    processing_status, processing_error, extraction_method, content_length,
    processed_at, created_at, content
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(company_id, document_id)
DO UPDATE SET filename          = excluded.filename,
              mime_type         = excluded.mime_type,
              size_bytes        = excluded.size_bytes,
              source_location   = excluded.source_location,
              processing_status = excluded.processing_status,
              processing_error  = excluded.processing_error,
              content           = excluded.content;
"""

_SELECT_COLUMNS = (
    "company_id, document_id, filename, mime_type, size_bytes, source_location, "
    "processing_status, processing_error, extraction_method, content_length, "
    "processed_at, created_at"
)


class SQLiteDocumentStore(IDocumentStore):
    """SQLite-backed document record persistence."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH) -> None:
        self._db_path = Path(db_path)

    async def initialize(self) -> None:
        """Create the documents table and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(_CREATE_TABLE_SQL)
            for idx_sql in _CREATE_INDICES_SQL:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_db_initialized", path=str(self._db_path))

    async def save_document(self, document: Document, data: bytes) -> Document:
        saved = document.model_copy(update={"size_bytes": len(data)})
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPSERT_SQL,
                (
                    saved.company_id,
                    saved.document_id,
                    saved.filename,
                    saved.mime_type,
                    saved.size_bytes,
                    saved.source_location,
                    saved.processing_status.value,
                    saved.processing_error,
                    saved.extraction_method,
                    saved.content_length,
                    saved.processed_at.isoformat() if saved.processed_at else None,
                    saved.created_at.isoformat(),
                    data,
                ),
            )
            await db.commit()
        logger.info(
            "document_saved",
            company_id=saved.company_id,
            document_id=saved.document_id,
            size_bytes=saved.size_bytes,
        )
        return saved

    async def get_document(self, company_id: str, document_id: str) -> Document | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM documents "  # noqa: S608 - constant columns
                "WHERE company_id = ? AND document_id = ?",
                (company_id, document_id),
            )
            row = await cursor.fetchone()
        return self._row_to_document(dict(row)) if row else None

    async def list_documents(self, company_id: str) -> list[Document]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                f"SELECT {_SELECT_COLUMNS} FROM documents "  # noqa: S608 - constant columns
                "WHERE company_id = ? ORDER BY created_at, document_id",
                (company_id,),
            )
            rows = await cursor.fetchall()
        return [self._row_to_document(dict(r)) for r in rows]

    async def load_bytes(self, company_id: str, document_id: str) -> bytes | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "SELECT content FROM documents WHERE company_id = ? AND document_id = ?",
                (company_id, document_id),
            )
            row = await cursor.fetchone()
        if row is None or row[0] is None:
            return None
        return bytes(row[0])

    async def update_status(
        self,
        company_id: str,
        document_id: str,
        status: ProcessingStatus,
        error: str | None = None,
    ) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "UPDATE documents SET processing_status = ?, processing_error = ? "
                "WHERE company_id = ? AND document_id = ?",
                (status.value, error, company_id, document_id),
            )
            await db.commit()

    async def record_result(
        self,
        company_id: str,
        document_id: str,
        result: ProcessingResult,
    ) -> None:
        status = ProcessingStatus.COMPLETED if result.succeeded else ProcessingStatus.FAILED
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "UPDATE documents SET processing_status = ?, processing_error = ?, "
                "extraction_method = ?, content_length = ?, extracted_text = ?, "
                "processed_at = ? WHERE company_id = ? AND document_id = ?",
                (
                    status.value,
                    result.error,
                    result.extraction_method,
                    result.content_length,
                    result.extracted_text,
                    result.processed_at.isoformat(),
                    company_id,
                    document_id,
                ),
            )
            await db.commit()
        logger.info(
            "processing_result_recorded",
            company_id=company_id,
            document_id=document_id,
            status=status.value,
        )

    async def delete_document(self, company_id: str, document_id: str) -> bool:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute(
                "DELETE FROM documents WHERE company_id = ? AND document_id = ?",
                (company_id, document_id),
            )
            await db.commit()
            deleted = cursor.rowcount > 0
        return deleted

    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this provider."""
        return "sqlite_documents"

    @staticmethod
    def _row_to_document(row: dict[str, Any]) -> Document:
        return Document(
            document_id=row["document_id"],
            company_id=row["company_id"],
            filename=row["filename"],
            mime_type=row["mime_type"],
            size_bytes=row["size_bytes"],
            source_location=row["source_location"] or "",
            processing_status=ProcessingStatus(row["processing_status"]),
            processing_error=row["processing_error"],
            extraction_method=row["extraction_method"],
            content_length=row["content_length"] or 0,
            processed_at=datetime.fromisoformat(row["processed_at"]) if row["processed_at"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
        )
