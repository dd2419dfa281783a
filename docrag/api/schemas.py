"""Pydantic request/response schemas for the docrag API.

Request schemas end with ``Request``, response schemas with ``Response``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from docrag.models.document import Document, IngestionReport, ProcessingResult
from docrag.models.rag import CorpusStats, SearchHit


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ProcessResponse(BaseModel):
    """Outcome of ingesting one document.

    ``content_length`` and ``processed_at`` are set on success,
    ``processing_error`` and ``failed_step`` on failure.
    """

    document_id: str
    processing_status: str
    extraction_method: str | None = None
    content_length: int | None = None
    chunks_stored: int = 0
    processed_at: datetime | None = None
    processing_error: str | None = None
    failed_step: str | None = None

    @classmethod
    def from_result(cls, document_id: str, result: ProcessingResult) -> ProcessResponse:
        if result.succeeded:
            return cls(
                document_id=document_id,
                processing_status="completed",
                extraction_method=result.extraction_method,
                content_length=result.content_length,
                chunks_stored=result.chunks_stored,
                processed_at=result.processed_at,
            )
        return cls(
            document_id=document_id,
            processing_status="failed",
            extraction_method=result.extraction_method,
            processing_error=result.error,
            failed_step=result.failed_step.value if result.failed_step else None,
        )


class ReprocessResponse(BaseModel):
    """Summary of a whole-tenant reprocess."""

    company_id: str
    total: int
    completed: int
    failed: int
    elapsed_seconds: float
    documents: list[ProcessResponse] = Field(default_factory=list)

    @classmethod
    def from_report(cls, report: IngestionReport) -> ReprocessResponse:
        return cls(
            company_id=report.company_id,
            total=report.total,
            completed=report.completed,
            failed=report.failed,
            elapsed_seconds=report.elapsed_seconds,
            documents=[
                ProcessResponse.from_result(document_id, result)
                for document_id, result in sorted(report.results.items())
            ],
        )


class DocumentResponse(BaseModel):
    """Stored document record (without file bytes)."""

    document: Document


class DeleteResponse(BaseModel):
    document_id: str
    chunks_removed: int
    document_removed: bool


class SearchRequest(BaseModel):
    """Semantic search over one tenant's chunks."""

    query: str = Field(..., min_length=1, max_length=2000)
    top_k: int | None = Field(default=None, description="Defaults to the configured top_k")


class SearchResponse(BaseModel):
    query: str
    total_results: int
    results: list[SearchHit]


class StatsResponse(BaseModel):
    """Per-tenant index statistics."""

    stats: CorpusStats
