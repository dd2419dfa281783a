"""Argument checks shared by every vector store implementation."""

from __future__ import annotations

from docrag.models.rag import Chunk
from docrag.utils.errors import ValidationError


def validate_top_k(top_k: int) -> None:
    # bool is an int subclass; True is not a meaningful limit.
    if isinstance(top_k, bool) or not isinstance(top_k, int) or top_k <= 0:
        raise ValidationError(f"top_k must be a positive integer, got {top_k!r}", step="query")


def validate_ids(company_id: str, document_id: str | None = None) -> None:
    if not company_id or not company_id.strip():
        raise ValidationError("company_id is required")
    if document_id is not None and not document_id.strip():
        raise ValidationError("document_id is required")


def validate_chunk_set(company_id: str, document_id: str, chunks: list[Chunk]) -> None:
    """Check that *chunks* is one complete, contiguous set for the document."""
    validate_ids(company_id, document_id)
    if not chunks:
        return

    total = len(chunks)
    indices = sorted(c.chunk_index for c in chunks)
    if indices != list(range(total)):
        raise ValidationError(
            f"chunk indices for {document_id} must be contiguous from 0, got {indices[:10]}",
            step="storing",
        )

    dimension = len(chunks[0].vector)
    for chunk in chunks:
        if chunk.company_id != company_id or chunk.document_id != document_id:
            raise ValidationError(
                f"chunk {chunk.chunk_id} does not belong to {company_id}/{document_id}",
                step="storing",
            )
        if chunk.total_chunks != total:
            raise ValidationError(
                f"chunk {chunk.chunk_id} has total_chunks={chunk.total_chunks}, expected {total}",
                step="storing",
            )
        if not chunk.vector or len(chunk.vector) != dimension:
            raise ValidationError(
                f"chunk {chunk.chunk_id} has a missing or inconsistent vector",
                step="storing",
            )
