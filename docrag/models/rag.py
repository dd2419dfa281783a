"""Chunk, retrieval and corpus models for the tenant-scoped vector index.

All models use frozen config.  A document's chunk set is always written
and replaced as a whole, so every chunk of a document shares the same
``total_chunks`` and indices run contiguously from ``0``.

RAG overview:
    1. EXTRACTION: uploaded files are turned into plain text.
    2. CHUNKING: the text is split into overlapping windows.
    3. EMBEDDING: each window becomes a dense vector.
    4. STORAGE: chunks + vectors are written under the tenant's namespace.
    5. RETRIEVAL: a query is embedded and compared against that namespace
       only, returning the closest chunks by cosine similarity.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator


def make_chunk_id(document_id: str, chunk_index: int) -> str:
    """Deterministic chunk id; reprocessing yields the same ids."""
    return f"{document_id}_chunk_{chunk_index}"


# ---------------------------------------------------------------------------
# Chunk - the unit that is embedded and stored.
# ---------------------------------------------------------------------------
class Chunk(BaseModel):
    """A window of a document's text together with its embedding."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str = Field(description="Deterministic id: '<document_id>_chunk_<index>'.")
    company_id: str = Field(min_length=1)
    document_id: str = Field(min_length=1)
    document_name: str = ""
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1)
    content: str
    mime_type: str = ""
    vector: list[float] = Field(default_factory=list)
    # Model identifier that produced ``vector``; vectors from different
    # models are not comparable.
    embedding_model: str = ""
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    @model_validator(mode="after")
    def _check_index(self) -> Chunk:
        if self.chunk_index >= self.total_chunks:
            raise ValueError(
                f"chunk_index {self.chunk_index} out of range for total_chunks {self.total_chunks}"
            )
        return self


# ---------------------------------------------------------------------------
# Retrieval results
# ---------------------------------------------------------------------------
class SimilarityResult(BaseModel):
    """A stored chunk paired with its cosine similarity to a query."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    score: float = Field(ge=-1.0, le=1.0)


def rank_key(result: SimilarityResult) -> tuple[float, int, str]:
    """Sort key: score descending, then chunk_index, then document_id."""
    return (-result.score, result.chunk.chunk_index, result.chunk.document_id)


def clamp_score(value: float) -> float:
    """Clamp floating-point drift so scores stay inside ``[-1, 1]``."""
    return max(-1.0, min(1.0, float(value)))


class SearchHit(BaseModel):
    """The externally visible shape of one search result."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    document_name: str
    chunk_index: int
    total_chunks: int
    content_preview: str
    score: float

    @classmethod
    def from_result(cls, result: SimilarityResult, preview_chars: int = 200) -> SearchHit:
        content = result.chunk.content
        preview = content if len(content) <= preview_chars else content[:preview_chars].rstrip() + "..."
        return cls(
            document_id=result.chunk.document_id,
            document_name=result.chunk.document_name,
            chunk_index=result.chunk.chunk_index,
            total_chunks=result.chunk.total_chunks,
            content_preview=preview,
            score=round(result.score, 6),
        )


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------
class CorpusStats(BaseModel):
    """Per-tenant index statistics."""

    model_config = ConfigDict(frozen=True)

    company_id: str
    total_chunks: int = Field(default=0, ge=0)
    total_documents: int = Field(default=0, ge=0)
    chunks_by_document: dict[str, int] = Field(default_factory=dict)
