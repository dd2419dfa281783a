"""Document lifecycle models.

A :class:`Document` is the upload-side record of a tenant's file.  The
ingestion orchestrator advances its ``processing_status`` through the
state machine below and records a :class:`ProcessingResult` on it when the
run ends.  Like every model in this package they are frozen: transitions
produce new instances via ``model_copy(update={...})``.

    pending → extracting → chunking → embedding → storing → completed
                  ↘            ↘           ↘          ↘
                                  failed
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class ProcessingStatus(str, Enum):  # noqa: UP042 - StrEnum requires Python 3.11+
    """Steps of the ingestion state machine."""

    PENDING = "pending"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    STORING = "storing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


# Forward transitions allowed by the orchestrator.  FAILED is reachable
# from every non-terminal step; terminal steps may restart at EXTRACTING
# when a document is reprocessed.
ALLOWED_TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.PENDING: frozenset({ProcessingStatus.EXTRACTING, ProcessingStatus.FAILED}),
    ProcessingStatus.EXTRACTING: frozenset({ProcessingStatus.CHUNKING, ProcessingStatus.FAILED}),
    ProcessingStatus.CHUNKING: frozenset({ProcessingStatus.EMBEDDING, ProcessingStatus.FAILED}),
    ProcessingStatus.EMBEDDING: frozenset({ProcessingStatus.STORING, ProcessingStatus.FAILED}),
    ProcessingStatus.STORING: frozenset({ProcessingStatus.COMPLETED, ProcessingStatus.FAILED}),
    ProcessingStatus.COMPLETED: frozenset({ProcessingStatus.EXTRACTING}),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.EXTRACTING}),
}


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)  # noqa: UP017


class ProcessingResult(BaseModel):
    """Outcome of one ingestion run for a document."""

    model_config = ConfigDict(frozen=True)

    status: Literal["succeeded", "failed"]
    extracted_text: str = ""
    extraction_method: str | None = None
    content_length: int = Field(default=0, ge=0)
    processed_at: datetime = Field(default_factory=_utcnow)
    error: str | None = None
    # The step the pipeline was in when it failed; None on success.
    failed_step: ProcessingStatus | None = None
    chunks_stored: int = Field(default=0, ge=0)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"


class Document(BaseModel):
    """An uploaded file belonging to exactly one tenant (company)."""

    model_config = ConfigDict(frozen=True)

    document_id: str = Field(min_length=1)
    company_id: str = Field(min_length=1)
    filename: str
    mime_type: str
    size_bytes: int = Field(default=0, ge=0)
    # Where the upload handler stored the raw bytes (path, URL or key).
    source_location: str = ""
    processing_status: ProcessingStatus = ProcessingStatus.PENDING
    processing_error: str | None = None
    extraction_method: str | None = None
    content_length: int = Field(default=0, ge=0)
    processed_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class IngestionReport(BaseModel):
    """Summary of reprocessing every document of one tenant."""

    model_config = ConfigDict(frozen=True)

    company_id: str
    total: int = Field(default=0, ge=0)
    completed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    # document_id -> result of its run
    results: dict[str, ProcessingResult] = Field(default_factory=dict)
    elapsed_seconds: float = Field(default=0.0, ge=0.0)
