"""Orchestrator for the document ingestion pipeline.

Pipeline steps: **extract -> chunk -> embed -> store**, driven as a state
machine recorded on the document::

    pending → extracting → chunking → embedding → storing → completed
                                                  (any step) → failed

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates the extraction chain, chunker, embedding provider, vector
store and document store without any of them knowing about each other.
All collaborators are injected via the constructor.

Failure policy
--------------
* Unsupported type / extraction exhausted / empty text → ``failed`` at once.
* Embedding and store errors flagged ``retryable`` are retried with
  bounded exponential backoff; every embedding and store call runs
  under a timeout.
* The vector store swaps a document's chunk set atomically, so a failed
  or cancelled run leaves the previous chunks searchable.
* ``process_all`` runs documents through a bounded worker pool; one
  document's failure never stops the others.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

import structlog

from docrag.config.settings import Settings
from docrag.models.document import (
    ALLOWED_TRANSITIONS,
    Document,
    IngestionReport,
    ProcessingResult,
    ProcessingStatus,
)
from docrag.models.rag import Chunk, make_chunk_id
from docrag.services.extraction.chain import ExtractionChain
from docrag.services.ingestion.chunker import TextChunker
from docrag.utils.concurrency import retry_transient, with_timeout
from docrag.utils.errors import (
    DocRagError,
    EmbeddingUnavailableError,
    ExtractionError,
    StoreUnavailableError,
    UnsupportedTypeError,
    ValidationError,
)

if TYPE_CHECKING:
    from docrag.interfaces.document_store import IDocumentStore
    from docrag.interfaces.embedding_provider import IEmbeddingProvider
    from docrag.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

EMPTY_CONTENT_ERROR = "empty content"


class IngestionService:
    """Runs uploaded documents through extraction, chunking, embedding and storage.

    Parameters
    ----------
    extraction_chain:
        Turns file bytes into text.
    chunker:
        Splits text into overlapping windows.
    embedding_provider:
        Generates chunk vectors.
    vector_store:
        Persists chunk sets per tenant.
    document_store:
        Optional record store; receives every status transition and the
        final result, and supplies documents to :meth:`process_all`.
    settings:
        Timeouts, retry budget, batch size and worker count.
    """

    def __init__(
        self,
        extraction_chain: ExtractionChain,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        document_store: IDocumentStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._chain = extraction_chain
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._document_store = document_store
        self._settings = settings or Settings()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process(
        self,
        company_id: str,
        document_id: str,
        file_bytes: bytes,
        filename: str,
        mime_type: str,
    ) -> ProcessingResult:
        """Ingest one document and return the recorded outcome.

        Raises
        ------
        ValidationError
            If *company_id* or *document_id* is empty.
        asyncio.CancelledError
            Propagated after the document is marked failed; the previously
            stored chunk set is untouched.
        """
        if not company_id or not company_id.strip():
            raise ValidationError("company_id is required")
        if not document_id or not document_id.strip():
            raise ValidationError("document_id is required")

        with structlog.contextvars.bound_contextvars(
            company_id=company_id, document_id=document_id
        ):
            start = time.monotonic()
            logger.info("ingestion_started", filename=filename, mime_type=mime_type, size=len(file_bytes))
            state = _RunState(ProcessingStatus.PENDING)

            try:
                result = await self._run_pipeline(
                    state, company_id, document_id, file_bytes, filename, mime_type
                )
            except asyncio.CancelledError:
                logger.warning("ingestion_cancelled", step=state.status.value)
                cancelled = ProcessingResult(
                    status="failed", error="cancelled", failed_step=state.status
                )
                await self._finish(company_id, document_id, cancelled)
                raise
            except DocRagError as exc:
                result = ProcessingResult(
                    status="failed", error=_failure_message(exc), failed_step=state.status
                )
            except Exception as exc:
                logger.exception("ingestion_unexpected_error", step=state.status.value)
                result = ProcessingResult(
                    status="failed",
                    error=f"{type(exc).__name__}: {exc}",
                    failed_step=state.status,
                )

            await self._finish(company_id, document_id, result)
            logger.info(
                "ingestion_finished",
                status=result.status,
                failed_step=result.failed_step.value if result.failed_step else None,
                error=result.error,
                method=result.extraction_method,
                chunks=result.chunks_stored,
                elapsed_s=round(time.monotonic() - start, 3),
            )
            return result

    async def process_all(self, company_id: str) -> IngestionReport:
        """Reprocess every stored document of a tenant with bounded concurrency."""
        if self._document_store is None:
            raise ValidationError("process_all requires a document store")
        if not company_id or not company_id.strip():
            raise ValidationError("company_id is required")

        start = time.monotonic()
        documents = await self._document_store.list_documents(company_id)
        queue: asyncio.Queue[Document] = asyncio.Queue()
        for document in documents:
            queue.put_nowait(document)

        results: dict[str, ProcessingResult] = {}
        worker_count = min(max(1, self._settings.ingest_concurrency), max(1, len(documents)))

        async def _worker() -> None:
            while True:
                try:
                    document = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    results[document.document_id] = await self._process_stored(document)
                finally:
                    queue.task_done()

        logger.info(
            "reprocess_started",
            company_id=company_id,
            documents=len(documents),
            workers=worker_count,
        )
        await asyncio.gather(*(_worker() for _ in range(worker_count)))

        completed = sum(1 for r in results.values() if r.succeeded)
        report = IngestionReport(
            company_id=company_id,
            total=len(documents),
            completed=completed,
            failed=len(results) - completed,
            results=results,
            elapsed_seconds=round(time.monotonic() - start, 3),
        )
        logger.info(
            "reprocess_finished",
            company_id=company_id,
            total=report.total,
            completed=report.completed,
            failed=report.failed,
            elapsed_s=report.elapsed_seconds,
        )
        return report

    def ensure_supported(self, mime_type: str, filename: str) -> None:
        """Reject a file type up front, before anything is stored for it."""
        if not self._chain.supports(mime_type, filename):
            raise UnsupportedTypeError(
                f"Unsupported document type: {mime_type or 'unknown'} ({filename})",
                mime_type=mime_type,
            )

    async def delete_document(self, company_id: str, document_id: str) -> int:
        """Remove a document's chunks from the index."""
        removed = await self._vector_store.delete_document(company_id, document_id)
        logger.info("document_chunks_deleted", company_id=company_id, document_id=document_id, count=removed)
        return removed

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    async def _run_pipeline(
        self,
        state: _RunState,
        company_id: str,
        document_id: str,
        file_bytes: bytes,
        filename: str,
        mime_type: str,
    ) -> ProcessingResult:
        # Step 1: extract.
        await self._transition(state, company_id, document_id, ProcessingStatus.EXTRACTING)
        extracted = await self._chain.extract(file_bytes, mime_type, filename)
        text = extracted.text

        # Step 2: chunk.
        await self._transition(state, company_id, document_id, ProcessingStatus.CHUNKING)
        if not text.strip():
            return ProcessingResult(
                status="failed",
                extraction_method=extracted.extraction_method or None,
                error=EMPTY_CONTENT_ERROR,
                failed_step=ProcessingStatus.CHUNKING,
            )
        pieces = self._chunker.split(text)

        # Step 3: embed.
        await self._transition(state, company_id, document_id, ProcessingStatus.EMBEDDING)
        vectors = await self._embed_all(pieces)
        model_version = self._embedding_provider.get_model_version()
        chunks = [
            Chunk(
                chunk_id=make_chunk_id(document_id, index),
                company_id=company_id,
                document_id=document_id,
                document_name=filename,
                chunk_index=index,
                total_chunks=len(pieces),
                content=piece,
                mime_type=mime_type,
                vector=vector,
                embedding_model=model_version,
            )
            for index, (piece, vector) in enumerate(zip(pieces, vectors, strict=True))
        ]

        # Step 4: store (atomic replace of the document's previous set).
        await self._transition(state, company_id, document_id, ProcessingStatus.STORING)
        store_timeout = self._settings.store_timeout_seconds

        async def _upsert() -> int:
            return await with_timeout(
                self._vector_store.upsert_chunks(company_id, document_id, chunks),
                store_timeout,
                lambda: StoreUnavailableError(
                    f"vector store write timed out after {store_timeout}s",
                    provider_name=self._vector_store.get_provider_name(),
                ),
            )

        stored = await retry_transient(
            _upsert,
            max_attempts=self._settings.store_max_attempts,
            base_delay=self._settings.retry_base_delay,
            operation_name="vector_store_upsert",
            logger=logger,
        )

        state.status = ProcessingStatus.COMPLETED
        return ProcessingResult(
            status="succeeded",
            extracted_text=text,
            extraction_method=extracted.extraction_method,
            content_length=len(text),
            chunks_stored=stored,
        )

    async def _embed_all(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts* in slices, each call bounded by a timeout and retried."""
        batch_size = max(1, self._settings.embed_batch_size)
        timeout = self._settings.embedding_timeout_seconds
        provider_name = self._embedding_provider.get_provider_name()
        vectors: list[list[float]] = []

        for start in range(0, len(texts), batch_size):
            batch = texts[start : start + batch_size]

            async def _call(batch: list[str] = batch) -> list[list[float]]:
                return await with_timeout(
                    self._embedding_provider.embed_batch(batch),
                    timeout,
                    lambda: EmbeddingUnavailableError(
                        f"embedding call timed out after {timeout}s",
                        provider_name=provider_name,
                    ),
                )

            batch_vectors = await retry_transient(
                _call,
                max_attempts=self._settings.embedding_max_attempts,
                base_delay=self._settings.retry_base_delay,
                operation_name="embedding",
                logger=logger,
            )
            if len(batch_vectors) != len(batch):
                raise DocRagError(
                    f"embedding provider returned {len(batch_vectors)} vectors for {len(batch)} texts",
                    provider_name=provider_name,
                    step=ProcessingStatus.EMBEDDING.value,
                )
            vectors.extend(batch_vectors)

        logger.debug("embedding_complete", chunks=len(texts), provider=provider_name)
        return vectors

    async def _process_stored(self, document: Document) -> ProcessingResult:
        """Load a stored document's bytes and run it; never raises for one document."""
        try:
            data = await self._document_store.load_bytes(document.company_id, document.document_id)
        except Exception as exc:
            logger.warning(
                "document_load_failed",
                company_id=document.company_id,
                document_id=document.document_id,
                error=str(exc),
            )
            data = None
        if data is None:
            result = ProcessingResult(
                status="failed",
                error="no stored content",
                failed_step=ProcessingStatus.EXTRACTING,
            )
            await self._finish(document.company_id, document.document_id, result)
            return result
        return await self.process(
            document.company_id,
            document.document_id,
            data,
            document.filename,
            document.mime_type,
        )

    # ------------------------------------------------------------------
    # State recording
    # ------------------------------------------------------------------

    async def _transition(
        self,
        state: _RunState,
        company_id: str,
        document_id: str,
        target: ProcessingStatus,
    ) -> None:
        if target not in ALLOWED_TRANSITIONS[state.status]:
            raise DocRagError(
                f"invalid status transition {state.status.value} -> {target.value}",
                step=state.status.value,
            )
        state.status = target
        logger.info("ingestion_step", step=target.value)
        if self._document_store is None:
            return
        try:
            await self._document_store.update_status(company_id, document_id, target)
        except Exception as exc:
            logger.warning("status_record_failed", step=target.value, error=str(exc))

    async def _finish(self, company_id: str, document_id: str, result: ProcessingResult) -> None:
        if self._document_store is None:
            return
        try:
            await self._document_store.record_result(company_id, document_id, result)
        except Exception as exc:
            logger.warning("result_record_failed", status=result.status, error=str(exc))


class _RunState:
    """Mutable cursor for the step a single run is in."""

    __slots__ = ("status",)

    def __init__(self, status: ProcessingStatus) -> None:
        self.status = status


def _failure_message(exc: DocRagError) -> str:
    """Error text recorded on the document; lists every extraction cause."""
    if isinstance(exc, ExtractionError) and exc.attempts:
        return f"{exc} ({'; '.join(exc.attempts)})"
    return str(exc)
