"""In-process vector store with exhaustive cosine scoring.

Chunks live in a per-tenant namespace::

    {company_id: {document_id: (Chunk, Chunk, ...)}}

A document's chunk tuple is replaced by a single dict assignment, so a
reader iterating a tenant's namespace sees either the complete old tuple or
the complete new one.  Writers serialise on an ``asyncio.Lock``; readers
take a snapshot of the namespace and never block.

Scoring is a brute-force numpy dot product over the normalised matrix of
the tenant's vectors, which is exact and fine for the corpus sizes a single
tenant produces.
"""

from __future__ import annotations

import asyncio

import numpy as np
import structlog

from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.rag import Chunk, CorpusStats, SimilarityResult, clamp_score, rank_key
from docrag.providers.vector_store.validation import (
    validate_chunk_set,
    validate_ids,
    validate_top_k,
)
from docrag.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)


def cosine_scores(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    """Cosine similarity of every row of *matrix* against *query*.

    Rows (or a query) with zero norm score ``0.0`` rather than NaN.
    """
    query_norm = float(np.linalg.norm(query))
    if query_norm == 0.0 or matrix.size == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)
    row_norms = np.linalg.norm(matrix, axis=1)
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(row_norms > 0, dots / (row_norms * query_norm), 0.0)
    return scores


class InMemoryVectorStore(IVectorStoreProvider):
    """Process-local :class:`IVectorStoreProvider` used for tests and small deployments."""

    def __init__(self) -> None:
        self._namespaces: dict[str, dict[str, tuple[Chunk, ...]]] = {}
        self._write_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert_chunks(
        self,
        company_id: str,
        document_id: str,
        chunks: list[Chunk],
    ) -> int:
        validate_chunk_set(company_id, document_id, chunks)
        new_set = tuple(sorted(chunks, key=lambda c: c.chunk_index))

        async with self._write_lock:
            namespace = dict(self._namespaces.get(company_id, {}))
            if new_set:
                namespace[document_id] = new_set
            else:
                namespace.pop(document_id, None)
            # Single reference swap: readers holding the old dict keep a
            # consistent view.
            self._namespaces[company_id] = namespace

        logger.info(
            "memory_store_upsert",
            company_id=company_id,
            document_id=document_id,
            chunks=len(new_set),
        )
        return len(new_set)

    async def delete_document(self, company_id: str, document_id: str) -> int:
        validate_ids(company_id, document_id)
        async with self._write_lock:
            namespace = dict(self._namespaces.get(company_id, {}))
            removed = namespace.pop(document_id, ())
            self._namespaces[company_id] = namespace
        logger.info(
            "memory_store_delete",
            company_id=company_id,
            document_id=document_id,
            deleted_count=len(removed),
        )
        return len(removed)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def query_similar(
        self,
        company_id: str,
        query_vector: list[float],
        top_k: int,
    ) -> list[SimilarityResult]:
        validate_top_k(top_k)
        validate_ids(company_id)

        chunks = [c for doc in self._namespaces.get(company_id, {}).values() for c in doc]
        if not chunks:
            return []

        # Documents embedded by an earlier model keep their old dimension
        # until reprocessed; they cannot be compared with this query.
        dimension = len(query_vector)
        comparable = [c for c in chunks if len(c.vector) == dimension]
        if not comparable:
            raise ValidationError(
                f"query vector has dimension {dimension}, "
                f"index has {sorted({len(c.vector) for c in chunks})}",
                step="query",
            )
        if len(comparable) < len(chunks):
            logger.warning(
                "memory_store_stale_vectors_skipped",
                company_id=company_id,
                skipped=len(chunks) - len(comparable),
                stale_documents=sorted(
                    {c.document_id for c in chunks if len(c.vector) != dimension}
                ),
            )
        chunks = comparable

        matrix = np.asarray([c.vector for c in chunks], dtype=np.float64)
        scores = cosine_scores(matrix, np.asarray(query_vector, dtype=np.float64))

        results = [
            SimilarityResult(chunk=chunk, score=clamp_score(score))
            for chunk, score in zip(chunks, scores.tolist(), strict=True)
        ]
        results.sort(key=rank_key)
        return results[:top_k]

    async def get_document_chunks(self, company_id: str, document_id: str) -> list[Chunk]:
        return list(self._namespaces.get(company_id, {}).get(document_id, ()))

    async def list_document_ids(self, company_id: str) -> set[str]:
        return set(self._namespaces.get(company_id, {}))

    async def get_stats(self, company_id: str) -> CorpusStats:
        namespace = self._namespaces.get(company_id, {})
        by_document = {doc_id: len(chunks) for doc_id, chunks in namespace.items()}
        return CorpusStats(
            company_id=company_id,
            total_chunks=sum(by_document.values()),
            total_documents=len(by_document),
            chunks_by_document=by_document,
        )

    def get_provider_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True
