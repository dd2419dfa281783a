"""Tenant-scoped semantic retrieval over the chunk index.

Embeds a query with the same provider used at ingestion time and asks the
vector store for the closest chunks inside one company's namespace.  Also
renders retrieved chunks as a grouped context block for downstream
prompting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from docrag.config.settings import Settings
from docrag.models.rag import SearchHit, SimilarityResult
from docrag.providers.vector_store.validation import validate_top_k
from docrag.utils.concurrency import with_timeout
from docrag.utils.errors import EmbeddingUnavailableError, StoreUnavailableError, ValidationError

if TYPE_CHECKING:
    from docrag.interfaces.embedding_provider import IEmbeddingProvider
    from docrag.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

NO_RESULTS_CONTEXT = "No relevant documents found in vector database."
_RULE = "=" * 60


class RetrievalService:
    """Answers similarity queries for a single tenant at a time."""

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        settings: Settings | None = None,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._settings = settings or Settings()

    async def search(self, company_id: str, query_text: str, top_k: int) -> list[SimilarityResult]:
        """Return the *top_k* chunks of *company_id* most similar to *query_text*.

        Raises
        ------
        ValidationError
            On an empty tenant id, blank query or non-positive *top_k*.
        EmbeddingUnavailableError
            If the query cannot be embedded in time.
        StoreUnavailableError
            If the vector store does not answer in time.
        """
        if not company_id or not company_id.strip():
            raise ValidationError("company_id is required")
        if not query_text or not query_text.strip():
            raise ValidationError("query_text must not be empty")
        validate_top_k(top_k)

        timeout = self._settings.embedding_timeout_seconds
        provider_name = self._embedding_provider.get_provider_name()
        query_vector = await with_timeout(
            self._embedding_provider.embed(query_text),
            timeout,
            lambda: EmbeddingUnavailableError(
                f"query embedding timed out after {timeout}s",
                provider_name=provider_name,
            ),
        )
        store_timeout = self._settings.store_timeout_seconds
        results = await with_timeout(
            self._vector_store.query_similar(company_id, query_vector, top_k),
            store_timeout,
            lambda: StoreUnavailableError(
                f"vector store query timed out after {store_timeout}s",
                provider_name=self._vector_store.get_provider_name(),
                step="query",
            ),
        )
        logger.info(
            "search_complete",
            company_id=company_id,
            top_k=top_k,
            results=len(results),
            best_score=round(results[0].score, 4) if results else None,
        )
        return results

    async def search_hits(
        self,
        company_id: str,
        query_text: str,
        top_k: int | None = None,
    ) -> list[SearchHit]:
        """Like :meth:`search` but shaped for API / CLI output."""
        limit = self._settings.search_default_top_k if top_k is None else top_k
        results = await self.search(company_id, query_text, limit)
        preview_chars = self._settings.search_preview_chars
        return [SearchHit.from_result(r, preview_chars=preview_chars) for r in results]

    async def build_context(self, company_id: str, query_text: str, limit: int = 20) -> str:
        """Render the best matches as a text block grouped by document.

        Groups appear in order of their best-scoring chunk; inside a group
        sections follow the original document order.
        """
        results = await self.search(company_id, query_text, limit)
        if not results:
            return NO_RESULTS_CONTEXT

        groups: dict[str, list[SimilarityResult]] = {}
        for result in results:
            groups.setdefault(result.chunk.document_id, []).append(result)

        lines = [
            f"RELEVANT DOCUMENTS FROM VECTOR SEARCH "
            f"({len(results)} chunks from {len(groups)} documents):",
            "",
        ]
        for group in groups.values():
            first = group[0].chunk
            lines.append(f"DOCUMENT: {first.document_name or first.document_id}")
            lines.append(f"Type: {first.mime_type or 'unknown'}")
            lines.append(f"Relevant Sections ({len(group)}):")
            lines.append(_RULE)
            for result in sorted(group, key=lambda r: r.chunk.chunk_index):
                chunk = result.chunk
                lines.append("")
                lines.append(f"[Section {chunk.chunk_index + 1} of {chunk.total_chunks}]")
                lines.append(chunk.content)
            lines.append("")
            lines.append(_RULE)
            lines.append("")
        return "\n".join(lines)
