"""Explicit dependency bundle passed to services instead of module globals."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from docrag.config.settings import Settings
from docrag.services.extraction.chain import ExtractionChain
from docrag.services.ingestion.chunker import TextChunker
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.services.retrieval_service import RetrievalService

if TYPE_CHECKING:
    from docrag.interfaces.document_store import IDocumentStore
    from docrag.interfaces.embedding_provider import IEmbeddingProvider
    from docrag.interfaces.vector_store_provider import IVectorStoreProvider


@dataclass(frozen=True)
class IngestionContext:
    """Everything the ingestion and retrieval services depend on.

    Built once per process by ``docrag.main.build_context`` (or directly in
    tests with in-memory stores), then handed to whichever entry point
    needs services.
    """

    settings: Settings
    embedding_provider: IEmbeddingProvider
    vector_store: IVectorStoreProvider
    extraction_chain: ExtractionChain
    chunker: TextChunker
    document_store: IDocumentStore | None = None

    def ingestion_service(self) -> IngestionService:
        return IngestionService(
            extraction_chain=self.extraction_chain,
            chunker=self.chunker,
            embedding_provider=self.embedding_provider,
            vector_store=self.vector_store,
            document_store=self.document_store,
            settings=self.settings,
        )

    def retrieval_service(self) -> RetrievalService:
        return RetrievalService(
            embedding_provider=self.embedding_provider,
            vector_store=self.vector_store,
            settings=self.settings,
        )
