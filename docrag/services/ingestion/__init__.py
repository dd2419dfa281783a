"""Ingestion pipeline: chunking and the orchestrating service."""

from docrag.services.ingestion.chunker import TextChunker, chunk_text
from docrag.services.ingestion.ingestion_service import EMPTY_CONTENT_ERROR, IngestionService

__all__ = ["EMPTY_CONTENT_ERROR", "IngestionService", "TextChunker", "chunk_text"]
