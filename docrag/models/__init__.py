"""docrag domain models - re-exports all public model classes.

    - document.py   - Document lifecycle, processing status and results
    - extraction.py - Extraction methods, MIME classification, OCR output
    - rag.py        - Chunks, similarity results, search hits, corpus stats
"""

from __future__ import annotations

from docrag.models.document import (
    Document,
    IngestionReport,
    ProcessingResult,
    ProcessingStatus,
)
from docrag.models.extraction import (
    ExtractedText,
    ExtractionMethod,
    MimeClass,
    OCRResult,
    StrategyAttempt,
    classify,
)
from docrag.models.rag import (
    Chunk,
    CorpusStats,
    SearchHit,
    SimilarityResult,
    make_chunk_id,
    rank_key,
)

__all__ = [
    "Chunk",
    "CorpusStats",
    "Document",
    "ExtractedText",
    "ExtractionMethod",
    "IngestionReport",
    "MimeClass",
    "OCRResult",
    "ProcessingResult",
    "ProcessingStatus",
    "SearchHit",
    "SimilarityResult",
    "StrategyAttempt",
    "classify",
    "make_chunk_id",
    "rank_key",
]
