"""Utility modules for docrag.

- **errors** -- Domain exception hierarchy rooted at DocRagError; each
  pipeline step raises its own subclass so callers can decide between
  retrying and failing the document.
- **concurrency** -- semaphore fan-out, timeout wrapping and transient
  retry with bounded exponential backoff.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
"""

from docrag.utils.errors import (
    ConfigurationError,
    DocRagError,
    EmbeddingUnavailableError,
    ExtractionError,
    OCRExtractionError,
    StoreUnavailableError,
    UnsupportedTypeError,
    ValidationError,
)
from docrag.utils.logging import configure_logging, get_logger

__all__ = [
    "ConfigurationError",
    "DocRagError",
    "EmbeddingUnavailableError",
    "ExtractionError",
    "OCRExtractionError",
    "StoreUnavailableError",
    "UnsupportedTypeError",
    "ValidationError",
    "configure_logging",
    "get_logger",
]
