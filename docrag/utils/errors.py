"""Custom exception hierarchy for docrag.

All application exceptions inherit from :class:`DocRagError`, which carries
an optional ``provider_name`` (the external collaborator that failed, e.g.
"openai", "tesseract", "chromadb") and an optional ``step`` naming the
ingestion step the failure surfaced in.

The hierarchy is organized by pipeline step:

    DocRagError  (base -- catch-all for any docrag error)
    +-- ValidationError            (bad caller input: top_k, ids, chunk sizes)
    +-- UnsupportedTypeError       (file type has no extraction strategy)
    +-- ExtractionError            (every extraction strategy failed)
    +-- OCRExtractionError         (a single OCR pass failed)
    +-- EmbeddingUnavailableError  (embedding backend down / timed out)
    +-- StoreUnavailableError      (vector store down / write failed)
    +-- ConfigurationError         (startup / missing config)

``retryable`` tells the orchestrator which failures are transient: only the
two ``*UnavailableError`` classes are retried with backoff, everything else
fails the document immediately.
"""

from __future__ import annotations


class DocRagError(Exception):
    """Base exception for all docrag errors.

    Every subclass carries a human-readable ``message``, an optional
    ``provider_name`` identifying which external service triggered the
    error, and an optional ``step`` (``extracting``, ``embedding`` ...).
    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[openai] Connection reset``.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
        step: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        self._step = step
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    @property
    def step(self) -> str | None:
        return self._step

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors
# ---------------------------------------------------------------------------

class ValidationError(DocRagError):
    """Raised when caller-supplied arguments are invalid (non-retryable)."""

    def __init__(
        self,
        message: str = "Invalid request",
        provider_name: str | None = None,
        step: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, step=step)


class ConfigurationError(DocRagError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
        step: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, step=step)


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------

class UnsupportedTypeError(DocRagError):
    """Raised when a file's MIME type has no extraction strategy at all."""

    def __init__(
        self,
        message: str = "Unsupported document type",
        provider_name: str | None = None,
        step: str | None = "extracting",
        mime_type: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, step=step)
        self.mime_type = mime_type


class ExtractionError(DocRagError):
    """Raised when every applicable extraction strategy failed.

    ``attempts`` lists ``"<method>: <reason>"`` strings in the order the
    strategies ran, so the surfaced error names every cause.
    """

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
        step: str | None = "extracting",
        attempts: list[str] | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, step=step)
        self.attempts = list(attempts or [])


class OCRExtractionError(DocRagError):
    """Raised by an OCR provider when a single recognition pass fails."""

    def __init__(
        self,
        message: str = "OCR text extraction failed",
        provider_name: str | None = None,
        step: str | None = "extracting",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, step=step)


# ---------------------------------------------------------------------------
# Transient backend errors
# ---------------------------------------------------------------------------

class EmbeddingUnavailableError(DocRagError):
    """Raised when the embedding backend is unreachable, failing, or too slow."""

    retryable = True

    def __init__(
        self,
        message: str = "Embedding provider is unavailable",
        provider_name: str | None = None,
        step: str | None = "embedding",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, step=step)


class StoreUnavailableError(DocRagError):
    """Raised when the vector store cannot be read or written."""

    retryable = True

    def __init__(
        self,
        message: str = "Vector store is unavailable",
        provider_name: str | None = None,
        step: str | None = "storing",
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, step=step)
