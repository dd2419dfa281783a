"""Models describing text extraction results.

``ExtractedText.extraction_method`` is what gets recorded on the document:
the distinct per-page methods joined with ``+`` in first-use order, so a
PDF whose first page had a text layer and whose later pages were scanned
reports ``text_layer+ocr``.
"""

from __future__ import annotations

from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field


class ExtractionMethod(str, Enum):  # noqa: UP042
    TEXT_LAYER = "text_layer"
    STRUCTURED_PDF = "structured_pdf"
    OCR = "ocr"
    IMAGE_OCR = "image_ocr"
    PLAIN_TEXT = "plain_text"
    DOCX = "docx"
    SPREADSHEET = "spreadsheet"


class MimeClass(str, Enum):  # noqa: UP042
    """Coarse file family that decides which strategies apply."""

    PDF = "pdf"
    IMAGE = "image"
    TEXT = "text"
    DOCX = "docx"
    SPREADSHEET = "spreadsheet"
    UNSUPPORTED = "unsupported"


_TEXTUAL_APPLICATION_TYPES = frozenset(
    {
        "application/json",
        "application/xml",
        "application/csv",
        "application/x-yaml",
        "application/yaml",
        "application/toml",
        "application/javascript",
        "application/x-javascript",
        "application/ecmascript",
        "application/typescript",
        "application/x-sh",
        "application/x-httpd-php",
        "application/sql",
        "application/xhtml+xml",
        "application/rtf",
        "application/x-tex",
        "application/x-latex",
        "application/x-ndjson",
    }
)
_DOCX_TYPES = frozenset(
    {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}
)
_SPREADSHEET_TYPES = frozenset(
    {
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/vnd.ms-excel",
    }
)
_EXTENSION_CLASSES: dict[str, MimeClass] = {
    ".pdf": MimeClass.PDF,
    ".png": MimeClass.IMAGE,
    ".jpg": MimeClass.IMAGE,
    ".jpeg": MimeClass.IMAGE,
    ".tif": MimeClass.IMAGE,
    ".tiff": MimeClass.IMAGE,
    ".bmp": MimeClass.IMAGE,
    ".gif": MimeClass.IMAGE,
    ".webp": MimeClass.IMAGE,
    ".txt": MimeClass.TEXT,
    ".md": MimeClass.TEXT,
    ".csv": MimeClass.TEXT,
    ".json": MimeClass.TEXT,
    ".xml": MimeClass.TEXT,
    ".log": MimeClass.TEXT,
    ".yaml": MimeClass.TEXT,
    ".yml": MimeClass.TEXT,
    ".toml": MimeClass.TEXT,
    ".ini": MimeClass.TEXT,
    ".cfg": MimeClass.TEXT,
    ".conf": MimeClass.TEXT,
    ".rst": MimeClass.TEXT,
    ".tsv": MimeClass.TEXT,
    ".html": MimeClass.TEXT,
    ".htm": MimeClass.TEXT,
    ".css": MimeClass.TEXT,
    ".js": MimeClass.TEXT,
    ".ts": MimeClass.TEXT,
    ".py": MimeClass.TEXT,
    ".java": MimeClass.TEXT,
    ".go": MimeClass.TEXT,
    ".rb": MimeClass.TEXT,
    ".sh": MimeClass.TEXT,
    ".sql": MimeClass.TEXT,
    ".tex": MimeClass.TEXT,
    ".rtf": MimeClass.TEXT,
    ".srt": MimeClass.TEXT,
    ".vtt": MimeClass.TEXT,
    ".docx": MimeClass.DOCX,
    ".xlsx": MimeClass.SPREADSHEET,
    ".xls": MimeClass.SPREADSHEET,
}


def classify(mime_type: str | None, filename: str | None = None) -> MimeClass:
    """Map a MIME type (falling back to the file extension) to a MimeClass.

    ``application/octet-stream`` and empty types defer to the extension,
    since browsers send those for files they do not recognise.
    """
    mime = (mime_type or "").split(";", 1)[0].strip().lower()

    if mime == "application/pdf":
        return MimeClass.PDF
    if mime.startswith("image/"):
        return MimeClass.IMAGE
    if (
        mime.startswith("text/")
        or mime in _TEXTUAL_APPLICATION_TYPES
        or mime.endswith(("+json", "+xml"))
    ):
        return MimeClass.TEXT
    if mime in _DOCX_TYPES:
        return MimeClass.DOCX
    if mime in _SPREADSHEET_TYPES:
        return MimeClass.SPREADSHEET

    if mime in ("", "application/octet-stream") and filename:
        suffix = PurePosixPath(filename).suffix.lower()
        return _EXTENSION_CLASSES.get(suffix, MimeClass.UNSUPPORTED)
    return MimeClass.UNSUPPORTED


class StrategyAttempt(BaseModel):
    """One strategy run, successful or not, kept for diagnostics."""

    model_config = ConfigDict(frozen=True)

    method: ExtractionMethod
    page_number: int | None = None
    succeeded: bool
    reason: str = ""


class ExtractedText(BaseModel):
    """Text produced by the extraction chain for one document."""

    model_config = ConfigDict(frozen=True)

    text: str
    methods: tuple[ExtractionMethod, ...] = Field(default_factory=tuple)
    page_count: int = Field(default=1, ge=0)
    attempts: tuple[StrategyAttempt, ...] = Field(default_factory=tuple)

    @property
    def extraction_method(self) -> str:
        return "+".join(m.value for m in self.methods)

    @property
    def used_ocr(self) -> bool:
        return any(m in (ExtractionMethod.OCR, ExtractionMethod.IMAGE_OCR) for m in self.methods)


class OCRResult(BaseModel):
    """Output of a single OCR provider call."""

    model_config = ConfigDict(frozen=True)

    raw_text: str
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    provider_used: str
    processing_time: float = Field(default=0.0, ge=0.0)
