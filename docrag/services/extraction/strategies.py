"""Extraction strategies: a tagged list of stateless variants.

Every strategy is a :class:`Strategy` value pairing an
:class:`ExtractionMethod` tag with an async ``attempt`` callable.  An attempt
receives one *unit* of input (the whole file's bytes, or one PDF page) and
returns the extracted text, or ``None`` when it produced nothing.

Attempts are allowed to raise; :meth:`Strategy.run` converts any exception
into a failure marker with a reason string, so a chain built from
strategies never raises on a strategy's behalf.  Cancellation is not an
exception here and always propagates.

Strategies that need collaborators or tunables (OCR provider, DPI,
timeouts) are built by small factory functions that close over them; the
resulting values hold no mutable state and can be shared freely.
"""

from __future__ import annotations

import asyncio
import codecs
import io
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import fitz  # PyMuPDF

from docrag.interfaces.ocr_provider import IOCRProvider
from docrag.models.extraction import ExtractionMethod
from docrag.utils.concurrency import with_timeout
from docrag.utils.errors import OCRExtractionError

_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_TRAILING_SPACE = re.compile(r"[ \t\r\f\v]+\n")


@dataclass(frozen=True)
class PdfPage:
    """One page of an open PyMuPDF document (0-based ``index``)."""

    document: Any
    index: int

    @property
    def page_number(self) -> int:
        return self.index + 1


@dataclass(frozen=True)
class StrategyOutcome:
    text: str | None
    reason: str = ""


@dataclass(frozen=True)
class Strategy:
    """A tagged extraction variant.

    ``accepts_empty`` marks direct decoders (plain text, DOCX, spreadsheets)
    whose successful but empty output is a legitimate "no content" answer
    rather than a reason to try something else.
    """

    method: ExtractionMethod
    attempt: Callable[[Any], Awaitable[str | None]]
    accepts_empty: bool = False

    async def run(self, unit: Any) -> StrategyOutcome:
        try:
            text = await self.attempt(unit)
        except Exception as exc:  # noqa: BLE001 - every failure becomes a marker
            return StrategyOutcome(text=None, reason=f"{type(exc).__name__}: {exc}")
        if text is None:
            return StrategyOutcome(text=None, reason="no output")
        return StrategyOutcome(text=normalize_text(text))


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------


def normalize_text(text: str) -> str:
    """Strip NULs and trailing spaces, collapse 3+ newlines, trim the ends."""
    cleaned = text.replace("\x00", "").replace("\r\n", "\n")
    cleaned = _TRAILING_SPACE.sub("\n", cleaned)
    cleaned = _EXCESS_NEWLINES.sub("\n\n", cleaned)
    return cleaned.strip()


def content_chars(text: str | None) -> int:
    """Number of non-whitespace characters in *text*."""
    if not text:
        return 0
    return sum(1 for ch in text if not ch.isspace())


# ---------------------------------------------------------------------------
# PDF page strategies
# ---------------------------------------------------------------------------


async def _pdf_text_layer(page: PdfPage) -> str | None:
    def _read() -> str:
        return page.document[page.index].get_text("text")

    return await asyncio.to_thread(_read)


def _spans_from_rawdict(raw: dict) -> str:
    blocks: list[str] = []
    for block in raw.get("blocks", []):
        # type 1 blocks are images
        if block.get("type", 0) != 0:
            continue
        lines: list[str] = []
        for line in block.get("lines", []):
            parts: list[str] = []
            for span in line.get("spans", []):
                if "text" in span:
                    parts.append(span["text"])
                else:
                    parts.append("".join(ch.get("c", "") for ch in span.get("chars", [])))
            line_text = "".join(parts).strip()
            if line_text:
                lines.append(line_text)
        if lines:
            blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


async def _pdf_structured(page: PdfPage) -> str | None:
    """Rebuild page text from PyMuPDF's glyph-level layout (reading order sorted)."""

    def _read() -> str:
        raw = page.document[page.index].get_text("rawdict", sort=True)
        return _spans_from_rawdict(raw)

    return await asyncio.to_thread(_read)


def rasterize_page(page: PdfPage, dpi: int) -> bytes:
    """Render one page to PNG bytes at *dpi*."""
    pixmap = page.document[page.index].get_pixmap(dpi=dpi)
    return pixmap.tobytes("png")


async def _ocr_bytes(
    ocr_provider: IOCRProvider | None,
    image_data: bytes,
    timeout_seconds: float,
) -> str:
    if ocr_provider is None:
        raise OCRExtractionError("no OCR provider configured")
    result = await with_timeout(
        ocr_provider.extract_text(image_data),
        timeout_seconds,
        lambda: OCRExtractionError(
            f"OCR timed out after {timeout_seconds}s",
            provider_name=ocr_provider.get_provider_name(),
        ),
    )
    return result.raw_text


def pdf_text_layer_strategy() -> Strategy:
    return Strategy(ExtractionMethod.TEXT_LAYER, _pdf_text_layer)


def pdf_structured_strategy() -> Strategy:
    return Strategy(ExtractionMethod.STRUCTURED_PDF, _pdf_structured)


def pdf_ocr_strategy(
    ocr_provider: IOCRProvider | None,
    dpi: int = 200,
    timeout_seconds: float = 60.0,
) -> Strategy:
    async def _attempt(page: PdfPage) -> str | None:
        png = await asyncio.to_thread(rasterize_page, page, dpi)
        return await _ocr_bytes(ocr_provider, png, timeout_seconds)

    return Strategy(ExtractionMethod.OCR, _attempt)


# ---------------------------------------------------------------------------
# Whole-file strategies
# ---------------------------------------------------------------------------


def image_ocr_strategy(
    ocr_provider: IOCRProvider | None,
    timeout_seconds: float = 60.0,
) -> Strategy:
    async def _attempt(data: bytes) -> str | None:
        return await _ocr_bytes(ocr_provider, data, timeout_seconds)

    return Strategy(ExtractionMethod.IMAGE_OCR, _attempt)


_SNIFF_BYTES = 8192


async def _decode_plain_text(data: bytes) -> str | None:
    if data.startswith((codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)):
        return data.decode("utf-16")
    # NUL bytes mean a binary file behind a textual name or type
    if b"\x00" in data[:_SNIFF_BYTES]:
        raise ValueError("binary content in a text-typed file")
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        # latin-1 maps every byte, so this cannot fail
        return data.decode("latin-1")


def plain_text_strategy() -> Strategy:
    return Strategy(ExtractionMethod.PLAIN_TEXT, _decode_plain_text, accepts_empty=True)


def _read_docx(data: bytes) -> str:
    import docx

    document = docx.Document(io.BytesIO(data))
    parts = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                parts.append("\t".join(cells))
    return "\n\n".join(parts)


async def _docx_attempt(data: bytes) -> str | None:
    return await asyncio.to_thread(_read_docx, data)


def docx_strategy() -> Strategy:
    return Strategy(ExtractionMethod.DOCX, _docx_attempt, accepts_empty=True)


def _read_spreadsheet(data: bytes) -> str:
    import pandas as pd

    sheets = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, dtype=str)
    sections: list[str] = []
    for name, frame in sheets.items():
        rows = [
            "\t".join(cell for cell in row if cell)
            for row in frame.fillna("").itertuples(index=False, name=None)
        ]
        rows = [r for r in rows if r.strip()]
        if rows:
            sections.append(f"Sheet: {name}\n" + "\n".join(rows))
    return "\n\n".join(sections)


async def _spreadsheet_attempt(data: bytes) -> str | None:
    return await asyncio.to_thread(_read_spreadsheet, data)


def spreadsheet_strategy() -> Strategy:
    return Strategy(ExtractionMethod.SPREADSHEET, _spreadsheet_attempt, accepts_empty=True)


def open_pdf(data: bytes) -> Any:
    """Open PDF bytes with PyMuPDF; raises on corrupt or encrypted input."""
    document = fitz.open(stream=data, filetype="pdf")
    if document.needs_pass:
        document.close()
        raise ValueError("PDF is password protected")
    return document
