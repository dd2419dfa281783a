"""Extraction chain: turn an uploaded file into plain text.

Architecture: Fallback Chain
----------------------------
Strategies are tried in order and the chain advances only when the current
strategy's output fails the minimum-content heuristic (fewer than
``min_content_chars`` non-whitespace characters, which is how a scanned
page without a text layer looks).  The best sub-threshold output seen is
kept as a safety net, so a genuinely short page is not thrown away.

    PDF    (per page)  text_layer → structured_pdf → ocr
    image              image_ocr
    text               plain_text
    DOCX               docx
    spreadsheet        spreadsheet
    other              UnsupportedTypeError, nothing is attempted

PDF pages escalate independently: a document whose first page carries a
text layer and whose remaining pages are scans is reported as
``text_layer+ocr``.  A page on which every strategy fails is skipped and
noted in ``attempts``; the document fails only when no page yields text.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import structlog

from docrag.interfaces.ocr_provider import IOCRProvider
from docrag.models.extraction import (
    ExtractedText,
    ExtractionMethod,
    MimeClass,
    StrategyAttempt,
    classify,
)
from docrag.services.extraction.strategies import (
    PdfPage,
    Strategy,
    content_chars,
    docx_strategy,
    image_ocr_strategy,
    open_pdf,
    pdf_ocr_strategy,
    pdf_structured_strategy,
    pdf_text_layer_strategy,
    plain_text_strategy,
    spreadsheet_strategy,
)
from docrag.utils.errors import ExtractionError, UnsupportedTypeError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MIN_CONTENT_CHARS = 20


@dataclass
class _UnitResult:
    text: str | None = None
    method: ExtractionMethod | None = None
    attempts: list[StrategyAttempt] = field(default_factory=list)


class ExtractionChain:
    """Runs the strategy list appropriate for a file's MIME class.

    Parameters
    ----------
    ocr_provider:
        Engine used for scanned pages and images.  ``None`` makes every
        OCR strategy fail, which still lets text-layer PDFs through.
    min_content_chars:
        Minimum non-whitespace characters for a strategy's output to be
        accepted without trying the next strategy.
    ocr_dpi:
        Rasterisation resolution for scanned PDF pages.
    ocr_max_pages:
        Maximum PDF pages sent to OCR per document (``0`` = unlimited).
    ocr_timeout_seconds:
        Per-call OCR timeout; a breach fails that strategy.
    """

    def __init__(
        self,
        ocr_provider: IOCRProvider | None,
        *,
        min_content_chars: int = _DEFAULT_MIN_CONTENT_CHARS,
        ocr_dpi: int = 200,
        ocr_max_pages: int = 0,
        ocr_timeout_seconds: float = 60.0,
    ) -> None:
        self._ocr_provider = ocr_provider
        self._min_content_chars = max(1, min_content_chars)
        self._ocr_max_pages = max(0, ocr_max_pages)
        self._pdf_strategies: tuple[Strategy, ...] = (
            pdf_text_layer_strategy(),
            pdf_structured_strategy(),
            pdf_ocr_strategy(ocr_provider, dpi=ocr_dpi, timeout_seconds=ocr_timeout_seconds),
        )
        self._file_strategies: dict[MimeClass, tuple[Strategy, ...]] = {
            MimeClass.IMAGE: (image_ocr_strategy(ocr_provider, ocr_timeout_seconds),),
            MimeClass.TEXT: (plain_text_strategy(),),
            MimeClass.DOCX: (docx_strategy(),),
            MimeClass.SPREADSHEET: (spreadsheet_strategy(),),
        }

    @property
    def ocr_provider(self) -> IOCRProvider | None:
        return self._ocr_provider

    def supports(self, mime_type: str, filename: str = "") -> bool:
        """Return ``True`` if some strategy handles this MIME type or extension."""
        return classify(mime_type, filename) is not MimeClass.UNSUPPORTED

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def extract(self, data: bytes, mime_type: str, filename: str = "") -> ExtractedText:
        """Extract text from *data*.

        Raises
        ------
        UnsupportedTypeError
            If the MIME type (and filename extension) match no strategy.
        ExtractionError
            If every applicable strategy failed.
        """
        mime_class = classify(mime_type, filename)
        if mime_class is MimeClass.UNSUPPORTED:
            raise UnsupportedTypeError(
                f"Unsupported document type: {mime_type or 'unknown'} ({filename})",
                mime_type=mime_type,
            )

        if mime_class is MimeClass.PDF:
            return await self._extract_pdf(data)

        unit = await self._run_unit(self._file_strategies[mime_class], data, page_number=None)
        if unit.text is None:
            raise ExtractionError(
                f"All extraction strategies failed for {filename or mime_type}",
                attempts=[_describe(a) for a in unit.attempts],
            )

        logger.info(
            "extraction_complete",
            mime_class=mime_class.value,
            method=unit.method.value if unit.method else None,
            chars=len(unit.text),
        )
        return ExtractedText(
            text=unit.text,
            methods=(unit.method,) if unit.method else (),
            page_count=1,
            attempts=tuple(unit.attempts),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _extract_pdf(self, data: bytes) -> ExtractedText:
        try:
            document = await asyncio.to_thread(open_pdf, data)
        except Exception as exc:  # noqa: BLE001 - corrupt input fails every strategy
            reason = f"{type(exc).__name__}: {exc}"
            raise ExtractionError(
                f"PDF could not be opened: {reason}",
                attempts=[f"{s.method.value}: {reason}" for s in self._pdf_strategies],
            ) from exc

        if document.page_count == 0:
            document.close()
            raise ExtractionError(
                "PDF has no pages",
                attempts=[f"{s.method.value}: document has no pages" for s in self._pdf_strategies],
            )

        try:
            page_count = document.page_count
            page_texts: list[str] = []
            methods: list[ExtractionMethod] = []
            attempts: list[StrategyAttempt] = []
            ocr_pages_used = 0

            for index in range(page_count):
                strategies = self._pdf_strategies
                if self._ocr_max_pages and ocr_pages_used >= self._ocr_max_pages:
                    strategies = tuple(s for s in strategies if s.method is not ExtractionMethod.OCR)

                unit = await self._run_unit(
                    strategies, PdfPage(document=document, index=index), page_number=index + 1
                )
                attempts.extend(unit.attempts)
                if any(a.method is ExtractionMethod.OCR for a in unit.attempts):
                    ocr_pages_used += 1

                if unit.text is None or unit.method is None:
                    logger.warning("pdf_page_unreadable", page=index + 1)
                    continue
                page_texts.append(unit.text)
                if unit.method not in methods:
                    methods.append(unit.method)
        finally:
            document.close()

        if not page_texts:
            raise ExtractionError(
                f"No text could be extracted from any of {page_count} PDF pages",
                attempts=[_describe(a) for a in attempts],
            )

        extracted = ExtractedText(
            text="\n\n".join(page_texts),
            methods=tuple(methods),
            page_count=page_count,
            attempts=tuple(attempts),
        )
        logger.info(
            "pdf_extraction_complete",
            pages=page_count,
            pages_with_text=len(page_texts),
            method=extracted.extraction_method,
            chars=len(extracted.text),
        )
        return extracted

    async def _run_unit(
        self,
        strategies: tuple[Strategy, ...],
        unit: object,
        page_number: int | None,
    ) -> _UnitResult:
        """Run *strategies* on one unit until one meets the content threshold."""
        result = _UnitResult()
        best_text: str | None = None
        best_method: ExtractionMethod | None = None

        for strategy in strategies:
            outcome = await strategy.run(unit)
            text = outcome.text
            chars = content_chars(text)

            if text is not None and (chars >= self._min_content_chars or strategy.accepts_empty):
                result.attempts.append(
                    StrategyAttempt(method=strategy.method, page_number=page_number, succeeded=True)
                )
                result.text, result.method = text, strategy.method
                return result

            reason = outcome.reason or f"below threshold ({chars} < {self._min_content_chars} chars)"
            result.attempts.append(
                StrategyAttempt(
                    method=strategy.method,
                    page_number=page_number,
                    succeeded=False,
                    reason=reason,
                )
            )
            logger.debug(
                "extraction_strategy_failed",
                method=strategy.method.value,
                page=page_number,
                reason=reason,
            )
            if chars > content_chars(best_text):
                best_text, best_method = text, strategy.method

        # Nothing met the threshold; fall back to the richest short output.
        if best_text is not None and best_method is not None:
            result.text, result.method = best_text, best_method
        return result


def _describe(attempt: StrategyAttempt) -> str:
    where = f" (page {attempt.page_number})" if attempt.page_number else ""
    return f"{attempt.method.value}{where}: {attempt.reason}"
