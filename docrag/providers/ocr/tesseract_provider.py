"""Tesseract OCR provider for scanned pages and uploaded images.

Wraps pytesseract.  Recognition runs in a worker thread because the
Tesseract binary is invoked synchronously; the extraction chain bounds the
call with its own timeout, and ``timeout`` here additionally lets
pytesseract kill a runaway Tesseract process.
"""

from __future__ import annotations

import asyncio
import io
import time

import pytesseract
from PIL import Image

from docrag.interfaces.ocr_provider import IOCRProvider
from docrag.models.extraction import OCRResult
from docrag.utils.errors import OCRExtractionError
from docrag.utils.logging import get_logger


class TesseractOCRProvider(IOCRProvider):
    """OCR provider backed by Google Tesseract via pytesseract."""

    def __init__(
        self,
        language: str = "eng",
        timeout_seconds: float = 60.0,
        tesseract_cmd: str | None = None,
    ) -> None:
        self._language = language
        self._timeout = timeout_seconds
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self._logger = get_logger(__name__)

    # ------------------------------------------------------------------
    # IOCRProvider interface
    # ------------------------------------------------------------------

    async def extract_text(self, image_data: bytes) -> OCRResult:
        """Recognise the text of one encoded image."""
        start = time.perf_counter()
        try:
            result = await asyncio.to_thread(self._recognise, image_data)
        except OCRExtractionError:
            raise
        except Exception as exc:
            elapsed = time.perf_counter() - start
            self._logger.error(
                "ocr_extraction_failed",
                provider="tesseract",
                error=str(exc),
                processing_time=round(elapsed, 3),
            )
            raise OCRExtractionError(
                f"Tesseract OCR failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        raw_text, confidence = result
        elapsed = time.perf_counter() - start
        self._logger.info(
            "ocr_extraction_complete",
            provider="tesseract",
            chars=len(raw_text),
            confidence=round(confidence, 4),
            processing_time=round(elapsed, 3),
        )
        return OCRResult(
            raw_text=raw_text,
            confidence=confidence,
            provider_used=self.get_provider_name(),
            processing_time=elapsed,
        )

    def get_provider_name(self) -> str:
        return "tesseract"

    def is_available(self) -> bool:
        """Check that the Tesseract binary can be executed."""
        try:
            pytesseract.get_tesseract_version()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _recognise(self, image_data: bytes) -> tuple[str, float]:
        """Run Tesseract once and rebuild line-broken text from word data.

        Uses only ``image_to_data`` so Tesseract runs a single time per
        image; words are re-joined per (block, paragraph, line).
        """
        with Image.open(io.BytesIO(image_data)) as img:
            image = img.convert("RGB")

        data = pytesseract.image_to_data(
            image,
            lang=self._language,
            output_type=pytesseract.Output.DICT,
            timeout=self._timeout,
        )

        lines: list[str] = []
        current: list[str] = []
        confidences: list[float] = []
        prev_key: tuple[int, int, int] | None = None
        prev_block: tuple[int, int] | None = None

        for i, raw_word in enumerate(data["text"]):
            word = raw_word.strip()
            conf = float(data["conf"][i])
            # conf == -1 marks layout rows that carry no word
            if not word or conf < 0:
                continue
            key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
            if prev_key is not None and key != prev_key:
                lines.append(" ".join(current))
                current = []
                if prev_block is not None and key[:2] != prev_block:
                    lines.append("")
            current.append(word)
            confidences.append(conf)
            prev_key = key
            prev_block = key[:2]

        if current:
            lines.append(" ".join(current))

        raw_text = "\n".join(lines).strip()
        confidence = (sum(confidences) / len(confidences) / 100.0) if confidences else 0.0
        return raw_text, min(1.0, confidence)
