"""Abstract base class for OCR service providers.

Any OCR engine used to recover text from scanned PDF pages or uploaded
images implements this contract.  The extraction chain enforces its own
timeout around :meth:`IOCRProvider.extract_text`, so providers need not.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from docrag.models.extraction import OCRResult


# Concrete implementation: TesseractOCRProvider (docrag/providers/ocr/)
class IOCRProvider(ABC):
    """Contract for OCR engines."""

    @abstractmethod
    async def extract_text(self, image_data: bytes) -> OCRResult:
        """Run OCR on an encoded image (PNG, JPEG, TIFF ...).

        Parameters
        ----------
        image_data:
            Raw encoded image bytes.

        Returns
        -------
        OCRResult
            Recognised text and mean word confidence.

        Raises
        ------
        docrag.utils.errors.OCRExtractionError
            If the image cannot be decoded or the engine fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"tesseract"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the engine binary / credentials are present."""
