"""OCR provider implementations.

Only Tesseract is shipped; the extraction chain takes any IOCRProvider.
"""

from docrag.providers.ocr.tesseract_provider import TesseractOCRProvider

__all__ = ["TesseractOCRProvider"]
