"""Text extraction: strategy variants and the fallback chain that runs them."""

from docrag.services.extraction.chain import ExtractionChain
from docrag.services.extraction.strategies import Strategy, normalize_text

__all__ = ["ExtractionChain", "Strategy", "normalize_text"]
