"""Character-window chunking with boundary back-off and exact overlap.

Splits extracted text into windows of at most ``chunk_size`` characters.
Each window is scanned forward to its maximum length, then backed off to the
nearest preceding natural boundary, in order of preference:

1. paragraph break (blank line)
2. sentence end (``.``, ``!`` or ``?`` followed by whitespace, ignoring
   common abbreviations such as "Dr." or "etc.")
3. any whitespace

Boundaries in the back half of the window are preferred so chunks stay
reasonably full; when the window holds no boundary past the overlap
region the text is cut hard at ``chunk_size``.

The next window starts exactly ``overlap`` characters before the previous
cut, which makes the split lossless::

    chunks[0] + "".join(c[overlap:] for c in chunks[1:]) == text
"""

from __future__ import annotations

import re

import structlog

from docrag.utils.errors import ValidationError

logger = structlog.get_logger(logger_name=__name__)

# Common abbreviations that should NOT count as a sentence end.
_ABBREVIATIONS = frozenset(
    {
        "dr",
        "mr",
        "mrs",
        "ms",
        "prof",
        "jr",
        "sr",
        "st",
        "vs",
        "etc",
        "approx",
        "dept",
        "inc",
        "ltd",
        "co",
        "no",
        "fig",
        "e.g",
        "i.e",
    }
)

_PARAGRAPH_BREAK = re.compile(r"\n[ \t]*\n\s*")
_SENTENCE_END = re.compile(r"([.!?])[\"')\]]*\s+")
_WHITESPACE = re.compile(r"\s+")
_WORD_BEFORE = re.compile(r"([\w.]+)$")


class TextChunker:
    """Splits text into overlapping character windows.

    Parameters
    ----------
    chunk_size:
        Maximum characters per chunk (default 1000).
    overlap:
        Characters shared by consecutive chunks (default 200).  Must be
        smaller than ``chunk_size``.
    """

    def __init__(self, chunk_size: int = 1000, overlap: int = 200) -> None:
        if chunk_size <= 0:
            raise ValidationError(f"chunk_size must be positive, got {chunk_size}", step="chunking")
        if overlap < 0:
            raise ValidationError(f"overlap must not be negative, got {overlap}", step="chunking")
        if overlap >= chunk_size:
            raise ValidationError(
                f"overlap ({overlap}) must be smaller than chunk_size ({chunk_size})",
                step="chunking",
            )
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(self, text: str) -> list[str]:
        """Split *text* into chunks.  Blank input yields ``[]``."""
        if not text or not text.strip():
            return []

        length = len(text)
        if length <= self._chunk_size:
            return [text]

        chunks: list[str] = []
        start = 0
        while True:
            end = start + self._chunk_size
            if end >= length:
                chunks.append(text[start:])
                break
            cut = self._find_cut(text, start, end)
            chunks.append(text[start:cut])
            start = cut - self._overlap

        logger.debug(
            "chunking_complete",
            num_chunks=len(chunks),
            text_length=length,
            chunk_size=self._chunk_size,
            overlap=self._overlap,
        )
        return chunks

    # ------------------------------------------------------------------
    # Boundary search
    # ------------------------------------------------------------------

    def _find_cut(self, text: str, start: int, end: int) -> int:
        """Return the cut position in ``(start + overlap, end]``."""
        # The cut must leave the next window starting after ``start``.
        min_cut = start + self._overlap + 1
        preferred = max(min_cut, start + self._chunk_size // 2)
        window = text[start:end]

        candidates_by_kind = (
            self._paragraph_cuts(window),
            self._sentence_cuts(window),
            self._whitespace_cuts(window),
        )
        for lower in (preferred, min_cut):
            for offsets in candidates_by_kind:
                eligible = [start + o for o in offsets if start + o >= lower]
                if eligible:
                    return max(eligible)
        return end

    @staticmethod
    def _paragraph_cuts(window: str) -> list[int]:
        return [m.end() for m in _PARAGRAPH_BREAK.finditer(window)]

    @staticmethod
    def _sentence_cuts(window: str) -> list[int]:
        cuts: list[int] = []
        for match in _SENTENCE_END.finditer(window):
            if match.group(1) == ".":
                word = _WORD_BEFORE.search(window, 0, match.start())
                if word and word.group(1).lower().rstrip(".") in _ABBREVIATIONS:
                    continue
            cuts.append(match.end())
        return cuts

    @staticmethod
    def _whitespace_cuts(window: str) -> list[int]:
        return [m.end() for m in _WHITESPACE.finditer(window)]


def chunk_text(text: str, max_chunk_size: int = 1000, overlap_size: int = 200) -> list[str]:
    """Functional shorthand for ``TextChunker(max_chunk_size, overlap_size).split(text)``."""
    return TextChunker(chunk_size=max_chunk_size, overlap=overlap_size).split(text)
