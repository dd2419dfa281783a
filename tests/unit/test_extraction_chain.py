"""Unit tests for the ExtractionChain fallback behaviour."""

from __future__ import annotations

import io

import pytest

from docrag.models.extraction import ExtractionMethod
from docrag.services.extraction.chain import ExtractionChain
from docrag.services.extraction.strategies import (
    PdfPage,
    _spans_from_rawdict,
    open_pdf,
    pdf_structured_strategy,
)
from docrag.utils.errors import ExtractionError, UnsupportedTypeError

_PAGE_ONE = (
    "Quarterly operations report. Revenue grew in every region and the support "
    "backlog fell below two hundred open tickets."
)
_SCAN_TWO = "Scanned appendix A lists every warehouse and its manager."
_SCAN_THREE = "Scanned appendix B lists the carriers used for express delivery."


def _chain(ocr=None, **kwargs) -> ExtractionChain:  # noqa: ANN001
    kwargs.setdefault("ocr_dpi", 72)
    kwargs.setdefault("ocr_timeout_seconds", 0.5)
    return ExtractionChain(ocr, **kwargs)


# ---------------------------------------------------------------------------
# PDF handling
# ---------------------------------------------------------------------------


class TestPdfExtraction:
    @pytest.mark.asyncio
    async def test_text_layer_pdf_skips_ocr(self, pdf_builder, ocr_factory) -> None:
        ocr = ocr_factory()
        extracted = await _chain(ocr).extract(pdf_builder([_PAGE_ONE]), "application/pdf", "report.pdf")

        assert extracted.extraction_method == "text_layer"
        assert "Quarterly operations report" in extracted.text
        assert extracted.page_count == 1
        assert ocr.calls == 0
        assert not extracted.used_ocr

    @pytest.mark.asyncio
    async def test_mixed_pdf_reports_both_methods(self, pdf_builder, ocr_factory) -> None:
        """Page 1 has a text layer, pages 2-3 are scans."""
        ocr = ocr_factory(texts=[_SCAN_TWO, _SCAN_THREE])
        data = pdf_builder([_PAGE_ONE, None, None])

        extracted = await _chain(ocr).extract(data, "application/pdf", "mixed.pdf")

        assert extracted.extraction_method == "text_layer+ocr"
        assert extracted.page_count == 3
        assert ocr.calls == 2
        assert extracted.text.index("Quarterly") < extracted.text.index("appendix A")
        assert extracted.text.index("appendix A") < extracted.text.index("appendix B")
        failed_methods = {a.method for a in extracted.attempts if not a.succeeded}
        assert failed_methods == {ExtractionMethod.TEXT_LAYER, ExtractionMethod.STRUCTURED_PDF}

    @pytest.mark.asyncio
    async def test_short_page_keeps_best_sub_threshold_text(self, pdf_builder, ocr_factory) -> None:
        ocr = ocr_factory(texts=[""])
        extracted = await _chain(ocr).extract(pdf_builder(["Hi"]), "application/pdf", "short.pdf")

        assert extracted.text == "Hi"
        assert extracted.extraction_method == "text_layer"
        assert ocr.calls == 1

    @pytest.mark.asyncio
    async def test_ocr_page_cap(self, pdf_builder, ocr_factory) -> None:
        ocr = ocr_factory(texts=[_SCAN_TWO, _SCAN_THREE])
        chain = _chain(ocr, ocr_max_pages=1)

        extracted = await chain.extract(pdf_builder([None, None]), "application/pdf", "scan.pdf")

        assert ocr.calls == 1
        assert "appendix A" in extracted.text
        assert "appendix B" not in extracted.text

    @pytest.mark.asyncio
    async def test_scanned_pdf_without_ocr_fails_with_all_causes(self, pdf_builder) -> None:
        with pytest.raises(ExtractionError) as exc_info:
            await _chain(None).extract(pdf_builder([None]), "application/pdf", "scan.pdf")

        attempts = exc_info.value.attempts
        assert len(attempts) == 3
        assert attempts[0].startswith("text_layer (page 1)")
        assert attempts[1].startswith("structured_pdf (page 1)")
        assert "no OCR provider configured" in attempts[2]

    @pytest.mark.asyncio
    async def test_corrupt_pdf_lists_every_strategy(self, ocr_factory) -> None:
        with pytest.raises(ExtractionError) as exc_info:
            await _chain(ocr_factory()).extract(b"this is not a pdf at all", "application/pdf", "bad.pdf")

        assert [a.split(":")[0] for a in exc_info.value.attempts] == [
            "text_layer",
            "structured_pdf",
            "ocr",
        ]


# ---------------------------------------------------------------------------
# Images and OCR timeouts
# ---------------------------------------------------------------------------


class TestImageExtraction:
    @pytest.mark.asyncio
    async def test_image_goes_straight_to_ocr(self, png_bytes: bytes, ocr_factory) -> None:
        ocr = ocr_factory(texts=[_SCAN_TWO])
        extracted = await _chain(ocr).extract(png_bytes, "image/png", "scan.png")

        assert extracted.extraction_method == "image_ocr"
        assert extracted.text == _SCAN_TWO

    @pytest.mark.asyncio
    async def test_ocr_timeout_fails_the_strategy(self, png_bytes: bytes, ocr_factory) -> None:
        ocr = ocr_factory(texts=[_SCAN_TWO], delays=[5.0])
        chain = _chain(ocr, ocr_timeout_seconds=0.05)

        with pytest.raises(ExtractionError) as exc_info:
            await chain.extract(png_bytes, "image/png", "scan.png")

        assert "timed out" in exc_info.value.attempts[0]

    @pytest.mark.asyncio
    async def test_octet_stream_falls_back_to_extension(self, png_bytes: bytes, ocr_factory) -> None:
        extracted = await _chain(ocr_factory(texts=[_SCAN_TWO])).extract(
            png_bytes, "application/octet-stream", "photo.jpg"
        )
        assert extracted.extraction_method == "image_ocr"


# ---------------------------------------------------------------------------
# Direct decoders
# ---------------------------------------------------------------------------


class TestDirectDecoders:
    @pytest.mark.asyncio
    async def test_plain_text_utf8(self) -> None:
        extracted = await _chain().extract("Café menu\r\nSoup".encode(), "text/plain", "menu.txt")
        assert extracted.text == "Café menu\nSoup"
        assert extracted.extraction_method == "plain_text"

    @pytest.mark.asyncio
    async def test_plain_text_latin1_fallback(self) -> None:
        extracted = await _chain().extract("Crème brûlée".encode("latin-1"), "text/plain")
        assert extracted.text == "Crème brûlée"

    @pytest.mark.asyncio
    async def test_empty_text_file_is_accepted_as_empty(self) -> None:
        extracted = await _chain().extract(b"", "text/plain", "empty.txt")
        assert extracted.text == ""
        assert extracted.extraction_method == "plain_text"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("mime_type", "filename"),
        [
            ("application/octet-stream", "server.log"),
            ("application/octet-stream", "config.yaml"),
            ("application/javascript", "app.js"),
            ("application/ld+json", "graph.jsonld"),
        ],
    )
    async def test_textual_types_are_decoded_directly(self, mime_type: str, filename: str) -> None:
        extracted = await _chain().extract(b"level: info\nmessage: started", mime_type, filename)
        assert extracted.text == "level: info\nmessage: started"
        assert extracted.extraction_method == "plain_text"

    @pytest.mark.asyncio
    async def test_utf16_with_bom(self) -> None:
        extracted = await _chain().extract("Notes: déjà vu".encode("utf-16"), "text/plain", "notes.txt")
        assert extracted.text == "Notes: déjà vu"

    @pytest.mark.asyncio
    async def test_binary_bytes_behind_text_name_fail(self) -> None:
        with pytest.raises(ExtractionError) as exc_info:
            await _chain().extract(b"\x7fELF\x02\x01\x00\x00binary", "application/octet-stream", "run.log")
        assert "binary content" in str(exc_info.value.attempts)

    @pytest.mark.asyncio
    async def test_docx(self) -> None:
        import docx

        document = docx.Document()
        document.add_paragraph("Employee handbook")
        document.add_paragraph("Holiday requests need two weeks notice.")
        buffer = io.BytesIO()
        document.save(buffer)

        extracted = await _chain().extract(
            buffer.getvalue(),
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "handbook.docx",
        )
        assert extracted.extraction_method == "docx"
        assert "Holiday requests need two weeks notice." in extracted.text

    @pytest.mark.asyncio
    async def test_spreadsheet(self) -> None:
        import pandas as pd

        buffer = io.BytesIO()
        frame = pd.DataFrame({"sku": ["A-100", "B-200"], "price": ["9.99", "19.99"]})
        frame.to_excel(buffer, sheet_name="Prices", index=False)

        extracted = await _chain().extract(
            buffer.getvalue(),
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "prices.xlsx",
        )
        assert extracted.extraction_method == "spreadsheet"
        assert extracted.text.startswith("Sheet: Prices")
        assert "A-100\t9.99" in extracted.text


class TestUnsupported:
    @pytest.mark.asyncio
    async def test_unsupported_type_attempts_nothing(self, ocr_factory) -> None:
        ocr = ocr_factory()
        with pytest.raises(UnsupportedTypeError) as exc_info:
            await _chain(ocr).extract(b"PK\x03\x04", "application/zip", "archive.zip")

        assert exc_info.value.mime_type == "application/zip"
        assert exc_info.value.step == "extracting"
        assert ocr.calls == 0


class TestStructuredPdfStrategy:
    @pytest.mark.asyncio
    async def test_rebuilds_page_text_from_glyphs(self, pdf_builder) -> None:
        document = open_pdf(pdf_builder([_PAGE_ONE]))

        outcome = await pdf_structured_strategy().run(PdfPage(document=document, index=0))

        assert outcome.text is not None
        assert "Quarterly operations report." in outcome.text

    def test_spans_skip_image_blocks_and_join_chars(self) -> None:
        raw = {
            "blocks": [
                {"type": 1},
                {
                    "type": 0,
                    "lines": [
                        {"spans": [{"chars": [{"c": "H"}, {"c": "i"}]}]},
                        {"spans": [{"text": "second line"}]},
                    ],
                },
                {"type": 0, "lines": [{"spans": [{"text": "next block"}]}]},
            ]
        }

        assert _spans_from_rawdict(raw) == "Hi\nsecond line\n\nnext block"
