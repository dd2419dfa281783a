"""Shared pytest fixtures for the docrag test suite."""

from __future__ import annotations

import asyncio
import hashlib
import io
import re
import textwrap
from pathlib import Path

import fitz  # PyMuPDF
import pytest
from PIL import Image

from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.ocr_provider import IOCRProvider
from docrag.models.document import Document, ProcessingResult, ProcessingStatus
from docrag.models.extraction import OCRResult
from docrag.providers.vector_store.memory_provider import InMemoryVectorStore
from docrag.services.context import IngestionContext
from docrag.services.extraction.chain import ExtractionChain
from docrag.services.ingestion.chunker import TextChunker
from docrag.utils.errors import EmbeddingUnavailableError

# ---------------------------------------------------------------------------
# Deterministic embedding provider
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64
_WORD = re.compile(r"[a-z0-9]+")


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Bag-of-words vector: every lower-cased word adds 1.0 to a hashed bucket.

    Texts sharing words point in similar directions, identical texts score
    exactly 1.0, and text without words maps to the zero vector.
    """
    vector = [0.0] * dim
    for word in _WORD.findall(text.lower()):
        bucket = int.from_bytes(hashlib.sha256(word.encode("utf-8")).digest()[:4], "little") % dim
        vector[bucket] += 1.0
    magnitude = sum(v * v for v in vector) ** 0.5
    if magnitude == 0:
        return vector
    return [v / magnitude for v in vector]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    def __init__(self, model_version: str = "mock:bow-64") -> None:
        self._model_version = model_version
        self.batch_calls: list[int] = []

    async def embed(self, text: str) -> list[float]:
        return _hash_to_vector(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.batch_calls.append(len(texts))
        return [_hash_to_vector(t) for t in texts]

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def get_model_version(self) -> str:
        return self._model_version

    def is_available(self) -> bool:
        return True


class FlakyEmbeddingProvider(MockEmbeddingProvider):
    """Raises ``EmbeddingUnavailableError`` for the first *failures* batch calls."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self._remaining_failures = failures
        self.attempts = 0

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.attempts += 1
        if self._remaining_failures > 0:
            self._remaining_failures -= 1
            raise EmbeddingUnavailableError("backend returned 503", provider_name="mock-embedding")
        return await super().embed_batch(texts)


class SlowEmbeddingProvider(MockEmbeddingProvider):
    """Sleeps *delay* seconds before every call."""

    def __init__(self, delay: float) -> None:
        super().__init__()
        self._delay = delay
        self.attempts = 0

    async def embed(self, text: str) -> list[float]:
        await asyncio.sleep(self._delay)
        return await super().embed(text)

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        self.attempts += 1
        await asyncio.sleep(self._delay)
        return await super().embed_batch(texts)


# ---------------------------------------------------------------------------
# Fake OCR provider
# ---------------------------------------------------------------------------


class FakeOCRProvider(IOCRProvider):
    """Returns canned text for every image.

    ``texts`` are handed out in call order (the last one repeats);
    ``delays`` optionally make individual calls slow, in the same order.
    """

    def __init__(self, texts: list[str] | None = None, delays: list[float] | None = None) -> None:
        self._texts = texts or ["Scanned page recognised by the fake OCR engine."]
        self._delays = delays or []
        self.calls = 0

    async def extract_text(self, image_data: bytes) -> OCRResult:
        index = self.calls
        self.calls += 1
        if index < len(self._delays) and self._delays[index] > 0:
            await asyncio.sleep(self._delays[index])
        text = self._texts[min(index, len(self._texts) - 1)]
        return OCRResult(raw_text=text, confidence=0.9, provider_used="fake-ocr")

    def get_provider_name(self) -> str:
        return "fake-ocr"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# In-memory document store
# ---------------------------------------------------------------------------


class InMemoryDocumentStore(IDocumentStore):
    """Dict-backed document store that also records every status transition."""

    def __init__(self) -> None:
        self.documents: dict[tuple[str, str], Document] = {}
        self.contents: dict[tuple[str, str], bytes] = {}
        self.transitions: dict[tuple[str, str], list[ProcessingStatus]] = {}
        self.results: dict[tuple[str, str], ProcessingResult] = {}

    async def initialize(self) -> None:
        return None

    async def save_document(self, document: Document, data: bytes) -> Document:
        key = (document.company_id, document.document_id)
        self.documents[key] = document
        self.contents[key] = data
        return document

    async def get_document(self, company_id: str, document_id: str) -> Document | None:
        return self.documents.get((company_id, document_id))

    async def list_documents(self, company_id: str) -> list[Document]:
        return sorted(
            (d for (cid, _), d in self.documents.items() if cid == company_id),
            key=lambda d: d.created_at,
        )

    async def load_bytes(self, company_id: str, document_id: str) -> bytes | None:
        return self.contents.get((company_id, document_id))

    async def update_status(
        self,
        company_id: str,
        document_id: str,
        status: ProcessingStatus,
        error: str | None = None,
    ) -> None:
        key = (company_id, document_id)
        self.transitions.setdefault(key, []).append(status)
        if key in self.documents:
            self.documents[key] = self.documents[key].model_copy(
                update={"processing_status": status, "processing_error": error}
            )

    async def record_result(
        self,
        company_id: str,
        document_id: str,
        result: ProcessingResult,
    ) -> None:
        key = (company_id, document_id)
        self.results[key] = result
        final = ProcessingStatus.COMPLETED if result.succeeded else ProcessingStatus.FAILED
        self.transitions.setdefault(key, []).append(final)
        if key in self.documents:
            self.documents[key] = self.documents[key].model_copy(
                update={
                    "processing_status": final,
                    "processing_error": result.error,
                    "extraction_method": result.extraction_method,
                    "content_length": result.content_length,
                    "processed_at": result.processed_at,
                }
            )

    async def delete_document(self, company_id: str, document_id: str) -> bool:
        key = (company_id, document_id)
        self.contents.pop(key, None)
        return self.documents.pop(key, None) is not None


# ---------------------------------------------------------------------------
# File builders
# ---------------------------------------------------------------------------


def _insert_wrapped_text(page: fitz.Page, text: str) -> None:
    y = 72
    for paragraph in text.split("\n"):
        for line in textwrap.wrap(paragraph, width=80) or [""]:
            page.insert_text((72, y), line, fontsize=10)
            y += 14


def _blank_png(width: int = 400, height: int = 200) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


def build_pdf(pages: list[str | None]) -> bytes:
    """Build a PDF; a ``str`` becomes a text-layer page, ``None`` an image-only page."""
    document = fitz.open()
    image = _blank_png()
    for content in pages:
        page = document.new_page()
        if content is None:
            page.insert_image(fitz.Rect(72, 72, 472, 272), stream=image)
        else:
            _insert_wrapped_text(page, content)
    data = document.tobytes()
    document.close()
    return data


@pytest.fixture
def png_bytes() -> bytes:
    return _blank_png()


@pytest.fixture
def sample_text() -> str:
    """Multi-paragraph prose long enough to produce several chunks."""
    paragraphs = [
        "Our refund policy allows customers to return unused products within thirty days "
        "of purchase. Refunds are issued to the original payment method once the returned "
        "item has been inspected by the warehouse team.",
        "Shipping is free for orders above fifty dollars. Standard delivery takes three to "
        "five business days, while express delivery arrives within one business day for an "
        "additional fee.",
        "Support agents are available Monday to Friday between nine and five. Outside those "
        "hours customers may open a ticket through the help centre and expect a reply on the "
        "next business day.",
        "Warranty claims require the serial number printed on the underside of the device. "
        "Devices damaged by water or by unauthorised repairs are not covered by the warranty.",
    ]
    return "\n\n".join(paragraphs)


# ---------------------------------------------------------------------------
# Settings, stores and context
# ---------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    """Small chunks, fast retries, short timeouts."""
    return Settings(
        chunk_size=200,
        chunk_overlap=40,
        min_content_chars=20,
        ocr_timeout_seconds=0.5,
        embedding_timeout_seconds=0.5,
        embedding_max_attempts=3,
        store_max_attempts=3,
        store_timeout_seconds=0.5,
        retry_base_delay=0.0,
        embed_batch_size=4,
        ingest_concurrency=2,
        vector_store="memory",
        document_db_path=str(tmp_path / "documents.db"),
        chromadb_persist_dir=str(tmp_path / "chromadb"),
    )


@pytest.fixture
def embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def ocr_provider() -> FakeOCRProvider:
    return FakeOCRProvider()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def document_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


def make_context(
    settings: Settings,
    *,
    embedding_provider: IEmbeddingProvider | None = None,
    ocr_provider: IOCRProvider | None = None,
    vector_store: InMemoryVectorStore | None = None,
    document_store: IDocumentStore | None = None,
) -> IngestionContext:
    """Assemble an isolated context around in-memory collaborators."""
    return IngestionContext(
        settings=settings,
        embedding_provider=embedding_provider or MockEmbeddingProvider(),
        vector_store=vector_store or InMemoryVectorStore(),
        extraction_chain=ExtractionChain(
            ocr_provider,
            min_content_chars=settings.min_content_chars,
            ocr_dpi=72,
            ocr_max_pages=settings.ocr_max_pages,
            ocr_timeout_seconds=settings.ocr_timeout_seconds,
        ),
        chunker=TextChunker(chunk_size=settings.chunk_size, overlap=settings.chunk_overlap),
        document_store=document_store,
    )


@pytest.fixture
def context(
    test_settings: Settings,
    embedding_provider: MockEmbeddingProvider,
    ocr_provider: FakeOCRProvider,
    vector_store: InMemoryVectorStore,
    document_store: InMemoryDocumentStore,
) -> IngestionContext:
    return make_context(
        test_settings,
        embedding_provider=embedding_provider,
        ocr_provider=ocr_provider,
        vector_store=vector_store,
        document_store=document_store,
    )


@pytest.fixture
def pdf_builder():  # noqa: ANN201
    """Expose :func:`build_pdf` to tests."""
    return build_pdf


@pytest.fixture
def context_factory(test_settings: Settings):  # noqa: ANN201
    """Build extra isolated contexts: ``context_factory(ocr_provider=..., ...)``."""

    def _factory(settings: Settings | None = None, **kwargs) -> IngestionContext:  # noqa: ANN003
        return make_context(settings or test_settings, **kwargs)

    return _factory


@pytest.fixture
def ocr_factory() -> type[FakeOCRProvider]:
    """``ocr_factory(texts=[...], delays=[...])`` builds a scripted OCR provider."""
    return FakeOCRProvider


@pytest.fixture
def flaky_embedding_factory() -> type[FlakyEmbeddingProvider]:
    return FlakyEmbeddingProvider


@pytest.fixture
def slow_embedding_factory() -> type[SlowEmbeddingProvider]:
    return SlowEmbeddingProvider
