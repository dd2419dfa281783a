"""Integration tests for FastAPI API endpoints using TestClient."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from docrag.main import create_app
from docrag.services.context import IngestionContext

pytestmark = pytest.mark.integration


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client(context: IngestionContext) -> TestClient:
    return TestClient(create_app(context=context))


def _upload(client: TestClient, company_id: str, filename: str, data: bytes, content_type: str):  # noqa: ANN202
    return client.post(
        f"/api/v1/companies/{company_id}/documents",
        files={"file": (filename, data, content_type)},
    )


@pytest.fixture
def client(context: IngestionContext) -> Iterator[TestClient]:
    with _client(context) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Upload and processing
# ---------------------------------------------------------------------------


class TestUpload:
    def test_upload_text_document(self, client: TestClient, sample_text: str) -> None:
        response = _upload(client, "acme", "policy.txt", sample_text.encode(), "text/plain")

        assert response.status_code == 200
        body = response.json()
        assert body["processing_status"] == "completed"
        assert body["extraction_method"] == "plain_text"
        assert body["content_length"] == len(sample_text)
        assert body["chunks_stored"] > 0
        assert body["processed_at"] is not None
        assert body["processing_error"] is None

        record = client.get(f"/api/v1/companies/acme/documents/{body['document_id']}")
        assert record.status_code == 200
        assert record.json()["document"]["processing_status"] == "completed"

    def test_upload_empty_document_fails_cleanly(self, client: TestClient) -> None:
        response = _upload(client, "acme", "empty.txt", b"", "text/plain")

        assert response.status_code == 200
        body = response.json()
        assert body["processing_status"] == "failed"
        assert body["processing_error"] == "empty content"
        assert body["failed_step"] == "chunking"

    def test_octet_stream_upload_uses_extension(self, client: TestClient, sample_text: str) -> None:
        response = _upload(client, "acme", "notes.txt", sample_text.encode(), "application/octet-stream")
        assert response.json()["processing_status"] == "completed"

    def test_unsupported_type_is_415(self, client: TestClient, document_store) -> None:
        response = _upload(client, "acme", "archive.zip", b"PK\x03\x04", "application/zip")

        assert response.status_code == 415
        assert response.json()["error"] == "UnsupportedTypeError"
        assert document_store.documents == {}

    def test_legacy_word_document_is_415(self, client: TestClient, document_store) -> None:
        response = _upload(client, "acme", "legacy.doc", b"\xd0\xcf\x11\xe0", "application/msword")

        assert response.status_code == 415
        assert document_store.documents == {}

    def test_log_file_sent_as_octet_stream_is_ingested(self, client: TestClient, sample_text: str) -> None:
        response = _upload(client, "acme", "server.log", sample_text.encode(), "application/octet-stream")

        assert response.status_code == 200
        assert response.json()["extraction_method"] == "plain_text"

    def test_oversized_upload_is_413(self, context_factory, test_settings, document_store) -> None:
        settings = test_settings.model_copy(update={"max_upload_bytes": 10})
        context = context_factory(settings=settings, document_store=document_store)

        with _client(context) as client:
            response = _upload(client, "acme", "big.txt", b"x" * 100, "text/plain")

        assert response.status_code == 413
        assert document_store.documents == {}

    def test_reprocess_single_document(self, client: TestClient, sample_text: str) -> None:
        uploaded = _upload(client, "acme", "policy.txt", sample_text.encode(), "text/plain").json()

        response = client.post(f"/api/v1/companies/acme/documents/{uploaded['document_id']}/process")

        assert response.status_code == 200
        assert response.json()["chunks_stored"] == uploaded["chunks_stored"]

    def test_unknown_document_is_404(self, client: TestClient) -> None:
        assert client.get("/api/v1/companies/acme/documents/missing").status_code == 404
        assert client.post("/api/v1/companies/acme/documents/missing/process").status_code == 404

    def test_documents_are_tenant_scoped(self, client: TestClient, sample_text: str) -> None:
        uploaded = _upload(client, "acme", "policy.txt", sample_text.encode(), "text/plain").json()
        assert client.get(f"/api/v1/companies/globex/documents/{uploaded['document_id']}").status_code == 404


# ---------------------------------------------------------------------------
# Search, stats, reprocess, delete
# ---------------------------------------------------------------------------


class TestSearch:
    def test_search_returns_ranked_hits(self, client: TestClient, sample_text: str) -> None:
        _upload(client, "acme", "policy.txt", sample_text.encode(), "text/plain")

        response = client.post(
            "/api/v1/companies/acme/search", json={"query": "refund policy", "top_k": 3}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["query"] == "refund policy"
        assert body["total_results"] == len(body["results"]) == 3
        scores = [hit["score"] for hit in body["results"]]
        assert scores == sorted(scores, reverse=True)
        assert {hit["document_name"] for hit in body["results"]} == {"policy.txt"}

    def test_search_other_tenant_is_empty(self, client: TestClient, sample_text: str) -> None:
        _upload(client, "acme", "policy.txt", sample_text.encode(), "text/plain")

        response = client.post("/api/v1/companies/globex/search", json={"query": "refund policy"})

        assert response.json()["results"] == []

    def test_non_positive_top_k_is_422(self, client: TestClient) -> None:
        response = client.post("/api/v1/companies/acme/search", json={"query": "refunds", "top_k": 0})

        assert response.status_code == 422
        assert response.json()["error"] == "ValidationError"

    def test_empty_query_is_422(self, client: TestClient) -> None:
        response = client.post("/api/v1/companies/acme/search", json={"query": ""})
        assert response.status_code == 422

    def test_embedding_timeout_is_503(self, context_factory, slow_embedding_factory, test_settings) -> None:
        settings = test_settings.model_copy(update={"embedding_timeout_seconds": 0.05})
        context = context_factory(settings=settings, embedding_provider=slow_embedding_factory(delay=2.0))

        with _client(context) as client:
            response = client.post("/api/v1/companies/acme/search", json={"query": "refunds"})

        assert response.status_code == 503
        assert response.json()["error"] == "EmbeddingUnavailableError"


class TestManagement:
    def test_stats(self, client: TestClient, sample_text: str) -> None:
        uploaded = _upload(client, "acme", "policy.txt", sample_text.encode(), "text/plain").json()

        stats = client.get("/api/v1/companies/acme/stats").json()["stats"]

        assert stats["company_id"] == "acme"
        assert stats["total_documents"] == 1
        assert stats["chunks_by_document"] == {uploaded["document_id"]: uploaded["chunks_stored"]}

    def test_reprocess_company(self, client: TestClient, sample_text: str) -> None:
        _upload(client, "acme", "good.txt", sample_text.encode(), "text/plain")
        _upload(client, "acme", "empty.txt", b"", "text/plain")

        body = client.post("/api/v1/companies/acme/reprocess").json()

        assert (body["total"], body["completed"], body["failed"]) == (2, 1, 1)
        assert {doc["processing_status"] for doc in body["documents"]} == {"completed", "failed"}

    def test_delete_document(self, client: TestClient, sample_text: str) -> None:
        uploaded = _upload(client, "acme", "policy.txt", sample_text.encode(), "text/plain").json()
        url = f"/api/v1/companies/acme/documents/{uploaded['document_id']}"

        first = client.delete(url)
        second = client.delete(url)

        assert first.status_code == 200
        assert first.json()["chunks_removed"] == uploaded["chunks_stored"]
        assert first.json()["document_removed"] is True
        assert second.status_code == 404
        assert client.get("/api/v1/companies/acme/stats").json()["stats"]["total_chunks"] == 0


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_healthy(self, client: TestClient) -> None:
        body = client.get("/api/v1/health").json()

        assert body["status"] == "healthy"
        assert body["providers"]["embedding"] is True
        assert body["providers"]["vector_store"] is True
        assert body["providers"]["embedding_model"] == "mock:bow-64"
        assert body["version"]

    def test_degraded_without_ocr(self, context_factory) -> None:
        with _client(context_factory(ocr_provider=None)) as client:
            body = client.get("/api/v1/health").json()

        assert body["status"] == "degraded"
        assert body["providers"]["ocr"] is False
