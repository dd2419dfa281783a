"""FastAPI REST routes for the docrag API.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern.  Every route is tenant-scoped
through the ``company_id`` path segment.

    Endpoint                                               Method
    /api/v1/companies/{cid}/documents                      POST    upload + ingest
    /api/v1/companies/{cid}/documents/{did}                GET     stored record
    /api/v1/companies/{cid}/documents/{did}                DELETE  remove record + chunks
    /api/v1/companies/{cid}/documents/{did}/process        POST    re-ingest one document
    /api/v1/companies/{cid}/reprocess                      POST    re-ingest every document
    /api/v1/companies/{cid}/search                         POST    similarity search
    /api/v1/companies/{cid}/stats                          GET     index statistics
    /api/v1/health                                         GET     health + provider status
"""

from __future__ import annotations

import mimetypes
import uuid
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, UploadFile

from docrag import __version__
from docrag.api.schemas import (
    DeleteResponse,
    DocumentResponse,
    ErrorResponse,
    HealthResponse,
    ProcessResponse,
    ReprocessResponse,
    SearchRequest,
    SearchResponse,
    StatsResponse,
)
from docrag.config.settings import Settings
from docrag.interfaces.document_store import IDocumentStore
from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.document import Document
from docrag.services.ingestion.ingestion_service import IngestionService
from docrag.services.retrieval_service import RetrievalService

logger = structlog.get_logger(logger_name=__name__)

router = APIRouter(prefix="/api/v1")

# Read uploads in 64 KB pieces so oversized files are rejected early.
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency injection helpers - resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


def _get_ingestion_service(request: Request) -> IngestionService:
    return request.app.state.ingestion_service


def _get_retrieval_service(request: Request) -> RetrievalService:
    return request.app.state.retrieval_service


def _get_document_store(request: Request) -> IDocumentStore:
    return request.app.state.document_store


def _get_vector_store(request: Request) -> IVectorStoreProvider:
    return request.app.state.vector_store


SettingsDep = Annotated[Settings, Depends(_get_settings)]
IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
RetrievalDep = Annotated[RetrievalService, Depends(_get_retrieval_service)]
DocumentStoreDep = Annotated[IDocumentStore, Depends(_get_document_store)]
VectorStoreDep = Annotated[IVectorStoreProvider, Depends(_get_vector_store)]


async def _read_upload(file: UploadFile, max_bytes: int) -> bytes:
    parts: list[bytes] = []
    total = 0
    while True:
        piece = await file.read(_UPLOAD_CHUNK_SIZE)
        if not piece:
            break
        total += len(piece)
        if total > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"File too large: maximum is {max_bytes} bytes.",
            )
        parts.append(piece)
    return b"".join(parts)


def _resolve_mime_type(file: UploadFile) -> str:
    content_type = (file.content_type or "").split(";")[0].strip()
    if content_type and content_type != "application/octet-stream":
        return content_type
    guessed, _ = mimetypes.guess_type(file.filename or "")
    return guessed or content_type or "application/octet-stream"


async def _require_document(store: IDocumentStore, company_id: str, document_id: str) -> Document:
    document = await store.get_document(company_id, document_id)
    if document is None:
        raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
    return document


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/companies/{company_id}/documents",
    response_model=ProcessResponse,
    responses={413: {"model": ErrorResponse}, 415: {"model": ErrorResponse}},
    summary="Upload a document and ingest it",
)
async def upload_document(
    company_id: str,
    file: UploadFile,
    settings: SettingsDep,
    ingestion: IngestionDep,
    store: DocumentStoreDep,
) -> ProcessResponse:
    """Store the uploaded file for the tenant, then extract, chunk, embed and index it."""
    filename = file.filename or "upload"
    mime_type = _resolve_mime_type(file)
    ingestion.ensure_supported(mime_type, filename)

    data = await _read_upload(file, settings.max_upload_bytes)
    document = Document(
        document_id=uuid.uuid4().hex,
        company_id=company_id,
        filename=filename,
        mime_type=mime_type,
        size_bytes=len(data),
    )
    await store.save_document(document, data)
    logger.info(
        "document_uploaded",
        company_id=company_id,
        document_id=document.document_id,
        filename=document.filename,
        mime_type=document.mime_type,
        size=len(data),
    )

    result = await ingestion.process(
        company_id, document.document_id, data, document.filename, document.mime_type
    )
    return ProcessResponse.from_result(document.document_id, result)


@router.get(
    "/companies/{company_id}/documents/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get a stored document record",
)
async def get_document(company_id: str, document_id: str, store: DocumentStoreDep) -> DocumentResponse:
    document = await _require_document(store, company_id, document_id)
    return DocumentResponse(document=document)


@router.post(
    "/companies/{company_id}/documents/{document_id}/process",
    response_model=ProcessResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Re-ingest one stored document",
)
async def process_document(
    company_id: str,
    document_id: str,
    ingestion: IngestionDep,
    store: DocumentStoreDep,
) -> ProcessResponse:
    document = await _require_document(store, company_id, document_id)
    data = await store.load_bytes(company_id, document_id)
    if data is None:
        raise HTTPException(status_code=404, detail=f"No stored content for document: {document_id}")
    result = await ingestion.process(
        company_id, document_id, data, document.filename, document.mime_type
    )
    return ProcessResponse.from_result(document_id, result)


@router.post(
    "/companies/{company_id}/reprocess",
    response_model=ReprocessResponse,
    summary="Re-ingest every stored document of a company",
)
async def reprocess_company(company_id: str, ingestion: IngestionDep) -> ReprocessResponse:
    report = await ingestion.process_all(company_id)
    return ReprocessResponse.from_report(report)


@router.delete(
    "/companies/{company_id}/documents/{document_id}",
    response_model=DeleteResponse,
    summary="Delete a document and its chunks",
)
async def delete_document(
    company_id: str,
    document_id: str,
    ingestion: IngestionDep,
    store: DocumentStoreDep,
) -> DeleteResponse:
    removed = await ingestion.delete_document(company_id, document_id)
    document_removed = await store.delete_document(company_id, document_id)
    if not removed and not document_removed:
        raise HTTPException(status_code=404, detail=f"Document not found: {document_id}")
    return DeleteResponse(
        document_id=document_id,
        chunks_removed=removed,
        document_removed=document_removed,
    )


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


@router.post(
    "/companies/{company_id}/search",
    response_model=SearchResponse,
    responses={422: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    summary="Semantic search over a company's documents",
)
async def search_documents(
    company_id: str,
    body: SearchRequest,
    retrieval: RetrievalDep,
) -> SearchResponse:
    hits = await retrieval.search_hits(company_id, body.query, body.top_k)
    return SearchResponse(query=body.query, total_results=len(hits), results=hits)


@router.get(
    "/companies/{company_id}/stats",
    response_model=StatsResponse,
    summary="Index statistics for a company",
)
async def company_stats(company_id: str, vector_store: VectorStoreDep) -> StatsResponse:
    stats = await vector_store.get_stats(company_id)
    return StatsResponse(stats=stats)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and provider availability."""
    providers: dict[str, Any] = {}
    if hasattr(request.app.state, "provider_registry"):
        providers = dict(request.app.state.provider_registry)

    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        providers["vector_store"] = vector_store.is_available()

    critical = ("embedding", "vector_store")
    if all(providers.get(name, False) for name in critical):
        status = "healthy" if providers.get("ocr", False) else "degraded"
    else:
        status = "unhealthy"
    return HealthResponse(status=status, version=__version__, providers=providers)
