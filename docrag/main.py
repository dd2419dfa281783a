"""docrag FastAPI application entry point.

Wires providers, services, and routes together via dependency injection.
Loads configuration from ``.env``, ``config/config.yaml`` and environment
variables, and configures structured logging.

The ``build_*`` factories are shared with the CLI so both entry points
assemble the same embedding model and vector store.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from docrag import __version__
from docrag.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from docrag.api.routes import router as api_router
from docrag.config.loader import build_settings
from docrag.config.settings import Settings
from docrag.interfaces.embedding_provider import IEmbeddingProvider
from docrag.interfaces.ocr_provider import IOCRProvider
from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from docrag.services.context import IngestionContext
from docrag.services.extraction.chain import ExtractionChain
from docrag.services.ingestion.chunker import TextChunker
from docrag.utils.errors import ConfigurationError
from docrag.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = build_settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def build_embedding_provider(app_settings: Settings) -> IEmbeddingProvider:
    """Return the embedding provider named by ``EMBEDDING_PROVIDER``.

    Imports are deferred so the unused backend's SDK is never loaded.
    """
    name = app_settings.embedding_provider.lower()
    if name == "openai":
        if not app_settings.openai_api_key:
            raise ConfigurationError(
                "EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY",
                provider_name="openai",
            )
        from docrag.providers.embedding.openai_embedding_provider import (
            OpenAIEmbeddingProvider,
        )

        return OpenAIEmbeddingProvider(settings=app_settings)
    if name == "fastembed":
        from docrag.providers.embedding.fastembed_embedding_provider import (
            FastEmbedEmbeddingProvider,
        )

        return FastEmbedEmbeddingProvider(
            model_name=app_settings.fastembed_model,
            batch_size=app_settings.embed_batch_size,
        )
    raise ConfigurationError(f"Unknown embedding provider: {app_settings.embedding_provider}")


def build_vector_store(app_settings: Settings) -> IVectorStoreProvider:
    """Return the vector store named by ``VECTOR_STORE``."""
    name = app_settings.vector_store.lower()
    if name == "chromadb":
        from docrag.providers.vector_store.chromadb_provider import ChromaDBProvider

        return ChromaDBProvider(
            persist_directory=app_settings.chromadb_persist_dir,
            collection_prefix=app_settings.chromadb_collection_prefix,
        )
    if name == "memory":
        from docrag.providers.vector_store.memory_provider import InMemoryVectorStore

        return InMemoryVectorStore()
    raise ConfigurationError(f"Unknown vector store: {app_settings.vector_store}")


def build_ocr_provider(app_settings: Settings) -> IOCRProvider:
    from docrag.providers.ocr.tesseract_provider import TesseractOCRProvider

    return TesseractOCRProvider(
        language=app_settings.ocr_language,
        timeout_seconds=app_settings.ocr_timeout_seconds,
        tesseract_cmd=app_settings.tesseract_cmd or None,
    )


def build_context(
    app_settings: Settings,
    *,
    ocr_provider: IOCRProvider | None = None,
) -> IngestionContext:
    """Assemble every collaborator the services need from *app_settings*."""
    ocr = ocr_provider if ocr_provider is not None else build_ocr_provider(app_settings)
    return IngestionContext(
        settings=app_settings,
        embedding_provider=build_embedding_provider(app_settings),
        vector_store=build_vector_store(app_settings),
        extraction_chain=ExtractionChain(
            ocr,
            min_content_chars=app_settings.min_content_chars,
            ocr_dpi=app_settings.ocr_dpi,
            ocr_max_pages=app_settings.ocr_max_pages,
            ocr_timeout_seconds=app_settings.ocr_timeout_seconds,
        ),
        chunker=TextChunker(
            chunk_size=app_settings.chunk_size,
            overlap=app_settings.chunk_overlap,
        ),
        document_store=SQLiteDocumentStore(db_path=app_settings.document_db_path),
    )


# ---------------------------------------------------------------------------
# Full DI assembly for the FastAPI application
# ---------------------------------------------------------------------------


def _build_all(context: IngestionContext) -> dict[str, Any]:
    """Flatten a context into the named components stored on ``app.state``."""
    ocr_provider = context.extraction_chain.ocr_provider
    provider_registry: dict[str, Any] = {
        "embedding": context.embedding_provider.is_available(),
        "embedding_model": context.embedding_provider.get_model_version(),
        "ocr": ocr_provider.is_available() if ocr_provider is not None else False,
        "vector_store_name": context.vector_store.get_provider_name(),
    }
    return {
        "context": context,
        "settings": context.settings,
        "embedding_provider": context.embedding_provider,
        "vector_store": context.vector_store,
        "document_store": context.document_store,
        "ingestion_service": context.ingestion_service(),
        "retrieval_service": context.retrieval_service(),
        "provider_registry": provider_registry,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build (or adopt) the service context on startup."""
    context: IngestionContext | None = getattr(application.state, "preset_context", None)
    if context is None:
        context = build_context(application.state.settings)

    components = _build_all(context)
    for key, value in components.items():
        setattr(application.state, key, value)

    if context.document_store is not None:
        await context.document_store.initialize()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=context.settings.app_env,
        embedding=context.embedding_provider.get_provider_name(),
        vector_store=context.vector_store.get_provider_name(),
    )

    yield

    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    context: IngestionContext | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Passing *context* skips provider construction at startup; tests use
    this to run the API against in-memory stores.
    """
    application = FastAPI(
        title="docrag API",
        version=__version__,
        description=(
            "Upload a company's documents, extract their text, and search them "
            "semantically within that company's namespace."
        ),
        lifespan=_lifespan,
    )
    application.state.settings = (
        context.settings if context is not None else (app_settings or settings)
    )
    application.state.preset_context = context

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "docrag.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
