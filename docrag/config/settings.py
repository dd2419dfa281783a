"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# Values are read from TWO sources (in priority order):
#
#   1. **Environment variables** - e.g. CHUNK_SIZE=800
#   2. **.env file** - key=value lines in the project root .env file
#
# Field name `chunk_size` maps to env var `CHUNK_SIZE`.  Defaults apply
# when neither source sets a value.  `config/config.yaml` is layered on
# top by docrag.config.loader for non-secret defaults.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docrag application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # === Chunking ===
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # === Extraction ===
    # Fewer non-whitespace characters than this means "no usable text" and
    # the extraction chain advances to the next strategy.
    min_content_chars: int = 20
    ocr_dpi: int = 200
    # 0 = OCR every page that needs it.
    ocr_max_pages: int = 0
    ocr_timeout_seconds: float = 60.0
    ocr_language: str = "eng"
    tesseract_cmd: str = ""

    # === Embedding ===
    embedding_provider: str = "fastembed"  # "fastembed" | "openai"
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = "text-embedding-3-small"
    fastembed_model: str = "BAAI/bge-small-en-v1.5"
    embedding_timeout_seconds: float = 30.0
    embedding_max_attempts: int = 3
    embed_batch_size: int = 64

    # === Vector store ===
    vector_store: str = "chromadb"  # "chromadb" | "memory"
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection_prefix: str = "docrag"
    store_max_attempts: int = 3
    store_timeout_seconds: float = 30.0
    retry_base_delay: float = 0.5

    # === Ingestion / retrieval ===
    ingest_concurrency: int = 2
    document_db_path: str = "data/documents.db"
    max_upload_bytes: int = 25 * 1024 * 1024
    search_default_top_k: int = 10
    search_preview_chars: int = 200

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @model_validator(mode="after")
    def _check_chunking(self) -> Settings:
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError("chunk_overlap must be >= 0 and smaller than chunk_size")
        return self
