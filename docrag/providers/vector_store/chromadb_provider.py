"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`
with cosine distance.  Fully local, no external service required.

Layout
------
* One collection per tenant, named ``<prefix>_<slug>_<hash>`` so that no
  query can ever touch another tenant's vectors.
* One shared ``<prefix>_manifest`` collection holding, for every
  ``(company_id, document_id)``, the **live generation** of its chunk set.

Atomic replace
--------------
ChromaDB has no multi-record transactions, so a document's chunk set is
replaced in three steps:

    1. write the new chunks under a fresh generation id
       (chunk ids ``<chunk_id>@<generation>``; the old set is untouched)
    2. flip the manifest entry to the new generation (single-record upsert)
    3. delete chunks of the document whose generation is not live

Queries filter on the live generations, so a reader sees the old set until
step 2 and the new set afterwards.  A failure in step 1 leaves the manifest
pointing at the old generation.
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import re
import uuid
from datetime import datetime
from typing import Any

# ChromaDB ships a PostHog telemetry client; disable it before import.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from docrag.interfaces.vector_store_provider import IVectorStoreProvider
from docrag.models.rag import Chunk, CorpusStats, SimilarityResult, clamp_score, rank_key
from docrag.providers.vector_store.validation import (
    validate_chunk_set,
    validate_ids,
    validate_top_k,
)
from docrag.utils.errors import DocRagError, StoreUnavailableError

logger = structlog.get_logger(logger_name=__name__)

_UPSERT_BATCH_SIZE = 500
# Extra candidates fetched past top_k so ties at the cut-off can be
# broken deterministically after re-ranking.
_TIE_BREAK_OVERFETCH = 10
_MANIFEST_VECTOR = [1.0]
_MAX_COLLECTION_NAME = 63
_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]+")


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    docrag always passes pre-computed embeddings, so ChromaDB's built-in
    embedding is never invoked.  Without this, ChromaDB downloads its
    default ONNX model on collection creation.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "docrag uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


def _digest(*parts: str) -> str:
    # Length-prefix each part so ("ab", "c") and ("a", "bc") differ.
    joined = "".join(f"{len(p)}:{p}" for p in parts)
    return hashlib.sha1(joined.encode("utf-8")).hexdigest()  # noqa: S324 - naming only


class ChromaDBProvider(IVectorStoreProvider):
    """Vector store provider backed by ChromaDB with local persistence."""

    def __init__(
        self,
        persist_directory: str = "./data/chromadb",
        collection_prefix: str = "docrag",
        client: Any | None = None,
    ) -> None:
        self._persist_directory = persist_directory
        self._prefix = _INVALID_NAME_CHARS.sub("_", collection_prefix).strip("_-")[:20] or "docrag"
        self._client = client or chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        self._manifest = self._open_collection(f"{self._prefix}_manifest")
        self._collections: dict[str, Any] = {}
        self._document_locks: dict[tuple[str, str], asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Collection handling
    # ------------------------------------------------------------------

    def _open_collection(self, name: str) -> Any:
        # Collections created by an older ChromaDB with the default embedding
        # function reject a different one; reopen without it in that case.
        try:
            return self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            return self._client.get_or_create_collection(
                name=name,
                metadata={"hnsw:space": "cosine"},
            )

    def collection_name(self, company_id: str) -> str:
        """Return the tenant's collection name (valid ChromaDB identifier)."""
        suffix = _digest(company_id)[:12]
        # Older ChromaDB releases cap names at 63 characters.
        room = max(0, _MAX_COLLECTION_NAME - len(self._prefix) - len(suffix) - 2)
        slug = _INVALID_NAME_CHARS.sub("_", company_id).strip("_-")[:room].strip("_-")
        if not slug:
            return f"{self._prefix}_{suffix}"
        return f"{self._prefix}_{slug}_{suffix}"

    def _tenant(self, company_id: str) -> Any:
        collection = self._collections.get(company_id)
        if collection is None:
            collection = self._open_collection(self.collection_name(company_id))
            self._collections[company_id] = collection
        return collection

    def _lock_for(self, company_id: str, document_id: str) -> asyncio.Lock:
        key = (company_id, document_id)
        lock = self._document_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._document_locks[key] = lock
        return lock

    @staticmethod
    def _manifest_id(company_id: str, document_id: str) -> str:
        return _digest(company_id, document_id)

    def _live_generations(self, company_id: str) -> dict[str, tuple[str, int]]:
        """Map document_id -> (generation, chunk_count) for the tenant."""
        page = self._manifest.get(where={"company_id": company_id}, include=["metadatas"])
        live: dict[str, tuple[str, int]] = {}
        for meta in page.get("metadatas") or []:
            live[str(meta["document_id"])] = (str(meta["generation"]), int(meta["chunk_count"]))
        return live

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def upsert_chunks(
        self,
        company_id: str,
        document_id: str,
        chunks: list[Chunk],
    ) -> int:
        validate_chunk_set(company_id, document_id, chunks)
        if not chunks:
            await self.delete_document(company_id, document_id)
            return 0

        generation = uuid.uuid4().hex[:16]
        async with self._lock_for(company_id, document_id):
            try:
                collection = self._tenant(company_id)
            except Exception as exc:
                raise StoreUnavailableError(
                    message=f"ChromaDB collection unavailable for {company_id}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
            try:
                self._write_generation(collection, chunks, generation)
            except Exception as exc:
                self._discard_generation(collection, document_id, generation)
                raise StoreUnavailableError(
                    message=f"ChromaDB write failed for {document_id}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

            try:
                self._manifest.upsert(
                    ids=[self._manifest_id(company_id, document_id)],
                    embeddings=[_MANIFEST_VECTOR],
                    metadatas=[
                        {
                            "company_id": company_id,
                            "document_id": document_id,
                            "generation": generation,
                            "chunk_count": len(chunks),
                        }
                    ],
                )
            except Exception as exc:
                self._discard_generation(collection, document_id, generation)
                raise StoreUnavailableError(
                    message=f"ChromaDB manifest update failed for {document_id}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

            self._collect_stale(collection, document_id, generation)

        logger.info(
            "chromadb_upsert_chunks",
            company_id=company_id,
            document_id=document_id,
            count=len(chunks),
            generation=generation,
        )
        return len(chunks)

    async def delete_document(self, company_id: str, document_id: str) -> int:
        validate_ids(company_id, document_id)
        async with self._lock_for(company_id, document_id):
            try:
                live = self._live_generations(company_id).get(document_id)
                self._manifest.delete(ids=[self._manifest_id(company_id, document_id)])
                collection = self._tenant(company_id)
                collection.delete(where={"document_id": document_id})
            except Exception as exc:
                raise StoreUnavailableError(
                    message=f"ChromaDB delete failed for {document_id}: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc

        deleted = live[1] if live else 0
        logger.info(
            "chromadb_delete_document",
            company_id=company_id,
            document_id=document_id,
            deleted_count=deleted,
        )
        return deleted

    async def query_similar(
        self,
        company_id: str,
        query_vector: list[float],
        top_k: int,
    ) -> list[SimilarityResult]:
        validate_top_k(top_k)
        validate_ids(company_id)
        try:
            live = self._live_generations(company_id)
            if not live:
                return []
            available = sum(count for _, count in live.values())
            generations = [generation for generation, _ in live.values()]

            results = self._tenant(company_id).query(
                query_embeddings=[list(query_vector)],
                n_results=min(available, top_k + _TIE_BREAK_OVERFETCH),
                where={"generation": {"$in": generations}},
                include=["documents", "metadatas", "distances", "embeddings"],
            )
        except DocRagError:
            raise
        except Exception as exc:
            raise StoreUnavailableError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
                step="query",
            ) from exc

        documents = (results.get("documents") or [[]])[0]
        if not documents:
            return []
        metadatas = results["metadatas"][0]
        distances = results["distances"][0]
        embeddings = self._first_row(results.get("embeddings"), len(documents))

        ranked = [
            SimilarityResult(
                chunk=self._metadata_to_chunk(company_id, meta, text, vector),
                score=clamp_score(1.0 - float(distance)),
            )
            for text, meta, distance, vector in zip(
                documents, metadatas, distances, embeddings, strict=True
            )
        ]
        ranked.sort(key=rank_key)
        retrieved = ranked[:top_k]

        logger.info(
            "chromadb_query",
            company_id=company_id,
            raw_results=len(documents),
            results_count=len(retrieved),
            top_score=retrieved[0].score if retrieved else 0.0,
        )
        return retrieved

    async def get_document_chunks(self, company_id: str, document_id: str) -> list[Chunk]:
        validate_ids(company_id, document_id)
        try:
            live = self._live_generations(company_id).get(document_id)
            if live is None:
                return []
            page = self._tenant(company_id).get(
                where={"generation": live[0]},
                include=["documents", "metadatas", "embeddings"],
            )
        except Exception as exc:
            raise StoreUnavailableError(
                message=f"ChromaDB get failed for {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        documents = page.get("documents") or []
        embeddings = self._as_rows(page.get("embeddings"), len(documents))
        chunks = [
            self._metadata_to_chunk(company_id, meta, text, vector)
            for text, meta, vector in zip(documents, page["metadatas"], embeddings, strict=True)
        ]
        return sorted(chunks, key=lambda c: c.chunk_index)

    async def list_document_ids(self, company_id: str) -> set[str]:
        try:
            return set(self._live_generations(company_id))
        except Exception as exc:
            raise StoreUnavailableError(
                message=f"ChromaDB manifest read failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def get_stats(self, company_id: str) -> CorpusStats:
        try:
            live = self._live_generations(company_id)
        except Exception as exc:
            raise StoreUnavailableError(
                message=f"ChromaDB get_stats failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        by_document = {doc_id: count for doc_id, (_, count) in live.items()}
        return CorpusStats(
            company_id=company_id,
            total_chunks=sum(by_document.values()),
            total_documents=len(by_document),
            chunks_by_document=by_document,
        )

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the manifest collection is accessible."""
        try:
            self._manifest.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _write_generation(self, collection: Any, chunks: list[Chunk], generation: str) -> None:
        for start in range(0, len(chunks), _UPSERT_BATCH_SIZE):
            batch = chunks[start : start + _UPSERT_BATCH_SIZE]
            collection.upsert(
                ids=[f"{c.chunk_id}@{generation}" for c in batch],
                embeddings=[list(c.vector) for c in batch],
                documents=[c.content for c in batch],
                metadatas=[self._chunk_to_metadata(c, generation) for c in batch],
            )

    def _discard_generation(self, collection: Any, document_id: str, generation: str) -> None:
        try:
            collection.delete(
                where={"$and": [{"document_id": document_id}, {"generation": generation}]}
            )
        except Exception as exc:
            # Unreferenced generations are invisible to queries and get
            # collected on the document's next successful write.
            logger.warning(
                "chromadb_discard_generation_failed",
                document_id=document_id,
                generation=generation,
                error=str(exc),
            )

    def _collect_stale(self, collection: Any, document_id: str, live_generation: str) -> None:
        try:
            collection.delete(
                where={
                    "$and": [
                        {"document_id": document_id},
                        {"generation": {"$ne": live_generation}},
                    ]
                }
            )
        except Exception as exc:
            logger.warning(
                "chromadb_stale_generation_cleanup_failed",
                document_id=document_id,
                error=str(exc),
            )

    @staticmethod
    def _as_rows(embeddings: Any, expected: int) -> list[list[float]]:
        # Newer ChromaDB returns numpy arrays; avoid truthiness checks on them.
        if embeddings is None:
            return [[] for _ in range(expected)]
        return [[float(x) for x in row] for row in embeddings]

    @classmethod
    def _first_row(cls, embeddings: Any, expected: int) -> list[list[float]]:
        if embeddings is None or len(embeddings) == 0:
            return [[] for _ in range(expected)]
        return cls._as_rows(embeddings[0], expected)

    @staticmethod
    def _chunk_to_metadata(chunk: Chunk, generation: str) -> dict[str, str | int | float | bool]:
        """ChromaDB metadata values must be str, int, float or bool."""
        return {
            "chunk_id": chunk.chunk_id,
            "company_id": chunk.company_id,
            "document_id": chunk.document_id,
            "document_name": chunk.document_name,
            "chunk_index": chunk.chunk_index,
            "total_chunks": chunk.total_chunks,
            "mime_type": chunk.mime_type,
            "embedding_model": chunk.embedding_model,
            "created_at": chunk.created_at.isoformat(),
            "generation": generation,
        }

    @staticmethod
    def _metadata_to_chunk(
        company_id: str,
        meta: dict[str, Any],
        text: str,
        vector: list[float],
    ) -> Chunk:
        created_raw = meta.get("created_at")
        extra: dict[str, Any] = {}
        if created_raw:
            extra["created_at"] = datetime.fromisoformat(str(created_raw))
        return Chunk(
            chunk_id=str(meta.get("chunk_id", "")),
            company_id=str(meta.get("company_id", company_id)),
            document_id=str(meta["document_id"]),
            document_name=str(meta.get("document_name", "")),
            chunk_index=int(meta["chunk_index"]),
            total_chunks=int(meta["total_chunks"]),
            content=text or "",
            mime_type=str(meta.get("mime_type", "")),
            vector=vector,
            embedding_model=str(meta.get("embedding_model", "")),
            **extra,
        )
