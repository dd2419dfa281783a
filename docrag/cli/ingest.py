"""Standalone CLI for managing a company's document index.

Usage::

    python -m docrag.cli.ingest ingest --company acme --file ./handbook.pdf

    python -m docrag.cli.ingest reprocess --company acme

    python -m docrag.cli.ingest search --company acme --query "refund policy" --top-k 5

    python -m docrag.cli.ingest delete --company acme --document-id 3f2a...

    python -m docrag.cli.ingest stats --company acme
"""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
import uuid
from pathlib import Path

from docrag.config.loader import build_settings
from docrag.models.document import Document
from docrag.services.context import IngestionContext
from docrag.utils.errors import DocRagError


def _build_context() -> IngestionContext:
    """Assemble providers exactly as the API does."""
    from docrag.main import build_context

    return build_context(build_settings())


async def _initialize(context: IngestionContext) -> None:
    if context.document_store is not None:
        await context.document_store.initialize()


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_ingest(args: argparse.Namespace, context: IngestionContext) -> int:
    """Store a local file for the company and run it through the pipeline."""
    path = Path(args.file)
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return 1

    data = path.read_bytes()
    mime_type = args.mime_type or mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    document_id = args.document_id or uuid.uuid4().hex
    print(f"Ingesting {path.name} ({mime_type}, {len(data)} bytes) for company {args.company}")

    await _initialize(context)
    if context.document_store is not None:
        await context.document_store.save_document(
            Document(
                document_id=document_id,
                company_id=args.company,
                filename=path.name,
                mime_type=mime_type,
                size_bytes=len(data),
                source_location=str(path.resolve()),
            ),
            data,
        )

    result = await context.ingestion_service().process(
        args.company, document_id, data, path.name, mime_type
    )

    print(f"  Document ID:   {document_id}")
    if not result.succeeded:
        step = result.failed_step.value if result.failed_step else "unknown"
        print(f"  Failed during: {step}")
        print(f"  Error:         {result.error}")
        return 1
    print(f"  Method:        {result.extraction_method}")
    print(f"  Characters:    {result.content_length}")
    print(f"  Chunks stored: {result.chunks_stored}")
    return 0


async def _handle_reprocess(args: argparse.Namespace, context: IngestionContext) -> int:
    """Re-ingest every stored document of the company."""
    await _initialize(context)
    report = await context.ingestion_service().process_all(args.company)

    print(f"Reprocessed {report.total} documents for company {args.company}")
    for document_id, result in sorted(report.results.items()):
        if result.succeeded:
            print(f"  [ok]     {document_id}  {result.extraction_method}  {result.chunks_stored} chunks")
        else:
            print(f"  [failed] {document_id}  {result.error}")
    print(f"\n  Completed: {report.completed}")
    print(f"  Failed:    {report.failed}")
    print(f"  Time:      {report.elapsed_seconds:.2f}s")
    return 0 if report.failed == 0 else 2


async def _handle_search(args: argparse.Namespace, context: IngestionContext) -> int:
    """Run a similarity query and print the ranked hits (or a context block)."""
    retrieval = context.retrieval_service()
    top_k = args.top_k or context.settings.search_default_top_k

    if args.context:
        print(await retrieval.build_context(args.company, args.query, top_k))
        return 0

    hits = await retrieval.search_hits(args.company, args.query, top_k)
    if not hits:
        print("No results.")
        return 0
    for rank, hit in enumerate(hits, start=1):
        print(
            f"{rank:>3}. [{hit.score:.4f}] {hit.document_name} "
            f"(section {hit.chunk_index + 1}/{hit.total_chunks})"
        )
        print(f"     {hit.content_preview}")
    return 0


async def _handle_delete(args: argparse.Namespace, context: IngestionContext) -> int:
    """Remove a document's chunks and its stored record."""
    await _initialize(context)
    removed = await context.ingestion_service().delete_document(args.company, args.document_id)
    record_removed = False
    if context.document_store is not None:
        record_removed = await context.document_store.delete_document(args.company, args.document_id)
    print(f"Deleted {removed} chunks for document {args.document_id}")
    if record_removed:
        print("  Stored record removed.")
    return 0


async def _handle_stats(args: argparse.Namespace, context: IngestionContext) -> int:
    """Display index statistics for the company."""
    if not context.vector_store.is_available():
        print("Vector store not available.")
        return 1

    stats = await context.vector_store.get_stats(args.company)
    print(f"Index statistics for company {args.company}")
    print(f"  Documents: {stats.total_documents}")
    print(f"  Chunks:    {stats.total_chunks}")
    for document_id, count in sorted(stats.chunks_by_document.items()):
        print(f"    {document_id}: {count}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m docrag.cli.ingest",
        description="Manage a company's document index.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Index commands")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Store and ingest a local file")
    ingest_parser.add_argument("--company", required=True, help="Company (tenant) id")
    ingest_parser.add_argument("--file", required=True, help="Path to the document")
    ingest_parser.add_argument("--document-id", dest="document_id", help="Reuse an existing document id")
    ingest_parser.add_argument("--mime-type", dest="mime_type", help="Override the guessed MIME type")

    # -- reprocess --
    reprocess_parser = subparsers.add_parser("reprocess", help="Re-ingest all stored documents")
    reprocess_parser.add_argument("--company", required=True, help="Company (tenant) id")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Similarity search within a company")
    search_parser.add_argument("--company", required=True, help="Company (tenant) id")
    search_parser.add_argument("--query", required=True, help="Query text")
    search_parser.add_argument("--top-k", dest="top_k", type=int, default=None, help="Result limit")
    search_parser.add_argument(
        "--context",
        action="store_true",
        help="Print results grouped by document instead of a ranked list",
    )

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document and its chunks")
    delete_parser.add_argument("--company", required=True, help="Company (tenant) id")
    delete_parser.add_argument("--document-id", dest="document_id", required=True, help="Document id")

    # -- stats --
    stats_parser = subparsers.add_parser("stats", help="Show index statistics")
    stats_parser.add_argument("--company", required=True, help="Company (tenant) id")

    return parser


_HANDLERS = {
    "ingest": _handle_ingest,
    "reprocess": _handle_reprocess,
    "search": _handle_search,
    "delete": _handle_delete,
    "stats": _handle_stats,
}


def main(argv: list[str] | None = None, context: IngestionContext | None = None) -> None:
    """CLI entry point: parse the subcommand, build providers, dispatch."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    try:
        context = context or _build_context()
        exit_code = asyncio.run(_HANDLERS[args.command](args, context))
    except DocRagError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
