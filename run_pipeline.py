#!/usr/bin/env python3
"""CLI for the RAG context pipeline: ingest documents, retrieve context."""

import argparse
import logging
import sys

from core.config import settings
from core.errors import RagError


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    )


def _pipeline():
    from pipeline import Pipeline

    return Pipeline.from_settings(settings)


def cmd_ingest(args: argparse.Namespace) -> None:
    """Ingest a document into the vector store."""
    from ingestion.loader import load_document

    pipeline = _pipeline()
    try:
        print("Initializing vector index...")
        pipeline.initialize()

        print(f"Loading: {args.file}")
        tags = [t.strip() for t in args.tags.split(",") if t.strip()] if args.tags else None
        document = load_document(
            args.file,
            source=args.source,
            doc_id=args.id,
            title=args.title,
            category=args.category,
            tags=tags,
            url=args.url,
        )
        print(f"  Loaded {len(document.content)} characters")

        print(
            f"Chunking (max={settings.max_words_per_chunk}, "
            f"min={settings.min_words_per_chunk} words)..."
        )
        count = pipeline.index_document(document, by_sections=args.by_sections)
        print(f"  Stored {count} chunks")

        total = pipeline.vector_store.count()
        print(f"\nDone! Total chunks in store: {total}")
    finally:
        pipeline.close()


def cmd_ask(args: argparse.Namespace) -> None:
    """Retrieve context for a question."""
    pipeline = _pipeline()
    try:
        filters = {"source": args.source} if args.source else None
        print(f"Query: {args.question}")
        result = pipeline.query(args.question, filters)

        if result.stats.expanded_query:
            print(f"Expanded: {result.stats.expanded_query}")
        print(
            f"Retrieved {result.stats.chunks_retrieved} chunks "
            f"(avg similarity {result.stats.avg_similarity:.2f}, "
            f"{result.stats.query_time_ms} ms)"
        )

        for chunk in result.chunks:
            preview = chunk.chunk.content[:100].replace("\n", " ")
            print(f"  {chunk.rank}. [{chunk.score:.3f}] {chunk.chunk.metadata.title}: {preview}...")

        print("\n--- Context ---\n")
        if args.prompt:
            print(pipeline.build_prompt(args.question, result))
        else:
            print(result.context)
    finally:
        pipeline.close()


def cmd_delete(args: argparse.Namespace) -> None:
    """Delete chunks of a source or a single document."""
    pipeline = _pipeline()
    try:
        if args.id:
            count = pipeline.delete_document(args.source, args.id)
        else:
            count = pipeline.delete_by_source(args.source)
        print(f"Deleted {count} chunks")
    finally:
        pipeline.close()


def cmd_clear(args: argparse.Namespace) -> None:
    """Clear all chunks from vector store."""
    pipeline = _pipeline()
    try:
        count = pipeline.clear_all()
        print(f"Deleted {count} chunks from vector store")
    finally:
        pipeline.close()


def cmd_stats(args: argparse.Namespace) -> None:
    """Show vector store statistics."""
    pipeline = _pipeline()
    try:
        stats = pipeline.stats()
        print(f"Total chunks in store: {stats['total_chunks']}")
        for source, count in sorted(stats["by_source"].items()):
            print(f"  {source}: {count}")
        print(f"Embedding model: {stats['embedding_model']} ({stats['embedding_dimensions']} dims)")
    finally:
        pipeline.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RAG context pipeline CLI")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # ingest
    p_ingest = subparsers.add_parser("ingest", help="Ingest a document")
    p_ingest.add_argument("file", help="Path to document file")
    p_ingest.add_argument("--source", default="documents", help="Source category")
    p_ingest.add_argument("--id", help="Document id (default: file name stem)")
    p_ingest.add_argument("--title", help="Document title (default: file name stem)")
    p_ingest.add_argument("--category", help="Document category")
    p_ingest.add_argument("--tags", help="Comma-separated tags")
    p_ingest.add_argument("--url", help="Document URL")
    p_ingest.add_argument(
        "--by-sections", action="store_true",
        help="One chunk per '## ' section (truncated, not re-split)"
    )

    # ask
    p_ask = subparsers.add_parser("ask", help="Retrieve context for a question")
    p_ask.add_argument("question", help="Question to ask")
    p_ask.add_argument("--source", help="Only search this source")
    p_ask.add_argument("--prompt", action="store_true", help="Print the full prompt")

    # delete
    p_delete = subparsers.add_parser("delete", help="Delete indexed chunks")
    p_delete.add_argument("--source", required=True, help="Source category")
    p_delete.add_argument("--id", help="Document id within the source")

    # clear
    subparsers.add_parser("clear", help="Clear all chunks")

    # stats
    subparsers.add_parser("stats", help="Show store statistics")

    return parser


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "ingest": cmd_ingest,
        "ask": cmd_ask,
        "delete": cmd_delete,
        "clear": cmd_clear,
        "stats": cmd_stats,
    }
    try:
        commands[args.command](args)
    except RagError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
