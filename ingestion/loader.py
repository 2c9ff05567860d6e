"""Document loader using Docling for PDF/DOCX/HTML → markdown conversion."""

from __future__ import annotations

import logging
from pathlib import Path

from core.models import Document

logger = logging.getLogger(__name__)

PLAIN_TEXT_SUFFIXES = {".txt", ".md", ".markdown"}


def load_file(file_path: str) -> str:
    """Load document text from a file.

    Supports: PDF, DOCX, PPTX, XLSX, HTML, TXT, MD
    Returns markdown text representation.

    Plain text and markdown files are read directly.
    For other formats, uses Docling DocumentConverter.
    """
    path = Path(file_path)

    if not path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    if path.suffix.lower() in PLAIN_TEXT_SUFFIXES:
        logger.info("Loading text file: %s", file_path)
        with open(file_path, "r", encoding="utf-8") as f:
            return f.read()

    # Other formats - use Docling (lazy import)
    from docling.document_converter import DocumentConverter

    logger.info("Loading document via Docling: %s", file_path)
    converter = DocumentConverter()
    result = converter.convert(file_path)

    markdown_text = result.document.export_to_markdown()
    logger.info("Loaded %d characters from %s", len(markdown_text), file_path)

    return markdown_text


def load_text(text: str) -> str:
    """Load raw text as-is (pass-through).

    Used when text is already extracted/provided directly.
    """
    return text


def load_document(
    file_path: str,
    source: str,
    doc_id: str | None = None,
    title: str | None = None,
    category: str | None = None,
    tags: list[str] | None = None,
    url: str | None = None,
) -> Document:
    """Load a file into a Document. ``id`` and ``title`` default to the file stem."""
    path = Path(file_path)
    content = load_file(file_path)
    return Document(
        id=doc_id or path.stem,
        title=title or path.stem,
        content=content,
        source=source,
        category=category,
        tags=tags,
        url=url,
        metadata={"file_name": path.name},
    )
