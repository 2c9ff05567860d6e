"""Word-bounded text segmenter that prefers paragraph and sentence boundaries."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Sequence

from core.config import ChunkingConfig
from core.errors import EmptyContentError
from core.models import Chunk, ChunkMetadata, Document, chunk_id
from ingestion.markdown import count_words, strip_markdown, truncate_words

logger = logging.getLogger(__name__)

SECTION_HEADER = re.compile(r"^## ", re.MULTILINE)
MIN_SECTION_CHARS = 30


class TextSegmenter:
    """Splits documents into ordered chunks bounded by word count.

    Strategy:
    1. Strip markup; documents shorter than ``min_words_per_chunk`` become
       a single chunk
    2. Greedily pack paragraphs up to ``max_words_per_chunk``
    3. An oversized paragraph is re-split with the next finer split pattern
       (lines, then sentences), and as a last resort on word boundaries
    4. A trailing piece shorter than ``min_words_per_chunk`` is merged into
       the previous chunk
    """

    def __init__(self, config: ChunkingConfig | None = None):
        self.config = config or ChunkingConfig()
        self._patterns = [re.compile(p) for p in self.config.split_patterns]

    def segment(self, document: Document) -> list[Chunk]:
        clean = strip_markdown(document.content)
        if not clean:
            raise EmptyContentError(
                f"Document {document.source}/{document.id} has no content after cleaning"
            )

        if count_words(clean) < self.config.min_words_per_chunk:
            pieces = [clean]
        else:
            pieces = self._pack(clean)

        chunks = self._build_chunks(document, pieces)
        logger.debug(
            "Segmented %s/%s into %d chunks", document.source, document.id, len(chunks)
        )
        return chunks

    def segment_many(self, documents: Iterable[Document]) -> list[Chunk]:
        chunks: list[Chunk] = []
        for document in documents:
            chunks.extend(self.segment(document))
        return chunks

    def segment_by_sections(self, document: Document) -> list[Chunk]:
        """Chunk by ``## `` headers, one chunk per section.

        Sections are truncated to ``max_words_per_chunk`` words rather than
        re-split. Sections whose body is shorter than 30 characters are
        skipped.
        """
        if not strip_markdown(document.content):
            raise EmptyContentError(
                f"Document {document.source}/{document.id} has no content after cleaning"
            )

        max_words = self.config.max_words_per_chunk
        sections = SECTION_HEADER.split(document.content)
        entries: list[tuple[str, str]] = []

        # Text before the first header; the length floor is in characters.
        intro = sections[0].strip()
        if len(intro) > self.config.min_words_per_chunk:
            intro_content = strip_markdown(intro)
            if intro_content:
                entries.append(
                    (f"{document.title} - Introduction", truncate_words(intro_content, max_words))
                )

        for position, section in enumerate(sections[1:], start=1):
            if len(section.strip()) < MIN_SECTION_CHARS:
                continue
            heading, _, body = section.partition("\n")
            heading = heading.strip() or f"Section {position}"
            body = strip_markdown(body)
            if len(body) < MIN_SECTION_CHARS:
                continue
            entries.append((f"{document.title} - {heading}", truncate_words(body, max_words)))

        total = len(entries)
        return [
            self._create_chunk(document, content, index, total, title=title)
            for index, (title, content) in enumerate(entries)
        ]

    def create_overview_chunk(
        self, document: Document, fields: Sequence[tuple[str | None, str | None]]
    ) -> Chunk:
        """Create a single summary chunk from ``(label, value)`` pairs.

        Pairs without a value are skipped; labelled pairs render as
        ``label: value`` and pairs are joined with ``". "``.
        """
        parts = [
            f"{label}: {value}" if label else value
            for label, value in fields
            if value
        ]
        content = ". ".join(parts)
        if not content.strip():
            raise EmptyContentError(
                f"Overview for {document.source}/{document.id} has no field values"
            )
        return self._create_chunk(document, content, 0, 1)

    def _pack(self, text: str) -> list[str]:
        """Greedily pack paragraphs into pieces of at most max_words_per_chunk."""
        max_words = self.config.max_words_per_chunk
        pieces: list[str] = []
        buffer = ""

        for separator, paragraph in _split_units(text, self._patterns[0]):
            words = count_words(paragraph)
            if count_words(buffer) + words <= max_words:
                buffer = _append(buffer, separator, paragraph)
            elif words > max_words:
                if buffer:
                    pieces.append(buffer)
                overflow, buffer = self._split_oversized(paragraph, level=1)
                pieces.extend(overflow)
            else:
                if buffer:
                    pieces.append(buffer)
                buffer = paragraph

        if buffer:
            if count_words(buffer) >= self.config.min_words_per_chunk or not pieces:
                pieces.append(buffer)
            else:
                # May push the last piece past max_words_per_chunk.
                pieces[-1] = f"{pieces[-1]}\n\n{buffer}"

        return pieces

    def _split_oversized(self, text: str, level: int) -> tuple[list[str], str]:
        """Split text that exceeds max_words_per_chunk.

        Returns the full pieces and the trailing remainder, which the caller
        keeps accumulating into.
        """
        max_words = self.config.max_words_per_chunk

        if level >= len(self._patterns):
            words = text.split()
            parts = [
                " ".join(words[i : i + max_words]) for i in range(0, len(words), max_words)
            ]
            return parts[:-1], parts[-1]

        pieces: list[str] = []
        buffer = ""
        for separator, unit in _split_units(text, self._patterns[level]):
            words = count_words(unit)
            if words > max_words:
                if buffer:
                    pieces.append(buffer)
                overflow, buffer = self._split_oversized(unit, level + 1)
                pieces.extend(overflow)
            elif count_words(buffer) + words <= max_words:
                buffer = _append(buffer, separator, unit)
            else:
                pieces.append(buffer)
                buffer = unit

        return pieces, buffer

    def _build_chunks(self, document: Document, pieces: list[str]) -> list[Chunk]:
        total = len(pieces)
        return [
            self._create_chunk(document, content, index, total)
            for index, content in enumerate(pieces)
        ]

    def _create_chunk(
        self,
        document: Document,
        content: str,
        chunk_index: int,
        total_chunks: int,
        title: str | None = None,
    ) -> Chunk:
        if title is None:
            title = (
                document.title
                if total_chunks == 1
                else f"{document.title} (Part {chunk_index + 1})"
            )

        return Chunk(
            id=chunk_id(document.source, document.id, chunk_index),
            content=content.strip(),
            metadata=ChunkMetadata(
                source=document.source,
                source_id=document.id,
                title=title,
                chunk_index=chunk_index,
                total_chunks=total_chunks,
                category=document.category,
                tags=list(document.tags) if document.tags is not None else None,
                url=document.url,
                extra=dict(document.metadata),
            ),
        )


def _split_units(text: str, pattern: re.Pattern[str]) -> list[tuple[str, str]]:
    """Split text on pattern, pairing each unit with the separator before it.

    Separators are normalized to ``\\n\\n``, ``\\n`` or a single space so that
    rejoined units keep their paragraph and line structure.
    """
    units: list[tuple[str, str]] = []
    position = 0
    separator = ""
    for match in pattern.finditer(text):
        units.append((separator, text[position : match.start()]))
        separator = match.group(0)
        position = match.end()
    units.append((separator, text[position:]))

    return [
        (_normalize_separator(sep), unit.strip()) for sep, unit in units if unit.strip()
    ]


def _normalize_separator(separator: str) -> str:
    if not separator:
        return ""
    newlines = separator.count("\n")
    if newlines >= 2:
        return "\n\n"
    if newlines == 1:
        return "\n"
    return " "


def _append(buffer: str, separator: str, unit: str) -> str:
    if not buffer:
        return unit
    return f"{buffer}{separator or ' '}{unit}"
