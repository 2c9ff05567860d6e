"""Data models for the chunking and retrieval pipeline."""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, Field

Primitive = Union[str, int, float, bool]


def chunk_id(source: str, source_id: str, chunk_index: int) -> str:
    """Primary key of a chunk in the vector store."""
    return f"{source}_{source_id}_chunk_{chunk_index}"


class Document(BaseModel):
    """A caller-supplied document, keyed by ``(source, id)``."""

    id: str
    title: str
    content: str
    source: str
    url: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    metadata: dict[str, Primitive] = Field(default_factory=dict)


class ChunkMetadata(BaseModel):
    """Provenance of a chunk. Free-form fields live in ``extra``."""

    source: str
    source_id: str
    title: str
    chunk_index: int = Field(ge=0)
    total_chunks: int = Field(ge=1)
    category: str | None = None
    tags: list[str] | None = None
    url: str | None = None
    extra: dict[str, Primitive] = Field(default_factory=dict)


class Chunk(BaseModel):
    """A bounded slice of a document's text, the unit of embedding and retrieval."""

    id: str
    content: str = Field(min_length=1)
    metadata: ChunkMetadata


class Candidate(BaseModel):
    """A chunk returned by vector search, with similarity derived from distance."""

    chunk: Chunk
    raw_score: float = Field(ge=0.0, le=1.0)


class RetrievedChunk(BaseModel):
    """A chunk with its fused relevance score."""

    chunk: Chunk
    score: float = Field(ge=0.0, le=1.0)
    rank: int = 0


class RetrievalStats(BaseModel):
    chunks_retrieved: int = 0
    avg_similarity: float = 0.0
    expanded_query: str | None = None
    query_time_ms: int = 0


class RetrievalResult(BaseModel):
    """Retrieved chunks (descending score), rendered context, and stats."""

    chunks: list[RetrievedChunk] = Field(default_factory=list)
    context: str
    stats: RetrievalStats = Field(default_factory=RetrievalStats)


class IndexReport(BaseModel):
    """Outcome of indexing one document in a batch."""

    source: str
    source_id: str
    title: str
    chunks_indexed: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class SourceSummary(BaseModel):
    """Short citation of a retrieved chunk for display next to an answer."""

    title: str
    url: str | None = None
    excerpt: str
    score: float
