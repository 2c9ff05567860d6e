"""High-level pipeline: index documents and retrieve prompt-ready context."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from core.config import ChunkingConfig, RetrievalConfig, Settings
from core.errors import RagError
from core.models import Chunk, Document, IndexReport, RetrievalResult
from generation.prompt import DEFAULT_SYSTEM_PROMPT, build_prompt
from ingestion.chunker import TextSegmenter
from ingestion.embedder import EmbeddingService
from retrieval.retriever import Retriever
from storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


class Pipeline:
    """Wires segmenter, embedder, vector store and retriever together.

    Collaborators are passed in; nothing is cached at module level.
    """

    def __init__(
        self,
        embedder: EmbeddingService,
        vector_store: VectorStore,
        chunking: ChunkingConfig | None = None,
        retrieval: RetrievalConfig | None = None,
        prompt_template: str = DEFAULT_SYSTEM_PROMPT,
    ):
        self.embedder = embedder
        self.vector_store = vector_store
        self.segmenter = TextSegmenter(chunking)
        self.retriever = Retriever(embedder, vector_store, retrieval)
        self.prompt_template = prompt_template

    @classmethod
    def from_settings(cls, source: Settings) -> Pipeline:
        """Build a pipeline with OpenAI embeddings and a Neo4j store."""
        from neo4j import GraphDatabase

        embedder = EmbeddingService(
            model=source.embedding_model,
            dimensions=source.embedding_dimensions,
            api_key=source.openai_api_key,
        )
        driver = GraphDatabase.driver(
            source.neo4j_uri, auth=(source.neo4j_user, source.neo4j_password)
        )
        return cls(
            embedder=embedder,
            vector_store=VectorStore(driver=driver, index_name=source.neo4j_index_name),
            chunking=ChunkingConfig.from_settings(source),
            retrieval=RetrievalConfig.from_settings(source),
        )

    def initialize(self) -> None:
        self.vector_store.init_index(self.embedder.dimensions)

    def close(self) -> None:
        self.vector_store.close()

    def index_document(self, document: Document, by_sections: bool = False) -> int:
        """Chunk, embed and store one document. Returns chunks indexed."""
        if by_sections:
            chunks = self.segmenter.segment_by_sections(document)
        else:
            chunks = self.segmenter.segment(document)

        if not chunks:
            logger.warning("No chunks created for document: %s", document.title)
            return 0

        return self.index_chunks(chunks)

    def index_chunks(self, chunks: list[Chunk]) -> int:
        vectors = self.embedder.embed_batch([c.content for c in chunks])
        count = self.vector_store.upsert(chunks, vectors)
        logger.info("Indexed %d chunks for: %s", count, chunks[0].metadata.source_id)
        return count

    def index_documents(
        self, documents: list[Document], by_sections: bool = False
    ) -> list[IndexReport]:
        """Index documents one by one; a failing document does not stop the batch."""
        reports = []
        for document in documents:
            report = IndexReport(
                source=document.source, source_id=document.id, title=document.title
            )
            try:
                report.chunks_indexed = self.index_document(document, by_sections)
            except RagError as e:
                logger.warning(
                    "Failed to index %s/%s: %s", document.source, document.id, e
                )
                report.error = str(e) or type(e).__name__
            reports.append(report)

        total = sum(r.chunks_indexed for r in reports)
        failed = sum(1 for r in reports if not r.ok)
        logger.info(
            "Indexed %d total chunks from %d documents (%d failed)",
            total,
            len(documents),
            failed,
        )
        return reports

    def query(
        self, question: str, filters: Mapping[str, Any] | None = None
    ) -> RetrievalResult:
        return self.retriever.retrieve(question, filters)

    def build_prompt(self, question: str, result: RetrievalResult) -> str:
        return build_prompt(question, result.context, self.prompt_template)

    def delete_document(self, source: str, source_id: str) -> int:
        return self.vector_store.delete_document(source, source_id)

    def delete_by_source(self, source: str) -> int:
        return self.vector_store.delete_by_source(source)

    def clear_all(self) -> int:
        return self.vector_store.clear_all()

    def stats(self) -> dict:
        return {
            **self.vector_store.stats(),
            "embedding_model": self.embedder.model,
            "embedding_dimensions": self.embedder.dimensions,
        }
