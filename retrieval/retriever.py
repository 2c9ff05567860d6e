"""Retrieval orchestrator: expansion -> embedding -> search -> scoring -> context."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any, Mapping

from core.config import RetrievalConfig
from core.models import RetrievalResult
from retrieval.context import ContextAssembler
from retrieval.query_expander import QueryExpander
from retrieval.scorer import HybridScorer

if TYPE_CHECKING:
    from ingestion.embedder import EmbeddingService
    from storage.vector_store import VectorStore

logger = logging.getLogger(__name__)


class Retriever:
    """Runs the retrieval pipeline against injected collaborators."""

    def __init__(
        self,
        embedder: EmbeddingService,
        vector_store: VectorStore,
        config: RetrievalConfig | None = None,
    ):
        """Initialize retriever with collaborators and an immutable config.

        Args:
            embedder: Embedding provider for the query text
            vector_store: Vector store for similarity search
            config: Retrieval options (default: RetrievalConfig())
        """
        self.embedder = embedder
        self.vector_store = vector_store
        self.config = config or RetrievalConfig()

        self.expander = QueryExpander(
            self.config.synonym_map, enabled=self.config.enable_query_expansion
        )
        self.scorer = HybridScorer(enabled=self.config.enable_hybrid_search)
        self.assembler = ContextAssembler(threshold=self.config.threshold)

    def with_config(self, **changes: Any) -> Retriever:
        """Return a new retriever sharing collaborators with an updated config."""
        return Retriever(self.embedder, self.vector_store, self.config.with_updates(**changes))

    def retrieve(
        self, question: str, filters: Mapping[str, Any] | None = None
    ) -> RetrievalResult:
        """Execute the retrieval pipeline.

        Pipeline steps:
        1. Expand question with synonyms
        2. Embed the expanded query
        3. Search vector store (top_k, optional metadata filters)
        4. Fuse similarity with keyword boost against the original question
        5. Filter by threshold and render context

        Collaborator errors propagate as CollaboratorFailure; an empty result
        is only ever reported through the "no relevant context" context.
        """
        start = time.perf_counter()

        expanded = self.expander.expand(question)
        query_embedding = self.embedder.embed(expanded)

        candidates = self.vector_store.query(
            query_embedding, top_k=self.config.top_k, filters=filters
        )
        logger.info("Vector search returned %d candidates", len(candidates))

        scored = self.scorer.score(question, candidates)
        result = self.assembler.assemble(
            question,
            scored,
            expanded_query=expanded if self.config.enable_query_expansion else None,
        )

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "Retrieved %d chunks (avg %.2f) in %d ms",
            result.stats.chunks_retrieved,
            result.stats.avg_similarity,
            elapsed_ms,
        )
        return result.model_copy(
            update={"stats": result.stats.model_copy(update={"query_time_ms": elapsed_ms})}
        )
