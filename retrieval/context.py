"""Threshold filtering and context rendering for retrieved chunks."""

from __future__ import annotations

import logging

from core.models import RetrievalResult, RetrievalStats, RetrievedChunk

logger = logging.getLogger(__name__)

NO_CONTEXT = "No relevant context found."
BLOCK_SEPARATOR = "\n\n---\n\n"


def render_block(index: int, result: RetrievedChunk) -> str:
    """Render one chunk as ``[Source n: title] (category) [url]`` plus its content."""
    meta = result.chunk.metadata
    header = [f"[Source {index}: {meta.title}]"]
    if meta.category:
        header.append(f"({meta.category})")
    if meta.url:
        header.append(f"[{meta.url}]")
    return f"{' '.join(header)}\n{result.chunk.content}"


class ContextAssembler:
    """Builds the final retrieval result from fused, ranked chunks."""

    def __init__(self, threshold: float = 0.5):
        self.threshold = threshold

    def assemble(
        self,
        question: str,
        chunks: list[RetrievedChunk],
        threshold: float | None = None,
        expanded_query: str | None = None,
    ) -> RetrievalResult:
        """Keep chunks scoring at least ``threshold`` and render them.

        Args:
            question: Original user question
            chunks: Fused chunks from the hybrid scorer
            threshold: Minimum score (default: the configured threshold)
            expanded_query: Echoed in stats when query expansion ran

        Returns:
            RetrievalResult with kept chunks sorted by descending score
        """
        if threshold is None:
            threshold = self.threshold

        kept = sorted(
            (c for c in chunks if c.score >= threshold),
            key=lambda c: c.score,
            reverse=True,
        )
        kept = [
            RetrievedChunk(chunk=c.chunk, score=c.score, rank=i)
            for i, c in enumerate(kept, start=1)
        ]

        if kept:
            context = BLOCK_SEPARATOR.join(
                render_block(i, c) for i, c in enumerate(kept, start=1)
            )
            avg_similarity = round(sum(c.score for c in kept) / len(kept), 2)
        else:
            logger.info("No chunks above threshold %.2f for: %s", threshold, question)
            context = NO_CONTEXT
            avg_similarity = 0.0

        return RetrievalResult(
            chunks=kept,
            context=context,
            stats=RetrievalStats(
                chunks_retrieved=len(kept),
                avg_similarity=avg_similarity,
                expanded_query=expanded_query,
            ),
        )
