"""Hybrid scoring: vector similarity fused with keyword signals."""

from __future__ import annotations

import logging

from core.models import Candidate, Chunk, RetrievedChunk

logger = logging.getLogger(__name__)

EXACT_PHRASE_BONUS = 0.20
TITLE_MATCH_WEIGHT = 0.15
CONTENT_MATCH_WEIGHT = 0.10
MIN_TERM_LENGTH = 4


def query_terms(question: str) -> list[str]:
    """Lower-cased whitespace-separated words longer than 3 characters."""
    return [term for term in question.lower().split() if len(term) >= MIN_TERM_LENGTH]


class HybridScorer:
    """Re-ranks vector search candidates with a keyword boost."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def keyword_boost(self, question: str, chunk: Chunk) -> float:
        """Lexical bonus of ``chunk`` for the original (non-expanded) question.

        - +0.20 if the content contains the whole question
        - +0.15 x fraction of query terms found in the title
        - +0.10 x fraction of query terms found in the content
        """
        if not self.enabled:
            return 0.0

        # Surrounding whitespace is ignored and an empty question never matches.
        phrase = question.lower().strip()
        content = chunk.content.lower()
        title = chunk.metadata.title.lower()
        terms = query_terms(question)
        denominator = max(len(terms), 1)

        boost = 0.0
        if phrase and phrase in content:
            boost += EXACT_PHRASE_BONUS

        title_matches = sum(1 for term in terms if term in title)
        boost += title_matches / denominator * TITLE_MATCH_WEIGHT

        content_matches = sum(1 for term in terms if term in content)
        boost += content_matches / denominator * CONTENT_MATCH_WEIGHT

        return boost

    def score(self, question: str, candidates: list[Candidate]) -> list[RetrievedChunk]:
        """Fuse scores and sort descending; ties keep their input order.

        Args:
            question: Original user question
            candidates: Vector search hits with raw similarity

        Returns:
            Ranked chunks with fused scores clamped to [0, 1]
        """
        fused = []
        for candidate in candidates:
            score = candidate.raw_score + self.keyword_boost(question, candidate.chunk)
            fused.append(
                RetrievedChunk(chunk=candidate.chunk, score=min(1.0, max(0.0, score)))
            )

        fused.sort(key=lambda r: r.score, reverse=True)

        ranked = [
            RetrievedChunk(chunk=r.chunk, score=r.score, rank=i)
            for i, r in enumerate(fused, start=1)
        ]
        logger.debug("Scored %d candidates (hybrid=%s)", len(ranked), self.enabled)
        return ranked
