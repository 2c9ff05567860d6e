"""Prompt construction, confidence, and source citations for a generator."""

from __future__ import annotations

from core.models import RetrievedChunk, SourceSummary

DEFAULT_SYSTEM_PROMPT = """You are a helpful AI assistant. Answer questions based on the provided context.

Instructions:
- Base your answers on the provided context
- If the context doesn't contain enough information, say so
- Be concise but thorough
- Cite sources when relevant

Context:
{context}

Question: {question}"""

EXCERPT_CHARS = 150


def build_prompt(question: str, context: str, template: str = DEFAULT_SYSTEM_PROMPT) -> str:
    """Fill ``{context}`` and ``{question}`` in the template.

    Plain substitution, so braces inside the context are left alone.
    """
    return template.replace("{context}", context).replace("{question}", question)


def calculate_confidence(chunks: list[RetrievedChunk]) -> int:
    """Confidence percentage (0-100) from the mean fused score.

    Three or more chunks averaging above 0.8 get a 10% boost, capped at 95.
    """
    if not chunks:
        return 0

    avg_score = sum(c.score for c in chunks) / len(chunks)
    confidence = avg_score
    if len(chunks) >= 3 and avg_score > 0.8:
        confidence = min(0.95, avg_score * 1.1)

    return round(confidence * 100)


def format_sources(chunks: list[RetrievedChunk]) -> list[SourceSummary]:
    sources = []
    for result in chunks:
        content = result.chunk.content
        excerpt = content[:EXCERPT_CHARS] + ("..." if len(content) > EXCERPT_CHARS else "")
        sources.append(
            SourceSummary(
                title=result.chunk.metadata.title,
                url=result.chunk.metadata.url,
                excerpt=excerpt,
                score=round(result.score, 2),
            )
        )
    return sources
