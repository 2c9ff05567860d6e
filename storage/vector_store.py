"""Neo4j Vector Index store for chunk embeddings."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, Mapping

from neo4j.exceptions import DriverError, Neo4jError

from core.config import settings
from core.errors import CollaboratorFailure
from core.models import Candidate, Chunk
from storage.serialization import from_properties, to_properties

if TYPE_CHECKING:
    from neo4j import Driver

logger = logging.getLogger(__name__)

NODE_LABEL = "RagChunk"
EMBEDDING_PROPERTY = "embedding"
# Index hits fetched per requested result when a metadata filter is applied.
FILTER_OVERFETCH = 10

_PROPERTY_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def similarity_from_score(score: float) -> float:
    """Convert a Neo4j cosine index score to ``max(0, 1 - cosine distance)``.

    Neo4j reports cosine similarity normalized as ``(1 + cos) / 2``.
    """
    distance = 2.0 * (1.0 - score)
    return min(1.0, max(0.0, 1.0 - distance))


def _where_clause(filters: Mapping[str, Any] | None, alias: str) -> tuple[str, dict]:
    """Build an equality WHERE clause over node properties."""
    if not filters:
        return "", {}

    conditions = []
    params = {}
    for i, (key, value) in enumerate(filters.items()):
        if not _PROPERTY_NAME.match(key):
            raise ValueError(f"Invalid filter property: {key!r}")
        conditions.append(f"{alias}.{key} = $filter_{i}")
        params[f"filter_{i}"] = value

    return "WHERE " + " AND ".join(conditions), params


class VectorStore:
    """Neo4j-backed vector store with cosine similarity search."""

    def __init__(self, driver: Driver | None = None, index_name: str | None = None):
        if driver is None:
            from neo4j import GraphDatabase

            self._driver = GraphDatabase.driver(
                settings.neo4j_uri,
                auth=(settings.neo4j_user, settings.neo4j_password),
            )
        else:
            self._driver = driver
        self.index_name = index_name or settings.neo4j_index_name

    def close(self) -> None:
        self._driver.close()

    def _run(self, query: str, **params: Any) -> list:
        try:
            with self._driver.session() as session:
                return list(session.run(query, **params))
        except (Neo4jError, DriverError) as e:
            logger.error("Neo4j query failed: %s", e)
            raise CollaboratorFailure(f"Vector store request failed: {e}") from e

    def init_index(self, dimensions: int) -> None:
        """Create vector index in Neo4j if it doesn't exist."""
        self._run(
            f"""
            CREATE VECTOR INDEX {self.index_name} IF NOT EXISTS
            FOR (n:{NODE_LABEL})
            ON (n.{EMBEDDING_PROPERTY})
            OPTIONS {{
                indexConfig: {{
                    `vector.dimensions`: $dimensions,
                    `vector.similarity_function`: 'cosine'
                }}
            }}
            """,
            dimensions=dimensions,
        )
        logger.info("Vector index '%s' initialized (%d dims)", self.index_name, dimensions)

    def upsert(self, chunks: list[Chunk], vectors: list[list[float]]) -> int:
        """Store chunks with their vectors, keyed by chunk id. Returns count written."""
        if len(chunks) != len(vectors):
            raise ValueError(
                f"Got {len(chunks)} chunks but {len(vectors)} vectors"
            )
        if not chunks:
            return 0

        rows = [
            {
                "id": chunk.id,
                "content": chunk.content,
                "embedding": list(vector),
                "properties": to_properties(chunk),
            }
            for chunk, vector in zip(chunks, vectors)
        ]
        self._run(
            f"""
            UNWIND $rows AS row
            MERGE (c:{NODE_LABEL} {{id: row.id}})
            SET c += row.properties,
                c.content = row.content,
                c.{EMBEDDING_PROPERTY} = row.embedding
            """,
            rows=rows,
        )

        logger.info("Upserted %d chunks into vector store", len(chunks))
        return len(chunks)

    def query(
        self,
        query_embedding: list[float],
        top_k: int | None = None,
        filters: Mapping[str, Any] | None = None,
    ) -> list[Candidate]:
        """Nearest-neighbour search, most similar first.

        With filters, the index is asked for ``top_k * FILTER_OVERFETCH`` hits
        so that up to ``top_k`` matching candidates survive the WHERE clause.
        """
        if top_k is None:
            top_k = settings.top_k

        where, params = _where_clause(filters, "node")
        fetch_k = top_k * FILTER_OVERFETCH if where else top_k
        records = self._run(
            f"""
            CALL db.index.vector.queryNodes('{self.index_name}', $fetch_k, $embedding)
            YIELD node, score
            {where}
            RETURN node {{.*, {EMBEDDING_PROPERTY}: null}} AS properties, score
            ORDER BY score DESC
            LIMIT $top_k
            """,
            fetch_k=fetch_k,
            top_k=top_k,
            embedding=query_embedding,
            **params,
        )

        candidates = []
        for record in records:
            properties = record["properties"]
            chunk = from_properties(
                properties.get("id") or "", properties.get("content") or "", properties
            )
            candidates.append(
                Candidate(chunk=chunk, raw_score=similarity_from_score(record["score"]))
            )

        logger.debug("Vector search returned %d candidates", len(candidates))
        return candidates

    def delete_by_filter(self, filters: Mapping[str, Any] | None = None) -> int:
        """Delete chunks matching all filters (every chunk if none). Returns count."""
        where, params = _where_clause(filters, "c")
        records = self._run(
            f"""
            MATCH (c:{NODE_LABEL})
            {where}
            DETACH DELETE c
            RETURN count(c) AS total
            """,
            **params,
        )
        count = records[0]["total"] if records else 0

        logger.info("Deleted %d chunks from vector store (filters=%s)", count, filters)
        return count

    def delete_document(self, source: str, source_id: str) -> int:
        return self.delete_by_filter({"source": source, "source_id": source_id})

    def delete_by_source(self, source: str) -> int:
        return self.delete_by_filter({"source": source})

    def clear_all(self) -> int:
        return self.delete_by_filter(None)

    def count(self) -> int:
        """Return total number of chunks."""
        records = self._run(f"MATCH (c:{NODE_LABEL}) RETURN count(c) AS total")
        return records[0]["total"] if records else 0

    def stats(self) -> dict:
        """Total chunk count and per-source breakdown."""
        records = self._run(
            f"""
            MATCH (c:{NODE_LABEL})
            RETURN coalesce(c.source, 'unknown') AS source, count(c) AS total
            """
        )
        by_source = {record["source"]: record["total"] for record in records}
        return {"total_chunks": sum(by_source.values()), "by_source": by_source}
