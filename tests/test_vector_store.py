"""Unit tests for VectorStore and its serialization boundary (mock Neo4j driver)."""

from unittest.mock import MagicMock, patch

import pytest
from neo4j.exceptions import ServiceUnavailable

from core.errors import CollaboratorFailure
from core.models import Chunk, ChunkMetadata
from storage.serialization import decode_tags, encode_tags, from_properties, to_properties
from storage.vector_store import (
    FILTER_OVERFETCH,
    NODE_LABEL,
    VectorStore,
    similarity_from_score,
)


@pytest.fixture
def mock_driver():
    driver = MagicMock()
    session = MagicMock()
    driver.session.return_value.__enter__ = MagicMock(return_value=session)
    driver.session.return_value.__exit__ = MagicMock(return_value=False)
    return driver, session


@pytest.fixture
def store(mock_driver):
    driver, _ = mock_driver
    return VectorStore(driver=driver, index_name="test_index")


def make_chunk(index: int = 0, **meta) -> Chunk:
    fields = {
        "source": "docs",
        "source_id": "1",
        "title": "Doc",
        "chunk_index": index,
        "total_chunks": 2,
    }
    fields.update(meta)
    return Chunk(
        id=f"docs_1_chunk_{index}",
        content=f"Content {index}",
        metadata=ChunkMetadata(**fields),
    )


class TestSerialization:
    """Tests for node property serialization."""

    def test_encode_tags(self):
        """Test tags are joined with the comma separator."""
        assert encode_tags(["ml", "ai"]) == "ml, ai"
        assert encode_tags([]) == ""
        assert encode_tags(None) is None

    def test_decode_tags(self):
        """Test tag strings split back into a list, dropping blanks."""
        assert decode_tags("ml, ai") == ["ml", "ai"]
        assert decode_tags("ml, , ai") == ["ml", "ai"]
        assert decode_tags("") is None
        assert decode_tags(None) is None

    def test_to_properties_flattens_metadata(self):
        """Test chunk metadata flattens into scalar node properties."""
        chunk = make_chunk(
            tags=["ml", "ai"], url="http://x", extra={"author": "someone", "year": 2024}
        )

        properties = to_properties(chunk)

        assert properties == {
            "source": "docs",
            "source_id": "1",
            "title": "Doc",
            "chunk_index": 0,
            "total_chunks": 2,
            "url": "http://x",
            "tags": "ml, ai",
            "extra_author": "someone",
            "extra_year": 2024,
        }

    def test_from_properties_restores_chunk(self):
        """Test node properties rebuild the original chunk."""
        chunk = make_chunk(1, category="AI", tags=["ml"], extra={"author": "someone"})

        restored = from_properties(chunk.id, chunk.content, to_properties(chunk))

        assert restored == chunk


class TestVectorStoreInit:
    """Tests for VectorStore initialization."""

    def test_init_index(self, store, mock_driver):
        """Test vector index creation query."""
        _, session = mock_driver
        store.init_index(1536)
        session.run.assert_called_once()
        query = session.run.call_args[0][0]
        assert "CREATE VECTOR INDEX test_index" in query
        assert NODE_LABEL in query
        assert session.run.call_args[1]["dimensions"] == 1536

    def test_custom_driver(self):
        """Test using a provided driver."""
        driver = MagicMock()
        vs = VectorStore(driver=driver)
        assert vs._driver is driver

    def test_default_driver(self):
        """Test driver is created from settings when none is given."""
        with patch("neo4j.GraphDatabase.driver") as mock_factory:
            store = VectorStore()
        mock_factory.assert_called_once()
        assert store._driver is mock_factory.return_value
        assert store.index_name == "knowledge_base"

    def test_close(self, store, mock_driver):
        """Test close shuts down the driver."""
        driver, _ = mock_driver
        store.close()
        driver.close.assert_called_once()


class TestUpsert:
    """Tests for upserting chunks."""

    def test_upsert_empty_list(self, store, mock_driver):
        """Test upserting nothing skips the database."""
        _, session = mock_driver
        assert store.upsert([], []) == 0
        session.run.assert_not_called()

    def test_upsert_rows(self, store, mock_driver):
        """Test chunks and vectors are merged in a single UNWIND query."""
        _, session = mock_driver
        chunks = [make_chunk(0, tags=["a"]), make_chunk(1)]

        result = store.upsert(chunks, [[0.1, 0.2], [0.3, 0.4]])

        assert result == 2
        session.run.assert_called_once()
        rows = session.run.call_args[1]["rows"]
        assert [row["id"] for row in rows] == ["docs_1_chunk_0", "docs_1_chunk_1"]
        assert rows[0]["content"] == "Content 0"
        assert rows[1]["embedding"] == [0.3, 0.4]
        assert rows[0]["properties"]["tags"] == "a"
        assert "MERGE" in session.run.call_args[0][0]

    def test_upsert_length_mismatch(self, store):
        """Test chunk and vector counts must match."""
        with pytest.raises(ValueError):
            store.upsert([make_chunk()], [])


class TestQuery:
    """Tests for vector search."""

    def test_similarity_from_score(self):
        """Test Neo4j cosine scores convert to 1 - cosine distance."""
        assert similarity_from_score(1.0) == pytest.approx(1.0)
        assert similarity_from_score(0.9) == pytest.approx(0.8)
        assert similarity_from_score(0.5) == pytest.approx(0.0)
        assert similarity_from_score(0.2) == 0.0

    def test_query_returns_candidates(self, store, mock_driver):
        """Test vector search maps records to candidates."""
        _, session = mock_driver
        session.run.return_value = [
            {
                "properties": {
                    "id": "docs_1_chunk_0",
                    "content": "Found content",
                    "source": "docs",
                    "source_id": "1",
                    "title": "Doc",
                    "chunk_index": 0,
                    "total_chunks": 1,
                    "tags": "ml, ai",
                    "embedding": None,
                },
                "score": 0.95,
            }
        ]

        results = store.query([0.1, 0.2, 0.3], top_k=5)

        assert len(results) == 1
        assert results[0].chunk.id == "docs_1_chunk_0"
        assert results[0].chunk.content == "Found content"
        assert results[0].chunk.metadata.tags == ["ml", "ai"]
        assert results[0].raw_score == pytest.approx(0.9)
        call_kwargs = session.run.call_args[1]
        assert call_kwargs["top_k"] == 5
        assert call_kwargs["embedding"] == [0.1, 0.2, 0.3]

    def test_query_empty_results(self, store, mock_driver):
        """Test vector search with no hits."""
        _, session = mock_driver
        session.run.return_value = []
        assert store.query([0.1], top_k=5) == []

    def test_query_uses_default_top_k(self, store, mock_driver):
        """Test top_k falls back to settings."""
        _, session = mock_driver
        session.run.return_value = []
        store.query([0.1])
        assert session.run.call_args[1]["top_k"] == 5

    def test_query_with_filters(self, store, mock_driver):
        """Test filters become a parameterised WHERE clause."""
        _, session = mock_driver
        session.run.return_value = []

        store.query([0.1], top_k=3, filters={"source": "guides", "category": "AI"})

        query = session.run.call_args[0][0]
        assert "WHERE node.source = $filter_0 AND node.category = $filter_1" in query
        assert session.run.call_args[1]["filter_0"] == "guides"
        assert session.run.call_args[1]["filter_1"] == "AI"

    def test_filtered_query_overfetches_then_limits(self, store, mock_driver):
        """Test filtered search asks the index for extra hits and keeps top_k."""
        _, session = mock_driver
        session.run.return_value = []

        store.query([0.1], top_k=5, filters={"source": "docs"})

        query = session.run.call_args[0][0]
        assert "queryNodes('test_index', $fetch_k, $embedding)" in query
        assert query.index("WHERE node.source") < query.index("LIMIT $top_k")
        assert session.run.call_args[1]["fetch_k"] == 5 * FILTER_OVERFETCH
        assert session.run.call_args[1]["top_k"] == 5

    def test_unfiltered_query_fetches_top_k(self, store, mock_driver):
        """Test search without filters fetches exactly top_k hits."""
        _, session = mock_driver
        session.run.return_value = []

        store.query([0.1], top_k=4)

        assert session.run.call_args[1]["fetch_k"] == 4
        assert "LIMIT $top_k" in session.run.call_args[0][0]

    def test_query_rejects_invalid_filter_key(self, store):
        """Test filter keys must be plain property names."""
        with pytest.raises(ValueError):
            store.query([0.1], filters={"source) DETACH DELETE node //": "x"})

    def test_driver_error_becomes_collaborator_failure(self, store, mock_driver):
        """Test Neo4j errors surface as CollaboratorFailure."""
        _, session = mock_driver
        session.run.side_effect = ServiceUnavailable("connection refused")

        with pytest.raises(CollaboratorFailure):
            store.query([0.1])


class TestDeleteAndCount:
    """Tests for deletion and counting."""

    def test_delete_document(self, store, mock_driver):
        """Test deleting all chunks of one document."""
        _, session = mock_driver
        session.run.return_value = [{"total": 3}]

        assert store.delete_document("docs", "1") == 3
        query = session.run.call_args[0][0]
        assert "DETACH DELETE c" in query
        assert session.run.call_args[1] == {"filter_0": "docs", "filter_1": "1"}

    def test_delete_by_source(self, store, mock_driver):
        """Test deleting all chunks of one source."""
        _, session = mock_driver
        session.run.return_value = [{"total": 10}]
        assert store.delete_by_source("docs") == 10
        assert "WHERE c.source = $filter_0" in session.run.call_args[0][0]

    def test_clear_all(self, store, mock_driver):
        """Test clearing the store deletes without a filter."""
        _, session = mock_driver
        session.run.return_value = [{"total": 7}]
        assert store.clear_all() == 7
        assert "WHERE" not in session.run.call_args[0][0]

    def test_delete_empty(self, store, mock_driver):
        """Test delete returns zero when nothing matched."""
        _, session = mock_driver
        session.run.return_value = []
        assert store.delete_by_source("docs") == 0

    def test_count(self, store, mock_driver):
        """Test counting stored chunks."""
        _, session = mock_driver
        session.run.return_value = [{"total": 42}]
        assert store.count() == 42

    def test_count_empty(self, store, mock_driver):
        """Test count with no result rows."""
        _, session = mock_driver
        session.run.return_value = []
        assert store.count() == 0

    def test_stats(self, store, mock_driver):
        """Test stats aggregate chunk counts per source."""
        _, session = mock_driver
        session.run.return_value = [
            {"source": "docs", "total": 4},
            {"source": "guides", "total": 2},
        ]
        assert store.stats() == {
            "total_chunks": 6,
            "by_source": {"docs": 4, "guides": 2},
        }
