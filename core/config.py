"""Configuration: environment settings plus immutable component configs."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings

from core.errors import InvalidConfigurationError

DEFAULT_SPLIT_PATTERNS: tuple[str, ...] = (
    r"\n\s*\n",  # paragraphs
    r"\n",  # lines
    r"(?<=[.!?])\s+",  # sentences
)

DEFAULT_SYNONYMS: dict[str, list[str]] = {
    "ml": ["ML", "machine learning", "Machine Learning"],
    "machine learning": ["ML", "machine learning", "Machine Learning"],
    "ai": ["AI", "artificial intelligence", "Artificial Intelligence"],
    "artificial intelligence": ["AI", "artificial intelligence"],
    "dl": ["DL", "deep learning", "Deep Learning"],
    "deep learning": ["DL", "deep learning", "Deep Learning"],
    "nlp": ["NLP", "natural language processing"],
    "natural language processing": ["NLP", "natural language processing"],
    "llm": ["LLM", "large language model", "Large Language Model"],
    "large language model": ["LLM", "large language model"],
    "rag": ["RAG", "retrieval augmented generation"],
    "retrieval augmented generation": ["RAG", "retrieval augmented generation"],
    "db": ["DB", "database", "Database"],
    "database": ["DB", "database", "Database"],
    "api": ["API", "REST API", "application programming interface"],
}


class Settings(BaseSettings):
    # OpenAI
    openai_api_key: str = ""
    embedding_model: str = "text-embedding-3-large"
    embedding_dimensions: int | None = None

    # Neo4j
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: str = "neo4j"
    neo4j_index_name: str = "knowledge_base"

    # Chunking
    max_words_per_chunk: int = 500
    min_words_per_chunk: int = 50
    overlap_words: int = 50

    # Retrieval
    top_k: int = 5
    threshold: float = 0.5
    enable_query_expansion: bool = True
    enable_hybrid_search: bool = True

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()


class _FrozenConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    def with_updates(self, **changes: Any):
        """Return a new validated config with ``changes`` applied."""
        return type(self).model_validate({**self.model_dump(), **changes})


class ChunkingConfig(_FrozenConfig):
    """Word-count bounds and split patterns for the text segmenter.

    ``overlap_words`` is accepted and carried but not applied to chunk
    boundaries.
    """

    max_words_per_chunk: int = 500
    min_words_per_chunk: int = 50
    overlap_words: int = 50
    split_patterns: tuple[str, ...] = DEFAULT_SPLIT_PATTERNS

    @model_validator(mode="after")
    def _check_bounds(self) -> ChunkingConfig:
        if self.max_words_per_chunk < 1:
            raise InvalidConfigurationError(
                f"max_words_per_chunk must be positive, got {self.max_words_per_chunk}"
            )
        if self.min_words_per_chunk < 0 or self.overlap_words < 0:
            raise InvalidConfigurationError(
                "min_words_per_chunk and overlap_words must be non-negative"
            )
        if self.min_words_per_chunk > self.max_words_per_chunk:
            raise InvalidConfigurationError(
                f"min_words_per_chunk ({self.min_words_per_chunk}) exceeds "
                f"max_words_per_chunk ({self.max_words_per_chunk})"
            )
        if not self.split_patterns:
            raise InvalidConfigurationError("split_patterns must not be empty")
        return self

    @classmethod
    def from_settings(cls, source: Settings) -> ChunkingConfig:
        return cls(
            max_words_per_chunk=source.max_words_per_chunk,
            min_words_per_chunk=source.min_words_per_chunk,
            overlap_words=source.overlap_words,
        )


class RetrievalConfig(_FrozenConfig):
    """Ranking and filtering options for a retrieval call."""

    top_k: int = 5
    threshold: float = 0.5
    enable_query_expansion: bool = True
    enable_hybrid_search: bool = True
    synonym_map: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_SYNONYMS.items()}
    )

    @model_validator(mode="after")
    def _check_ranges(self) -> RetrievalConfig:
        if not 0.0 <= self.threshold <= 1.0:
            raise InvalidConfigurationError(
                f"threshold must be within [0, 1], got {self.threshold}"
            )
        if self.top_k < 1:
            raise InvalidConfigurationError(f"top_k must be positive, got {self.top_k}")
        return self

    @classmethod
    def from_settings(cls, source: Settings) -> RetrievalConfig:
        return cls(
            top_k=source.top_k,
            threshold=source.threshold,
            enable_query_expansion=source.enable_query_expansion,
            enable_hybrid_search=source.enable_hybrid_search,
        )
