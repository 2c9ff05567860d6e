"""Text embeddings via the OpenAI embeddings API."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import openai

from core.config import settings
from core.errors import CollaboratorFailure, EmptyContentError, InvalidConfigurationError
from ingestion.markdown import strip_markdown

logger = logging.getLogger(__name__)

# OpenAI accepts up to 2048 inputs per embeddings request.
MAX_BATCH_SIZE = 2048


@dataclass(frozen=True)
class EmbeddingModelInfo:
    id: str
    native_dimensions: int
    supports_dimension_reduction: bool
    cost_per_1m_tokens: float


EMBEDDING_MODELS: dict[str, EmbeddingModelInfo] = {
    "text-embedding-3-small": EmbeddingModelInfo(
        "text-embedding-3-small", 1536, True, 0.02
    ),
    "text-embedding-3-large": EmbeddingModelInfo(
        "text-embedding-3-large", 3072, True, 0.13
    ),
    "text-embedding-ada-002": EmbeddingModelInfo(
        "text-embedding-ada-002", 1536, False, 0.10
    ),
}
DEFAULT_MODEL = "text-embedding-3-large"


def preprocess_text(text: str) -> str:
    """Strip markup and flatten whitespace before embedding."""
    return " ".join(strip_markdown(text).split())


class EmbeddingService:
    """Converts text to vectors with an OpenAI embedding model."""

    def __init__(
        self,
        openai_client: openai.OpenAI | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        api_key: str | None = None,
    ):
        """Initialize embedding service.

        Args:
            openai_client: Optional OpenAI client (created if None)
            model: Embedding model name (default: settings.embedding_model)
            dimensions: Target dimensions for models that support reduction
            api_key: Key for the created client (default: settings.openai_api_key)
        """
        if openai_client is None:
            api_key = api_key or settings.openai_api_key
            if not api_key:
                raise InvalidConfigurationError(
                    "OpenAI API key is required. Set OPENAI_API_KEY."
                )
            openai_client = openai.OpenAI(api_key=api_key)
        self.openai_client = openai_client

        self.model = model or settings.embedding_model
        if self.model not in EMBEDDING_MODELS:
            logger.warning(
                "Unknown embedding model '%s', using %s metadata", self.model, DEFAULT_MODEL
            )
        self.model_info = EMBEDDING_MODELS.get(self.model, EMBEDDING_MODELS[DEFAULT_MODEL])

        if dimensions is None:
            dimensions = settings.embedding_dimensions
        if dimensions and dimensions > self.model_info.native_dimensions:
            logger.warning(
                "Target dimensions %d exceed native %d, using native",
                dimensions,
                self.model_info.native_dimensions,
            )
            dimensions = None
        self.target_dimensions = dimensions

        logger.info(
            "Embedding service ready: %s, dimensions: %d", self.model, self.dimensions
        )

    @property
    def dimensions(self) -> int:
        return self.target_dimensions or self.model_info.native_dimensions

    def estimate_cost(self, token_count: int) -> float:
        """Estimated USD cost of embedding ``token_count`` tokens."""
        return token_count / 1_000_000 * self.model_info.cost_per_1m_tokens

    def embed(self, text: str) -> list[float]:
        clean = preprocess_text(text)
        if not clean:
            raise EmptyContentError("Text is empty after preprocessing")
        return self._create([clean])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in order, one vector per input.

        Raises EmptyContentError if any input is empty after preprocessing,
        since dropping it would break the positional pairing with chunks.
        """
        if not texts:
            return []

        clean_texts = [preprocess_text(text) for text in texts]
        empty = [i for i, text in enumerate(clean_texts) if not text]
        if empty:
            raise EmptyContentError(f"Texts at positions {empty} are empty after preprocessing")

        embeddings: list[list[float]] = []
        for start in range(0, len(clean_texts), MAX_BATCH_SIZE):
            batch = clean_texts[start : start + MAX_BATCH_SIZE]
            embeddings.extend(self._create(batch))

        logger.info("Embedded %d texts", len(embeddings))
        return embeddings

    def _create(self, inputs: list[str]) -> list[list[float]]:
        params: dict = {"model": self.model, "input": inputs}
        if self.target_dimensions and self.model_info.supports_dimension_reduction:
            params["dimensions"] = self.target_dimensions

        try:
            response = self.openai_client.embeddings.create(**params)
        except openai.OpenAIError as e:
            logger.error("Embedding request failed: %s", e)
            raise CollaboratorFailure(f"Embedding request failed: {e}") from e

        vectors = [item.embedding for item in response.data]
        if len(vectors) != len(inputs):
            raise CollaboratorFailure(
                f"Embedding response has {len(vectors)} vectors for {len(inputs)} inputs"
            )
        return vectors
