"""Error types raised by the chunking and retrieval pipeline."""

from __future__ import annotations


class RagError(Exception):
    """Base class for pipeline errors."""


class EmptyContentError(RagError):
    """Text is empty or whitespace-only after markup stripping."""


class InvalidConfigurationError(RagError):
    """Configuration values are out of range or a required credential is missing."""


class CollaboratorFailure(RagError):
    """An embedding or vector store call failed.

    The underlying exception is chained as ``__cause__``. The pipeline never
    retries; callers decide whether to try again.
    """
