"""Conversion between chunks and flat vector store properties.

Node properties cannot hold nested maps, so chunk metadata is flattened:
tags become a ``", "``-joined string and extension fields are stored with an
``extra_`` prefix.
"""

from __future__ import annotations

from typing import Any, Mapping

from core.models import Chunk, ChunkMetadata

TAG_SEPARATOR = ", "
EXTRA_PREFIX = "extra_"

_KNOWN_FIELDS = (
    "source",
    "source_id",
    "title",
    "chunk_index",
    "total_chunks",
    "category",
    "url",
)


def encode_tags(tags: list[str] | None) -> str | None:
    if tags is None:
        return None
    return TAG_SEPARATOR.join(tags)


def decode_tags(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [tag for tag in value.split(TAG_SEPARATOR) if tag]


def to_properties(chunk: Chunk) -> dict[str, Any]:
    """Flatten chunk metadata into store properties, omitting unset fields."""
    meta = chunk.metadata
    properties: dict[str, Any] = {
        field: getattr(meta, field)
        for field in _KNOWN_FIELDS
        if getattr(meta, field) is not None
    }

    tags = encode_tags(meta.tags)
    if tags is not None:
        properties["tags"] = tags

    for key, value in meta.extra.items():
        properties[f"{EXTRA_PREFIX}{key}"] = value

    return properties


def from_properties(chunk_id: str, content: str, properties: Mapping[str, Any]) -> Chunk:
    """Rebuild a chunk from stored properties (inverse of ``to_properties``)."""
    extra = {
        key[len(EXTRA_PREFIX) :]: value
        for key, value in properties.items()
        if key.startswith(EXTRA_PREFIX) and value is not None
    }

    metadata = ChunkMetadata(
        source=properties.get("source") or "",
        source_id=properties.get("source_id") or "",
        title=properties.get("title") or "",
        chunk_index=properties.get("chunk_index") or 0,
        total_chunks=properties.get("total_chunks") or 1,
        category=properties.get("category") or None,
        tags=decode_tags(properties.get("tags")),
        url=properties.get("url") or None,
        extra=extra,
    )
    return Chunk(id=chunk_id, content=content, metadata=metadata)
