"""Similarity search over course transcript embeddings."""

from __future__ import annotations

from typing import Any, cast

import httpx
from postgrest.exceptions import APIError

from src.config import settings
from src.ingestion.embeddings import EmbeddingProvider, generate_embedding, get_embedding_provider
from src.ingestion.errors import DimensionMismatchError, StorageError, ValidationError
from src.ingestion.storage import get_supabase_client

MATCH_FUNCTION = "match_course_embeddings"


def find_similar(
    course_id: int,
    query_embedding: list[float],
    top_k: int = 5,
    *,
    lesson_id: str | None = None,
    match_threshold: float = 0.7,
    dimensions: int | None = None,
) -> list[dict[str, Any]]:
    """Nearest-neighbour search scoped to a course via the ``match_course_embeddings`` RPC.

    Args:
        course_id: Course whose embeddings are searched.
        query_embedding: Vector of the platform dimensionality.
        top_k: Maximum number of matches.
        lesson_id: Optional lesson filter, applied Python-side since the SQL
            function only filters by course.
        match_threshold: Minimum cosine similarity.
        dimensions: Expected vector length (defaults to the configured one).

    Returns:
        Matching rows (``id``, ``lesson_id``, ``content``, ``metadata``,
        ``similarity``), most similar first.
    """
    if top_k < 1:
        raise ValidationError(f"top_k must be at least 1, got {top_k}")
    expected = dimensions or settings.embedding_dimensions
    if len(query_embedding) != expected:
        raise DimensionMismatchError(expected=expected, actual=len(query_embedding))

    # Fetch extra results when filtering so we still return enough after pruning
    fetch_count = top_k * 3 if lesson_id else top_k

    client = get_supabase_client()
    try:
        result = client.rpc(
            MATCH_FUNCTION,
            {
                "query_embedding": query_embedding,
                "match_threshold": match_threshold,
                "match_count": fetch_count,
                "filter_course_id": course_id,
            },
        ).execute()
    except (APIError, httpx.HTTPError) as exc:
        raise StorageError(f"{MATCH_FUNCTION} failed: {exc}") from exc

    # Supabase .data is typed as JSON (broad union); cast to concrete type.
    rows = cast(list[dict[str, Any]], result.data or [])
    if lesson_id:
        rows = [r for r in rows if r.get("lesson_id") == lesson_id]
    return rows[:top_k]


def search_course(
    query: str,
    course_id: int,
    top_k: int = 5,
    *,
    lesson_id: str | None = None,
    match_threshold: float = 0.7,
    provider: EmbeddingProvider | None = None,
) -> list[dict[str, Any]]:
    """Embed *query* with the configured provider and run :func:`find_similar`."""
    provider = provider or get_embedding_provider(settings, purpose="query")
    embedding = generate_embedding(provider, query)
    return find_similar(
        course_id,
        embedding,
        top_k,
        lesson_id=lesson_id,
        match_threshold=match_threshold,
    )
