"""Search endpoint: similarity search over a course's transcript embeddings."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException

from src.api.models import SearchMatch, SearchRequest, SearchResponse
from src.ingestion.errors import DimensionMismatchError, ProviderError, StorageError, ValidationError
from src.retrieval.search import search_course

router = APIRouter()


def _to_match(row: dict[str, Any]) -> SearchMatch:
    return SearchMatch(
        id=str(row["id"]) if row.get("id") is not None else None,
        lesson_id=row.get("lesson_id"),
        content=row.get("content", ""),
        similarity=row.get("similarity"),
        metadata=row.get("metadata") or {},
    )


@router.post("/api/search", response_model=SearchResponse)
async def search(request: SearchRequest) -> SearchResponse:
    """Return the transcript chunks most similar to ``query`` within a course."""
    try:
        rows = search_course(
            request.query,
            request.course_id,
            request.top_k,
            lesson_id=request.lesson_id,
            match_threshold=request.match_threshold,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except ProviderError as exc:
        raise HTTPException(status_code=502, detail=f"Embedding provider unavailable: {exc}") from exc
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except DimensionMismatchError as exc:
        # Query model and stored vectors disagree: a configuration problem.
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return SearchResponse(matches=[_to_match(r) for r in rows])
