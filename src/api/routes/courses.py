"""Course embedding endpoints: coverage status, lesson cleanup and reindexing."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, HTTPException

from src.api.models import DeleteEmbeddingsResponse, EmbeddingStatusResponse, LessonCoverage, ReindexResponse
from src.ingestion.errors import ProviderError, StorageError
from src.ingestion.reindex import fetch_course_lessons, reindex_course, transcript_source
from src.ingestion.storage import EmbeddingStore, get_supabase_client

router = APIRouter()


def _lesson_coverage(lesson: dict[str, Any], counts: dict[str, int]) -> LessonCoverage:
    source = transcript_source(lesson)
    embedding_count = counts.get(str(lesson["id"]), 0)
    return LessonCoverage(
        id=str(lesson["id"]),
        title=lesson.get("title"),
        module=lesson.get("module"),
        has_transcript=source != "none",
        transcript_source=source,
        embedding_count=embedding_count,
        needs_reindex=source != "none" and embedding_count == 0,
    )


@router.get("/api/courses/{course_id}/embedding-status", response_model=EmbeddingStatusResponse)
async def embedding_status(course_id: int) -> EmbeddingStatusResponse:
    """Per-lesson transcript and embedding coverage, for spotting lessons that need reindexing."""
    client = get_supabase_client()
    store = EmbeddingStore(client)
    try:
        lessons = fetch_course_lessons(client, course_id)
        counts = store.count_by_lesson(course_id)
        total = store.total_records(course_id)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    by_lesson = {str(lesson_id): n for lesson_id, n in counts.items() if lesson_id is not None}
    coverage = [_lesson_coverage(lesson, by_lesson) for lesson in lessons]
    with_embeddings = sum(1 for c in coverage if c.embedding_count > 0)

    return EmbeddingStatusResponse(
        course_id=course_id,
        total_embeddings=total,
        course_level_embeddings=counts.get(None, 0),
        total_lessons=len(coverage),
        lessons_with_transcript=sum(1 for c in coverage if c.has_transcript),
        lessons_with_embeddings=with_embeddings,
        lessons_needing_reindex=sum(1 for c in coverage if c.needs_reindex),
        coverage=f"{round(with_embeddings / len(coverage) * 100)}%" if coverage else "N/A",
        lessons=coverage,
    )


@router.delete(
    "/api/courses/{course_id}/lessons/{lesson_id}/embeddings",
    response_model=DeleteEmbeddingsResponse,
)
async def delete_lesson_embeddings(course_id: int, lesson_id: str) -> DeleteEmbeddingsResponse:
    """Remove a lesson's transcript embeddings (e.g. when the lesson is deleted)."""
    store = EmbeddingStore(get_supabase_client())
    try:
        deleted = store.delete_records(course_id, lesson_id)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc

    return DeleteEmbeddingsResponse(course_id=course_id, lesson_id=lesson_id, deleted=deleted)


@router.post("/api/courses/{course_id}/reindex", response_model=ReindexResponse)
async def reindex(course_id: int) -> ReindexResponse:
    """Rebuild all lesson embeddings for a course from the current transcripts."""
    try:
        summary = await asyncio.to_thread(reindex_course, course_id)
    except StorageError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ProviderError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return ReindexResponse(
        course_id=summary.course_id,
        lessons_processed=summary.lessons_processed,
        lessons_skipped=summary.lessons_skipped,
        embeddings_created=summary.embeddings_created,
        errors=summary.errors,
    )
