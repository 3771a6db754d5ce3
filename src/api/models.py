"""Pydantic request/response schemas for the Course Embeddings API.

Wire format is camelCase (``courseId``, ``chunksProcessed``) to match the
platform's existing callers; snake_case field names are accepted too.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.ingestion.models import IngestionResult, IngestionStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class IngestTranscriptRequest(_CamelModel):
    """Request body for the /api/ingest-transcript endpoint."""

    transcript: str
    course_id: int
    lesson_id: str | None = None
    ordinals: list[int] | None = Field(default=None, description="Only (re)ingest these chunk ordinals.")


class ChunkFailureModel(_CamelModel):
    ordinal: int
    error: str


class IngestTranscriptResponse(_CamelModel):
    """Response body for the /api/ingest-transcript endpoint."""

    success: bool
    status: IngestionStatus
    chunks_processed: int
    chunks_total: int
    failures: list[ChunkFailureModel] = []
    skipped: list[int] = []
    reason: str | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: IngestionResult) -> IngestTranscriptResponse:
        return cls(
            success=result.success,
            status=result.status,
            chunks_processed=result.chunks_processed,
            chunks_total=result.chunks_total,
            failures=[ChunkFailureModel(ordinal=f.ordinal, error=f.error) for f in result.failures],
            skipped=result.skipped,
            reason=result.reason,
            error=result.error,
        )


class LessonCoverage(_CamelModel):
    """Transcript and embedding state of one lesson."""

    id: str
    title: str | None = None
    module: str | None = None
    has_transcript: bool
    transcript_source: str
    embedding_count: int
    needs_reindex: bool


class EmbeddingStatusResponse(_CamelModel):
    """Embedding coverage for one course.

    ``coverage`` is the share of lessons with at least one embedding
    (e.g. ``"67%"``), or ``"N/A"`` for a course without lessons.
    """

    course_id: int
    total_embeddings: int
    course_level_embeddings: int = 0
    total_lessons: int = 0
    lessons_with_transcript: int = 0
    lessons_with_embeddings: int = 0
    lessons_needing_reindex: int = 0
    coverage: str = "N/A"
    lessons: list[LessonCoverage] = []


class DeleteEmbeddingsResponse(_CamelModel):
    course_id: int
    lesson_id: str
    deleted: int


class ReindexResponse(_CamelModel):
    course_id: int
    lessons_processed: int
    lessons_skipped: int
    embeddings_created: int
    errors: list[str] = []


class SearchRequest(_CamelModel):
    """Request body for the /api/search endpoint."""

    query: str
    course_id: int
    lesson_id: str | None = None
    top_k: int = Field(default=5, ge=1, le=50)
    match_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)


class SearchMatch(_CamelModel):
    """A single retrieved transcript chunk, kept verbatim for citation."""

    id: str | None = None
    lesson_id: str | None = None
    content: str
    similarity: float | None = None
    metadata: dict[str, Any] = {}


class SearchResponse(_CamelModel):
    matches: list[SearchMatch]
