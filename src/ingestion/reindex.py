"""Rebuild every lesson's transcript embeddings for a course."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, cast

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from src.config import settings
from src.ingestion.embeddings import EmbeddingProvider, get_embedding_provider
from src.ingestion.errors import StorageError
from src.ingestion.models import IngestionRequest, IngestionStatus
from src.ingestion.pipeline import ingest_transcript
from src.ingestion.storage import EmbeddingStore, get_supabase_client
from src.pipeline_config import PipelineConfig, ReingestPolicy

logger = logging.getLogger(__name__)

_LESSON_FIELDS = "id, title, ai_transcript, user_transcript, content"


@dataclass
class ReindexSummary:
    course_id: int
    lessons_processed: int = 0
    lessons_skipped: int = 0
    embeddings_created: int = 0
    errors: list[str] = field(default_factory=list)


# Lesson fields in priority order, with the source label reported for each.
_TRANSCRIPT_FIELDS = (("user_transcript", "user"), ("ai_transcript", "ai"), ("content", "legacy"))


def _pick_transcript(lesson: dict[str, Any]) -> tuple[str, str] | None:
    for key, source in _TRANSCRIPT_FIELDS:
        value = lesson.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip(), source
    return None


def resolve_transcript(lesson: dict[str, Any]) -> str | None:
    """Pick the best transcript for a lesson.

    A user-edited transcript wins over the AI-generated one, which wins over
    the legacy ``content`` field.  Blank values are ignored.
    """
    picked = _pick_transcript(lesson)
    return picked[0] if picked else None


def transcript_source(lesson: dict[str, Any]) -> str:
    """Where :func:`resolve_transcript` reads from: ``user``, ``ai``, ``legacy`` or ``none``."""
    picked = _pick_transcript(lesson)
    return picked[1] if picked else "none"


def fetch_course_lessons(client: Client, course_id: int) -> list[dict[str, Any]]:
    """Return the course's lessons, in module order, with their transcript fields.

    Each lesson dict also carries its module title under ``module``.
    """
    try:
        result = (
            client.table("modules")
            .select(f"id, title, lessons({_LESSON_FIELDS})")
            .eq("course_id", course_id)
            .order("order")
            .execute()
        )
    except (APIError, httpx.HTTPError) as exc:
        raise StorageError(f"Could not load lessons for course {course_id}: {exc}") from exc

    lessons: list[dict[str, Any]] = []
    for module in cast(list[dict[str, Any]], result.data or []):
        lessons.extend({**lesson, "module": module.get("title")} for lesson in module.get("lessons") or [])
    return lessons


def reindex_course(
    course_id: int,
    *,
    client: Client | None = None,
    provider: EmbeddingProvider | None = None,
    config: PipelineConfig | None = None,
) -> ReindexSummary:
    """Re-ingest every lesson transcript of a course, replacing stale embeddings.

    Lessons without any transcript are skipped.  A lesson whose ingestion
    fails or partially fails is still counted as processed and its error is
    reported in the summary.
    """
    client = client or get_supabase_client()
    provider = provider or get_embedding_provider()
    store = EmbeddingStore(client)
    base = config or PipelineConfig.from_settings(settings)
    # Reindexing always supersedes what is stored.
    config = replace(base, reingest_policy=ReingestPolicy.REPLACE)

    summary = ReindexSummary(course_id=course_id)
    logger.info("Reindexing embeddings for course %s", course_id)

    for lesson in fetch_course_lessons(client, course_id):
        transcript = resolve_transcript(lesson)
        if transcript is None:
            summary.lessons_skipped += 1
            continue

        title = lesson.get("title") or lesson.get("id")
        result = ingest_transcript(
            IngestionRequest(transcript=transcript, course_id=course_id, lesson_id=str(lesson["id"])),
            provider=provider,
            store=store,
            config=config,
        )
        summary.lessons_processed += 1
        summary.embeddings_created += result.chunks_processed
        if result.status is not IngestionStatus.COMPLETED:
            failed = ", ".join(str(o) for o in result.failed_ordinals) or "none"
            summary.errors.append(
                f"{title}: {result.status.value} ({result.reason or 'chunk failures'}; failed chunks: {failed})"
            )
        logger.info("Created %d embeddings for lesson %r", result.chunks_processed, title)

    logger.info(
        "Reindex of course %s complete: %d processed, %d skipped, %d embeddings",
        course_id,
        summary.lessons_processed,
        summary.lessons_skipped,
        summary.embeddings_created,
    )
    return summary
