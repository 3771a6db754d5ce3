"""Ingest endpoint: embed a lesson transcript into the course's search index."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, HTTPException, Response

from src.api.models import IngestTranscriptRequest, IngestTranscriptResponse
from src.config import settings
from src.ingestion.errors import ValidationError
from src.ingestion.models import IngestionRequest, IngestionStatus
from src.ingestion.pipeline import ingest_transcript

router = APIRouter()

# Partial ingestion is surfaced distinctly so callers offer a retry-failed-chunks action.
_STATUS_CODES = {
    IngestionStatus.COMPLETED: 200,
    IngestionStatus.PARTIALLY_FAILED: 207,
    IngestionStatus.FAILED: 500,
}


@router.post("/api/ingest-transcript", response_model=IngestTranscriptResponse)
async def ingest(body: IngestTranscriptRequest, response: Response) -> IngestTranscriptResponse:
    """Chunk, embed and store a transcript for a course (and optionally a lesson).

    Returns 200 when every chunk was stored, 207 when some chunks failed
    (the body lists them by ordinal so they can be retried with ``ordinals``),
    and 500 when nothing could be ingested.
    """
    request = IngestionRequest(
        transcript=body.transcript,
        course_id=body.course_id,
        lesson_id=body.lesson_id,
        ordinals=tuple(body.ordinals) if body.ordinals is not None else None,
    )

    # The pipeline blocks on provider and database I/O; run it in a thread
    # so the event loop stays responsive.
    try:
        result = await asyncio.to_thread(
            ingest_transcript,
            request,
            timeout=settings.ingest_timeout_seconds,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    response.status_code = _STATUS_CODES[result.status]
    return IngestTranscriptResponse.from_result(result)
