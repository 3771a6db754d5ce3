"""Data models for the ingestion pipeline."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class IngestionRequest:
    """One transcript to ingest for a course (and optionally a lesson).

    ``ordinals`` restricts the run to specific chunks, which lets a caller
    re-ingest only the chunks that failed last time.
    """

    transcript: str
    course_id: int
    lesson_id: str | None = None
    ordinals: tuple[int, ...] | None = None


@dataclass(frozen=True)
class TextChunk:
    """A run of whole sentences from a transcript. ``ordinal`` is 1-based."""

    text: str
    ordinal: int


def _default_metadata() -> dict[str, Any]:
    return {"source": "transcript"}


def chunk_record_id(course_id: int, lesson_id: str | None, ordinal: int, content: str) -> str:
    """Stable row id for a chunk, so re-sending the same write upserts instead of duplicating."""
    key = f"course-embeddings:{course_id}:{lesson_id or ''}:{ordinal}:{content}"
    return str(uuid.uuid5(uuid.NAMESPACE_URL, key))


@dataclass
class EmbeddingRecord:
    """A chunk's durable, searchable form (one row in ``course_embeddings``)."""

    course_id: int
    content: str
    embedding: list[float]
    lesson_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=_default_metadata)
    id: str | None = None

    def to_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {
            "course_id": self.course_id,
            "lesson_id": self.lesson_id,
            "content": self.content,
            "embedding": self.embedding,
            "metadata": self.metadata,
        }
        if self.id is not None:
            row["id"] = self.id
        return row


class IngestionStatus(str, Enum):
    """Terminal state of an ingestion run."""

    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


@dataclass(frozen=True)
class ChunkFailure:
    ordinal: int
    error: str


@dataclass
class IngestionResult:
    """Outcome of one ingestion run.

    ``failures`` and ``skipped`` are ordered by ordinal.  ``reason`` is set
    for runs that ended early or failed as a whole, with ``error`` carrying
    the underlying message when there is one.
    """

    status: IngestionStatus
    chunks_processed: int = 0
    chunks_total: int = 0
    failures: list[ChunkFailure] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    reason: str | None = None
    error: str | None = None

    @property
    def success(self) -> bool:
        return self.status is IngestionStatus.COMPLETED

    @property
    def failed_ordinals(self) -> list[int]:
        return [f.ordinal for f in self.failures]
