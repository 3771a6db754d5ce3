"""Supabase storage for course transcript embeddings."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, cast

import httpx
from postgrest import CountMethod
from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.config import settings
from src.ingestion.errors import DimensionMismatchError, StorageError
from src.ingestion.models import EmbeddingRecord

logger = logging.getLogger(__name__)

TRANSCRIPT_SOURCE = "transcript"


def get_supabase_client() -> Client:
    """Create and return a Supabase client from settings."""
    return create_client(settings.supabase_url, settings.supabase_key)


class EmbeddingStore:
    """Writes :class:`EmbeddingRecord` rows and answers coverage questions.

    Every write is a single-row upsert keyed on the record id. A retried
    write whose first attempt committed (response lost) overwrites the same
    row instead of adding a second one.
    """

    def __init__(
        self,
        client: Client,
        dimensions: int | None = None,
        table: str | None = None,
    ) -> None:
        self._client = client
        self.dimensions = dimensions or settings.embedding_dimensions
        self.table = table or settings.embeddings_table

    def validate(self, embedding: list[float]) -> None:
        if len(embedding) != self.dimensions:
            raise DimensionMismatchError(expected=self.dimensions, actual=len(embedding))

    def write(self, record: EmbeddingRecord) -> EmbeddingRecord:
        """Persist *record* and return it with its stored ``id``.

        Records without an ``id`` get one from the database.

        Raises:
            DimensionMismatchError: Before any I/O, if the vector has the wrong length.
            StorageError: If the upsert fails.
        """
        self.validate(record.embedding)
        try:
            result = self._client.table(self.table).upsert(record.to_row(), on_conflict="id").execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StorageError(f"Upsert into {self.table} failed: {exc}") from exc

        rows = cast(list[dict[str, Any]], result.data or [])
        if rows and rows[0].get("id") is not None:
            record.id = str(rows[0]["id"])
        return record

    def delete_records(self, course_id: int, lesson_id: str | None = None) -> int:
        """Delete transcript records for a lesson, or course-level ones if *lesson_id* is None.

        Returns:
            Number of rows deleted.
        """
        query = (
            self._client.table(self.table)
            .delete()
            .eq("course_id", course_id)
            .eq("metadata->>source", TRANSCRIPT_SOURCE)
        )
        query = query.eq("lesson_id", lesson_id) if lesson_id is not None else query.is_("lesson_id", "null")
        try:
            result = query.execute()
        except (APIError, httpx.HTTPError) as exc:
            raise StorageError(f"Delete from {self.table} failed: {exc}") from exc

        deleted = len(result.data or [])
        logger.info(
            "Deleted %d transcript embeddings for course %s lesson %s", deleted, course_id, lesson_id
        )
        return deleted

    def count_by_lesson(self, course_id: int, page_size: int = 1000) -> dict[str | None, int]:
        """Return embedding counts per lesson for a course (``None`` = course-level).

        PostgREST caps each response at its ``max-rows`` setting, so rows are
        read page by page until an empty page comes back.
        """
        counts: Counter[str | None] = Counter()
        start = 0
        while True:
            try:
                result = (
                    self._client.table(self.table)
                    .select("lesson_id")
                    .eq("course_id", course_id)
                    .order("id")
                    .range(start, start + page_size - 1)
                    .execute()
                )
            except (APIError, httpx.HTTPError) as exc:
                raise StorageError(f"Select from {self.table} failed: {exc}") from exc

            rows = cast(list[dict[str, Any]], result.data or [])
            if not rows:
                return dict(counts)
            counts.update(r.get("lesson_id") for r in rows)
            # Advance by what was returned; the server cap may be below page_size.
            start += len(rows)

    def total_records(self, course_id: int) -> int:
        """Exact number of embedding rows stored for a course."""
        try:
            result = (
                self._client.table(self.table)
                .select("id", count=CountMethod.exact)
                .eq("course_id", course_id)
                .execute()
            )
        except (APIError, httpx.HTTPError) as exc:
            raise StorageError(f"Count on {self.table} failed: {exc}") from exc
        return result.count or 0
