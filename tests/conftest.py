"""Shared fixtures: deterministic embedding provider and in-memory embedding store."""

from __future__ import annotations

import hashlib
import threading
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from src.ingestion.errors import ProviderError, StorageError
from src.ingestion.models import EmbeddingRecord
from src.ingestion.storage import EmbeddingStore
from src.pipeline_config import PipelineConfig, ReingestPolicy

DIMENSIONS = 8


class FakeProvider:
    """Hash-based embeddings; fails for texts matched by *fail_when*.

    ``fail_times`` limits how many times a matching text fails before it
    starts succeeding (``None`` = always fail).
    """

    def __init__(
        self,
        dimensions: int = DIMENSIONS,
        fail_when: Callable[[str], bool] | None = None,
        fail_times: int | None = None,
        on_embed: Callable[[str], None] | None = None,
    ) -> None:
        self.model = "fake-embedding-001"
        self.dimensions = dimensions
        self._fail_when = fail_when
        self._fail_times = fail_times
        self._on_embed = on_embed
        self._lock = threading.Lock()
        self.calls: list[str] = []
        self._failures: dict[str, int] = {}

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.calls.append(text)
            should_fail = False
            if self._fail_when is not None and self._fail_when(text):
                count = self._failures.get(text, 0)
                if self._fail_times is None or count < self._fail_times:
                    self._failures[text] = count + 1
                    should_fail = True
        if self._on_embed is not None:
            self._on_embed(text)
        if should_fail:
            raise ProviderError(f"provider unavailable for {text[:20]!r}")
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        return [b / 255 for b in digest[: self.dimensions]]

    def calls_for(self, fragment: str) -> int:
        return sum(1 for c in self.calls if fragment in c)


class RecordingStore(EmbeddingStore):
    """EmbeddingStore that keeps rows in memory instead of calling Supabase."""

    def __init__(self, dimensions: int = DIMENSIONS, fail_when: Callable[[EmbeddingRecord], bool] | None = None) -> None:
        super().__init__(MagicMock(), dimensions=dimensions, table="course_embeddings")
        self._lock = threading.Lock()
        self._fail_when = fail_when
        self.records: list[EmbeddingRecord] = []
        self.deleted: list[tuple[int, str | None]] = []
        self.delete_error: StorageError | None = None

    def write(self, record: EmbeddingRecord) -> EmbeddingRecord:
        self.validate(record.embedding)
        if self._fail_when is not None and self._fail_when(record):
            raise StorageError("insert failed: connection reset")
        with self._lock:
            self.records.append(record)
        return record

    def delete_records(self, course_id: int, lesson_id: str | None = None) -> int:
        if self.delete_error is not None:
            raise self.delete_error
        self.deleted.append((course_id, lesson_id))
        return 0

    def stored_ordinals(self) -> list[int]:
        return sorted(r.metadata["chunk_ordinal"] for r in self.records)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def fast_config() -> PipelineConfig:
    """Tiny chunks, no backoff delay, replace policy."""
    return PipelineConfig(
        max_chunk_size=25,
        concurrency=1,
        max_attempts=3,
        backoff_seconds=0.0,
        reingest_policy=ReingestPolicy.REPLACE,
    )


@pytest.fixture
def five_chunk_transcript() -> str:
    # Each sentence fits in 25 characters, no two fit together.
    return " ".join(f"Chunk number {w}." for w in ["one", "two", "three", "four", "five"])
