"""End-to-end ingestion pipeline: segment -> (embed -> store) per chunk."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from src.config import settings
from src.ingestion.chunking import chunk_text
from src.ingestion.embeddings import EmbeddingProvider, generate_embedding, get_embedding_provider
from src.ingestion.errors import (
    TRANSIENT_ERRORS,
    DimensionMismatchError,
    IngestionCancelled,
    IngestionError,
    StorageError,
    ValidationError,
)
from src.ingestion.models import (
    ChunkFailure,
    EmbeddingRecord,
    IngestionRequest,
    IngestionResult,
    IngestionStatus,
    TextChunk,
    chunk_record_id,
)
from src.ingestion.storage import TRANSCRIPT_SOURCE, EmbeddingStore, get_supabase_client
from src.pipeline_config import PipelineConfig, ReingestPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Granularity of cancellation checks while sleeping between retries.
_POLL_SECONDS = 0.05


class _StopSignal:
    """Combines caller cancellation, a deadline, and fatal-error shutdown."""

    def __init__(self, cancel_event: threading.Event | None, timeout: float | None) -> None:
        self._cancel_event = cancel_event
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._fatal = threading.Event()
        self.fatal_reason: str | None = None
        self.fatal_error: str | None = None

    def cancelled(self) -> bool:
        if self._cancel_event is not None and self._cancel_event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def is_set(self) -> bool:
        return self._fatal.is_set() or self.cancelled()

    def abort(self, reason: str, error: str) -> None:
        if not self._fatal.is_set():
            self.fatal_reason = reason
            self.fatal_error = error
            self._fatal.set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*; return True early if the run was stopped."""
        end = time.monotonic() + seconds
        while not self.is_set():
            remaining = end - time.monotonic()
            if remaining <= 0:
                return False
            self._fatal.wait(min(remaining, _POLL_SECONDS))
        return True


class _ResultCollector:
    """Serialises per-chunk outcomes coming from worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._processed = 0
        self._failures: list[ChunkFailure] = []
        self._skipped: list[int] = []

    def succeeded(self, ordinal: int) -> None:
        with self._lock:
            self._processed += 1

    def failed(self, ordinal: int, error: str) -> None:
        with self._lock:
            self._failures.append(ChunkFailure(ordinal=ordinal, error=error))

    def skip(self, ordinal: int) -> None:
        with self._lock:
            self._skipped.append(ordinal)

    def snapshot(self) -> tuple[int, list[ChunkFailure], list[int]]:
        with self._lock:
            return (
                self._processed,
                sorted(self._failures, key=lambda f: f.ordinal),
                sorted(self._skipped),
            )


def _validate_request(request: IngestionRequest) -> None:
    course_id = request.course_id
    if course_id is None or isinstance(course_id, bool) or not isinstance(course_id, int):
        raise ValidationError("courseId is required and must be an integer")
    if request.transcript is None or not isinstance(request.transcript, str):
        raise ValidationError("transcript is required and must be a string")
    if request.ordinals is not None and any(o < 1 for o in request.ordinals):
        raise ValidationError("chunk ordinals start at 1")


def _with_retries(
    operation: Callable[[], T],
    *,
    ordinal: int,
    step: str,
    config: PipelineConfig,
    signal: _StopSignal,
) -> T:
    """Run *operation*, retrying transient errors with exponential backoff."""
    attempt = 1
    while True:
        try:
            return operation()
        except TRANSIENT_ERRORS as exc:
            if attempt >= config.max_attempts:
                raise
            delay = config.backoff_seconds * 2 ** (attempt - 1)
            logger.warning(
                "Chunk %d %s failed (attempt %d/%d), retrying in %.2fs: %s",
                ordinal,
                step,
                attempt,
                config.max_attempts,
                delay,
                exc,
            )
            if signal.wait(delay):
                raise IngestionCancelled(f"Cancelled while retrying {step}: {exc}") from exc
            attempt += 1


def _process_chunk(
    chunk: TextChunk,
    request: IngestionRequest,
    provider: EmbeddingProvider,
    store: EmbeddingStore,
    config: PipelineConfig,
    signal: _StopSignal,
) -> None:
    embedding = _with_retries(
        lambda: generate_embedding(provider, chunk.text),
        ordinal=chunk.ordinal,
        step="embedding",
        config=config,
        signal=signal,
    )
    record = EmbeddingRecord(
        course_id=request.course_id,
        lesson_id=request.lesson_id,
        content=chunk.text,
        embedding=embedding,
        metadata={
            "source": TRANSCRIPT_SOURCE,
            "chunk_ordinal": chunk.ordinal,
            "embedding_model": provider.model,
        },
        id=chunk_record_id(request.course_id, request.lesson_id, chunk.ordinal, chunk.text),
    )
    _with_retries(
        lambda: store.write(record),
        ordinal=chunk.ordinal,
        step="storage",
        config=config,
        signal=signal,
    )


def _run_chunk(
    chunk: TextChunk,
    request: IngestionRequest,
    provider: EmbeddingProvider,
    store: EmbeddingStore,
    config: PipelineConfig,
    signal: _StopSignal,
    collector: _ResultCollector,
) -> None:
    if signal.is_set():
        collector.skip(chunk.ordinal)
        return

    try:
        _process_chunk(chunk, request, provider, store, config, signal)
    except DimensionMismatchError as exc:
        logger.error(
            "Embedding dimension mismatch for course %s chunk %d, aborting run: %s",
            request.course_id,
            chunk.ordinal,
            exc,
        )
        collector.failed(chunk.ordinal, str(exc))
        signal.abort("dimension_mismatch", str(exc))
    except IngestionCancelled as exc:
        logger.info("Chunk %d for course %s abandoned: %s", chunk.ordinal, request.course_id, exc)
        collector.skip(chunk.ordinal)
    except IngestionError as exc:
        logger.warning("Chunk %d for course %s failed: %s", chunk.ordinal, request.course_id, exc)
        collector.failed(chunk.ordinal, str(exc))
    else:
        collector.succeeded(chunk.ordinal)


def _final_status(
    signal: _StopSignal,
    processed: int,
    failures: list[ChunkFailure],
    skipped: list[int],
) -> tuple[IngestionStatus, str | None, str | None]:
    if signal.fatal_reason is not None:
        return IngestionStatus.FAILED, signal.fatal_reason, signal.fatal_error
    if skipped:
        return IngestionStatus.FAILED, "cancelled", None
    if failures and processed == 0:
        return IngestionStatus.FAILED, "all_chunks_failed", failures[0].error
    if failures:
        return IngestionStatus.PARTIALLY_FAILED, None, None
    return IngestionStatus.COMPLETED, None, None


def ingest_transcript(
    request: IngestionRequest,
    *,
    provider: EmbeddingProvider | None = None,
    store: EmbeddingStore | None = None,
    config: PipelineConfig | None = None,
    cancel_event: threading.Event | None = None,
    timeout: float | None = None,
) -> IngestionResult:
    """Full ingestion pipeline: segment -> embed -> store for every chunk.

    One failing chunk does not abort the others; transient provider and
    storage errors are retried before a chunk is counted as failed.

    Args:
        request: Transcript, course and optional lesson to ingest.
        provider: Embedding backend (defaults to the configured provider).
        store: Embedding store (defaults to Supabase).
        config: Chunking, concurrency and retry settings.
        cancel_event: Set by the caller to stop dispatching new chunks.
        timeout: Seconds after which the run behaves as if cancelled.

    Returns:
        An :class:`IngestionResult` describing every chunk's outcome.

    Raises:
        ValidationError: If the request is missing ``course_id`` or ``transcript``.
    """
    _validate_request(request)
    config = config or PipelineConfig.from_settings(settings)

    try:
        chunks = chunk_text(request.transcript, config.max_chunk_size)
    except Exception as exc:
        logger.exception("Segmentation failed for course %s lesson %s", request.course_id, request.lesson_id)
        return IngestionResult(status=IngestionStatus.FAILED, reason="segmentation_failed", error=str(exc))

    if request.ordinals is not None:
        wanted = set(request.ordinals)
        chunks = [c for c in chunks if c.ordinal in wanted]

    store = store or EmbeddingStore(get_supabase_client())

    # A transcript that is now empty still supersedes what was stored for it.
    if config.reingest_policy is ReingestPolicy.REPLACE and request.ordinals is None:
        try:
            store.delete_records(request.course_id, request.lesson_id)
        except StorageError as exc:
            logger.exception("Could not clear previous embeddings for course %s", request.course_id)
            return IngestionResult(
                status=IngestionStatus.FAILED,
                chunks_total=len(chunks),
                skipped=[c.ordinal for c in chunks],
                reason="storage_failed",
                error=str(exc),
            )

    if not chunks:
        logger.info("No chunks to ingest for course %s lesson %s", request.course_id, request.lesson_id)
        return IngestionResult(status=IngestionStatus.COMPLETED)

    provider = provider or get_embedding_provider(settings)
    logger.info(
        "Processing %d chunks for course %s lesson %s", len(chunks), request.course_id, request.lesson_id
    )

    signal = _StopSignal(cancel_event, timeout)
    collector = _ResultCollector()
    workers = min(config.concurrency, len(chunks))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as pool:
        futures = [
            pool.submit(_run_chunk, chunk, request, provider, store, config, signal, collector)
            for chunk in chunks
        ]
    for future in futures:
        future.result()

    processed, failures, skipped = collector.snapshot()
    status, reason, error = _final_status(signal, processed, failures, skipped)
    logger.info(
        "Ingestion for course %s lesson %s finished %s: %d/%d chunks stored, %d failed, %d skipped",
        request.course_id,
        request.lesson_id,
        status.value,
        processed,
        len(chunks),
        len(failures),
        len(skipped),
    )
    return IngestionResult(
        status=status,
        chunks_processed=processed,
        chunks_total=len(chunks),
        failures=failures,
        skipped=skipped,
        reason=reason,
        error=error,
    )
