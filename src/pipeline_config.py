"""Pipeline configuration: strategy enums and PipelineConfig dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.config import Settings


class EmbeddingProviderName(str, Enum):
    """Embedding backends the generator can be wired to."""

    GEMINI = "gemini"
    OPENAI = "openai"


class ReingestPolicy(str, Enum):
    """What happens to existing records when a lesson is ingested again.

    ``REPLACE`` deletes the lesson's transcript records before writing the new
    ones.  ``APPEND`` leaves them in place.
    """

    REPLACE = "replace"
    APPEND = "append"


@dataclass(frozen=True)
class PipelineConfig:
    """Immutable configuration for one ingestion run.

    Defaults mirror the platform's production behaviour (1000-character
    chunks, four concurrent chunk pipelines, three attempts per chunk).
    """

    max_chunk_size: int = 1000
    concurrency: int = 4
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    reingest_policy: ReingestPolicy = ReingestPolicy.REPLACE

    def __post_init__(self) -> None:
        if self.max_chunk_size <= 0:
            raise ValueError(f"max_chunk_size must be positive, got {self.max_chunk_size}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    @classmethod
    def from_settings(cls, settings: Settings) -> PipelineConfig:
        return cls(
            max_chunk_size=settings.max_chunk_size,
            concurrency=settings.ingest_concurrency,
            max_attempts=settings.ingest_max_attempts,
            backoff_seconds=settings.ingest_backoff_seconds,
            reingest_policy=ReingestPolicy(settings.reingest_policy),
        )
