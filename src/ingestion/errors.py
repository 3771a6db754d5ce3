"""Error taxonomy for the transcript ingestion pipeline."""

from __future__ import annotations


class IngestionError(Exception):
    """Base class for ingestion failures."""


class ValidationError(IngestionError):
    """Bad or missing input. Never retried."""


class ProviderError(IngestionError):
    """The embedding provider call failed (network, quota, malformed response)."""


class StorageError(IngestionError):
    """Writing to or reading from the embedding store failed."""


class DimensionMismatchError(IngestionError):
    """An embedding does not have the platform-wide dimensionality.

    Signals a model/config mismatch; writing such a vector would corrupt
    similarity comparisons, so the record is rejected before it is sent.
    """

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(f"Embedding has {actual} dimensions, expected {expected}")


class IngestionCancelled(IngestionError):
    """The caller cancelled the run or its deadline passed."""


TRANSIENT_ERRORS: tuple[type[IngestionError], ...] = (ProviderError, StorageError)
