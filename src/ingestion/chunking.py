"""Sentence-aligned chunking of lesson transcripts.

Sentence boundaries are detected with a regex (terminal ``.``, ``?`` or ``!``
followed by whitespace).  This is a heuristic: abbreviations such as
"Dr. Smith" or "e.g. this" produce extra boundaries.  For retrieval chunking
approximate boundaries are good enough.
"""

from __future__ import annotations

import re
from collections.abc import Iterator

from src.ingestion.errors import ValidationError
from src.ingestion.models import TextChunk

DEFAULT_MAX_CHUNK_SIZE = 1000

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.?!])\s+")


def split_sentences(text: str) -> list[str]:
    """Split *text* into sentences, dropping empty pieces."""
    return [s for s in _SENTENCE_BOUNDARY_RE.split(text.strip()) if s]


def iter_chunks(text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> Iterator[TextChunk]:
    """Lazily yield sentence-aligned chunks of at most *max_chunk_size* characters.

    Sentences are accumulated greedily and joined with single spaces.  A
    sentence that is longer than *max_chunk_size* on its own is emitted whole
    as its own chunk; text is never cut mid-sentence.

    Args:
        text: Raw transcript text.
        max_chunk_size: Target upper bound on chunk length, in characters.

    Yields:
        :class:`TextChunk` instances with ordinals starting at 1.

    Raises:
        ValidationError: If *max_chunk_size* is not positive.
    """
    if max_chunk_size <= 0:
        raise ValidationError(f"max_chunk_size must be positive, got {max_chunk_size}")

    ordinal = 0
    current = ""
    for sentence in split_sentences(text):
        candidate = f"{current} {sentence}" if current else sentence
        if current and len(candidate) > max_chunk_size:
            ordinal += 1
            yield TextChunk(text=current, ordinal=ordinal)
            current = sentence
        else:
            current = candidate

    if current:
        yield TextChunk(text=current, ordinal=ordinal + 1)


def chunk_text(text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> list[TextChunk]:
    """Eager form of :func:`iter_chunks`."""
    return list(iter_chunks(text, max_chunk_size))
