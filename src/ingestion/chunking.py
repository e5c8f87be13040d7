"""Chunking of speaker segments into retrieval-sized pieces."""

from __future__ import annotations

import logging
import math
import re

from src.ingestion.models import Chunk, SpeakerSegment
from src.pipeline_config import ChunkingConfig

logger = logging.getLogger(__name__)

# Rough estimate: ~4 characters per token for English.  Not a tokenizer;
# existing indexes depend on the boundaries this produces.
CHARS_PER_TOKEN = 4

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")


def estimate_tokens(text: str) -> int:
    """Estimate token count as ``ceil(len / 4)``."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def chunk_segments(
    segments: list[SpeakerSegment],
    config: ChunkingConfig | None = None,
) -> list[Chunk]:
    """Split speaker segments into chunks for embedding.

    Segments are natural boundaries: a segment within ``config.max_tokens``
    becomes one chunk, a longer one is split with overlap.  Sub-chunk
    timestamps are interpolated linearly across the segment's duration since
    word-level timing is not available, so they are approximate.

    Args:
        segments: Ordered speaker segments of one transcript.
        config: Chunk sizing; defaults to 500 / 50 / 20 tokens.

    Returns:
        Chunks in transcript order.  Empty segments contribute nothing.
    """
    config = config or ChunkingConfig()
    chunks: list[Chunk] = []

    for segment_index, segment in enumerate(segments):
        if not segment.text.strip():
            continue

        if estimate_tokens(segment.text) <= config.max_tokens:
            chunks.append(
                Chunk(
                    segment_index=segment_index,
                    chunk_index=0,
                    total_chunks=1,
                    speaker=segment.speaker,
                    start_time=segment.start_time,
                    end_time=segment.end_time,
                    text=segment.text,
                )
            )
            continue

        pieces = split_with_overlap(segment.text, config.max_tokens, config.overlap_tokens)
        duration = segment.end_time - segment.start_time
        total = len(pieces)

        for chunk_index, piece in enumerate(pieces):
            chunks.append(
                Chunk(
                    segment_index=segment_index,
                    chunk_index=chunk_index,
                    total_chunks=total,
                    speaker=segment.speaker,
                    start_time=_boundary(segment, duration, chunk_index, total),
                    end_time=_boundary(segment, duration, chunk_index + 1, total),
                    text=piece,
                )
            )

    logger.info("Chunked %d segments into %d chunks", len(segments), len(chunks))
    return chunks


def _boundary(segment: SpeakerSegment, duration: float, position: int, total: int) -> float:
    """Timestamp of the ``position``-th of ``total`` even splits of a segment.

    The outer boundaries are the segment's own timestamps, never a
    recomputed float.
    """
    if position == 0:
        return segment.start_time
    if position == total:
        return segment.end_time
    return segment.start_time + duration * position / total


def split_with_overlap(text: str, max_tokens: int, overlap_tokens: int) -> list[str]:
    """Split text at sentence boundaries, carrying overlap between pieces.

    Falls back to :func:`split_by_words` when no piece was produced or a
    single run-on sentence left a piece over 1.5x the character budget.
    """
    max_chars = max_tokens * CHARS_PER_TOKEN
    overlap_chars = overlap_tokens * CHARS_PER_TOKEN

    pieces: list[str] = []
    current = ""

    for sentence in split_into_sentences(text):
        candidate = f"{current} {sentence}" if current else sentence

        if len(candidate) > max_chars and current:
            pieces.append(current.strip())
            current = f"{last_n_chars(current, overlap_chars)} {sentence}"
        else:
            current = candidate

    if current.strip():
        pieces.append(current.strip())

    if not pieces or any(len(p) > max_chars * 1.5 for p in pieces):
        return split_by_words(text, max_chars, overlap_chars)

    return pieces


def split_by_words(text: str, max_chars: int, overlap_chars: int) -> list[str]:
    """Split on whitespace when sentence splitting cannot bound the pieces."""
    pieces: list[str] = []
    current: list[str] = []
    current_length = 0

    for word in text.split():
        if current_length + len(word) + 1 > max_chars and current:
            pieces.append(" ".join(current))

            overlap: list[str] = []
            overlap_length = 0
            for previous in reversed(current):
                if overlap_length >= overlap_chars:
                    break
                overlap.insert(0, previous)
                overlap_length += len(previous) + 1

            current = [*overlap, word]
            current_length = overlap_length + len(word)
        else:
            current.append(word)
            current_length += len(word) + 1

    if current:
        pieces.append(" ".join(current))

    return pieces


def split_into_sentences(text: str) -> list[str]:
    """Split on ``.``, ``!`` or ``?`` followed by whitespace; blank pieces dropped."""
    return [s for s in _SENTENCE_BOUNDARY.split(text) if s.strip()]


def last_n_chars(text: str, n: int) -> str:
    """Return the last *n* characters, starting at a word boundary when one is near.

    The cut moves forward to the first space only if that space lies within
    the first half of the window.
    """
    if len(text) <= n:
        return text
    if n <= 0:
        return ""

    tail = text[-n:]
    first_space = tail.find(" ")
    if 0 < first_space < n / 2:
        return tail[first_space + 1 :]
    return tail


def truncate_text(text: str, max_length: int) -> str:
    """Truncate to *max_length* characters, ending with ``...`` when cut."""
    if len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."


def format_timestamp(seconds: float) -> str:
    """Format seconds as ``M:SS`` or ``H:MM:SS`` (floored)."""
    total = math.floor(seconds)
    hours = total // 3600
    minutes = (total % 3600) // 60
    secs = total % 60

    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
