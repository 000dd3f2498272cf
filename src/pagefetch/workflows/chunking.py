"""Fixed-size overlapping text windows for downstream consumers."""

from __future__ import annotations

from typing import Any, List

from .fetch_config import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_CHUNKS,
    MIN_CHUNK_CHARS,
    MIN_CHUNK_SIZE,
)


def _as_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return default
    return number if number else default


def chunk_text(
    text: str,
    chunk_size: Any = DEFAULT_CHUNK_SIZE,
    overlap: Any = DEFAULT_CHUNK_OVERLAP,
    max_chunks: int = DEFAULT_MAX_CHUNKS,
    min_size: int = MIN_CHUNK_SIZE,
) -> List[str]:
    """Split ``text`` into windows of ``chunk_size`` chars overlapping by ``overlap``.

    ``chunk_size`` is floored at ``min_size`` (100) and ``overlap`` clamped to
    ``[0, chunk_size - 1]``. Windows shorter than 20 chars after trimming are
    dropped; at most ``max_chunks`` windows are returned.
    """

    if not text:
        return []

    size = max(1, min_size, _as_int(chunk_size, DEFAULT_CHUNK_SIZE))
    overlap_size = max(0, min(size - 1, _as_int(overlap, 0)))
    step = size - overlap_size
    chunks: List[str] = []

    for start in range(0, len(text), step):
        if len(chunks) >= max_chunks:
            break
        chunk = text[start:start + size].strip()
        if len(chunk) >= MIN_CHUNK_CHARS:
            chunks.append(chunk)

    return chunks


__all__ = ["chunk_text"]
