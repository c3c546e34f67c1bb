# docchat/memory/chunker.py

import logging
from typing import List

from docchat.config import (
    CHUNK_SIZE,
    CHUNK_OVERLAP,
)

logger = logging.getLogger(__name__)

# Preferred break characters: sentence end, line end, word boundary
_BREAK_CHARS = (".", "\n", " ")

# A break point may pull the cut back by at most this share of the window
_MAX_BACKTRACK_RATIO = 0.5


def find_break_point(text: str, start: int, end: int, size: int) -> int:
    """
    Return where the window [start, end) should be cut.

    Picks the right-most period, newline or space inside the window and
    cuts just after it, unless that would drop more than half the window.
    In that case the hard cutoff `end` is kept.
    """

    break_at = max(text.rfind(char, start, end) for char in _BREAK_CHARS)

    if break_at > start + size * _MAX_BACKTRACK_RATIO:
        return break_at + 1

    return end


def chunk_text(
    text: str,
    size: int = CHUNK_SIZE,
    overlap: int = CHUNK_OVERLAP,
) -> List[str]:
    """
    Boundary-aware character chunker.

    Architecture contract preserved:
    loader → chunker → embedder → vector_store

    Guarantees:
    • every chunk is at most `size` characters
    • consecutive chunks share up to `overlap` characters
    • no empty chunks
    • terminates for any overlap, including overlap >= size: the window
      start always advances by at least one character
    """

    if size <= 0:
        raise ValueError(f"Invalid chunk size: {size}")

    if overlap < 0:
        raise ValueError(f"Invalid chunk overlap: {overlap}")

    if not text or not text.strip():
        logger.warning("Chunking skipped: empty text")
        return []

    total_chars = len(text)

    if total_chars <= size:
        return [text]

    if overlap >= size:
        logger.warning(
            "Chunk overlap not smaller than chunk size, windows advance one character at a time",
            extra={"chunk_size": size, "overlap": overlap},
        )

    chunks: List[str] = []

    start = 0

    # ============================================================
    # CHUNK GENERATION LOOP
    # ============================================================

    while start < total_chars:

        end = min(start + size, total_chars)

        if end < total_chars:
            chunk_end = find_break_point(text, start, end, size)
        else:
            chunk_end = end

        chunk = text[start:chunk_end].strip()

        if chunk:
            chunks.append(chunk)

        if chunk_end >= total_chars:
            break

        start = max(chunk_end - overlap, start + 1)

    logger.info(
        "Chunking completed",
        extra={
            "total_chars": total_chars,
            "chunk_size": size,
            "overlap": overlap,
            "chunks_created": len(chunks),
        },
    )

    return chunks
