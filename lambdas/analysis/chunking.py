"""Split document text into overlapping windows."""

import math


def plan_chunks(text: str, target_size: int, overlap: int) -> list[str]:
    """Split text into ordered, overlapping chunks that cover it fully.

    Each chunk starts target_size - overlap characters after the previous
    one. When overlap >= target_size the windows are laid end to end
    instead, so the walk always advances.

    Args:
        text: Normalized document text
        target_size: Maximum characters per chunk
        overlap: Characters shared by consecutive chunks

    Returns:
        Chunks in document order. Empty text yields no chunks.

    Raises:
        ValueError: If target_size < 1 or overlap < 0
    """
    if target_size < 1:
        raise ValueError("target_size must be >= 1")
    if overlap < 0:
        raise ValueError("overlap must be >= 0")

    step = target_size - overlap
    if step <= 0:
        step = target_size

    chunks: list[str] = []
    offset = 0
    length = len(text)
    while offset < length:
        end = min(offset + target_size, length)
        chunks.append(text[offset:end])
        if end == length:
            break
        offset += step
    return chunks


def expected_chunk_count(length: int, target_size: int, overlap: int) -> int:
    """Number of chunks plan_chunks yields for non-empty text.

    Valid for target_size > overlap >= 0.
    """
    return max(1, math.ceil((length - overlap) / (target_size - overlap)))
