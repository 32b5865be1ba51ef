"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Deterministic batch partitioning.
"""

from __future__ import annotations

import math

from ..types import Batch, Target


def partition_batch(batch: Batch, branching_factor: int) -> list[list[Target]]:
    """
    Split `batch` into at most `branching_factor` contiguous near-equal chunks.

    Chunk size is ``ceil(len / min(branching_factor, len))``; the last chunk
    may be shorter and empty chunks are never produced.
    """
    if branching_factor < 1:
        raise ValueError("branching_factor must be >= 1")
    size = len(batch)
    if size == 0:
        return []
    branch_count = min(branching_factor, size)
    chunk_size = math.ceil(size / branch_count)
    return chunk_batch(batch, chunk_size)


def chunk_batch(batch: Batch, chunk_size: int | None) -> list[list[Target]]:
    """Split `batch` into fixed-size chunks; ``None`` or ``0`` keeps one chunk."""
    if not batch:
        return []
    if not chunk_size or chunk_size <= 0:
        return [list(batch)]
    return [
        list(batch[start : start + chunk_size])
        for start in range(0, len(batch), chunk_size)
    ]
