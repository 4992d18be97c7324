"""
Chunked fan-out for bulk per-amplitude transforms.

Each chunk writes only its own slice of the destination and reads only from
buffers no chunk writes, so chunks need no synchronization.
"""

from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple
import numpy as np


def chunk_ranges(length: int, num_chunks: int, min_chunk: int = 1) -> List[Tuple[int, int]]:
    """Split ``range(length)`` into at most ``num_chunks`` contiguous ranges."""
    if length <= 0:
        return []
    num_chunks = max(1, min(num_chunks, length // max(min_chunk, 1)))
    bounds = np.linspace(0, length, num_chunks + 1, dtype=np.int64)
    return [(int(a), int(b)) for a, b in zip(bounds[:-1], bounds[1:]) if b > a]


def fill_chunked(
    dst: np.ndarray,
    fill: Callable[[int, int], np.ndarray],
    multithread: bool,
    max_workers: Optional[int] = None,
    min_chunk: int = 1 << 12
) -> None:
    """
    Fill ``dst[start:stop] = fill(start, stop)`` over the whole buffer.

    With ``multithread`` the ranges are handed to a thread pool; otherwise
    the buffer is filled in one call.
    """
    if not multithread:
        dst[:] = fill(0, len(dst))
        return

    workers = max_workers or os.cpu_count() or 1
    ranges = chunk_ranges(len(dst), workers, min_chunk)

    def run_chunk(bounds):
        start, stop = bounds
        dst[start:stop] = fill(start, stop)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        # list() re-raises any worker exception here
        list(executor.map(run_chunk, ranges))
