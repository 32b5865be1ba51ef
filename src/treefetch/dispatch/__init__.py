"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Recursive dispatch workers, partitioning, and inter-worker channels.
"""

from .channel import (
    WORKER_DISPATCH_PATH,
    DispatchChannel,
    HttpDispatchChannel,
    InProcessDispatchChannel,
)
from .partition import chunk_batch, partition_batch
from .worker import DispatchWorker

__all__ = [
    "DispatchWorker",
    "DispatchChannel",
    "InProcessDispatchChannel",
    "HttpDispatchChannel",
    "WORKER_DISPATCH_PATH",
    "partition_batch",
    "chunk_batch",
]
