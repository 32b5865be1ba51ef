"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: runtime/__init__.py.
"""

from .backoff import BackoffPolicy
from .coalescing import InflightRegistry
from .leaf import LeafExecutor
from .retry import (
    RETRYABLE_STATUS_CODES,
    classify_response,
    is_retryable_error,
    is_retryable_status,
)

__all__ = [
    "BackoffPolicy",
    "InflightRegistry",
    "LeafExecutor",
    "RETRYABLE_STATUS_CODES",
    "classify_response",
    "is_retryable_error",
    "is_retryable_status",
]
