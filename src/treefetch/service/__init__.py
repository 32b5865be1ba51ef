"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

HTTP service host for treefetch.
"""

from .app import create_app
from .engine import FetchTreeService
from .models import (
    ConfigOverrides,
    RunRequest,
    RunResponse,
    TargetModel,
    WorkerDispatchRequest,
    WorkerDispatchResponse,
)

__all__ = [
    "create_app",
    "FetchTreeService",
    "ConfigOverrides",
    "RunRequest",
    "RunResponse",
    "TargetModel",
    "WorkerDispatchRequest",
    "WorkerDispatchResponse",
]
