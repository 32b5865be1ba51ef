"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Recursive fan-out fetch distribution with adaptive retry.

Quick start::

    from treefetch import (
        AdmissionScheduler,
        DispatchConfig,
        HttpxTransport,
        InProcessDispatchChannel,
        Target,
    )

    transport = HttpxTransport()
    channel = InProcessDispatchChannel(transport)
    scheduler = AdmissionScheduler(channel, config=DispatchConfig())
    result = await scheduler.run([Target(url="https://example.com")])
    print(result.outcomes, result.duration_ms)
"""

from .admission import AdmissionScheduler
from .aggregate import attribute_failure, count_outcomes, merge_outcomes, outcome_total
from .config import DispatchConfig, ServiceSettings
from .dispatch import (
    DispatchChannel,
    DispatchWorker,
    HttpDispatchChannel,
    InProcessDispatchChannel,
    chunk_batch,
    partition_batch,
)
from .errors import (
    DispatchError,
    DispatchOverloadedError,
    DispatchProtocolError,
    DispatchRejectedError,
    DispatchTransportError,
    FetchTransportError,
    InvalidRequestError,
    TreeFetchError,
)
from .metrics import NoOpWorkerMetrics, PrometheusWorkerMetrics, WorkerMetrics
from .runtime import BackoffPolicy, LeafExecutor
from .targets import generate_targets
from .transport import HttpxTransport, Transport
from .types import (
    CHUNK_FAILED_KEY,
    DISPATCH_FAILED_KEY,
    INTERNAL_FAILURE_KEY,
    RETRIES_EXHAUSTED_KEY,
    SUCCESS_KEY,
    Batch,
    DispatchResult,
    FetchResponse,
    OutcomeKey,
    OutcomeMap,
    Target,
    WorkerHandle,
)

__all__ = [
    "Target",
    "Batch",
    "WorkerHandle",
    "OutcomeKey",
    "OutcomeMap",
    "FetchResponse",
    "DispatchResult",
    "SUCCESS_KEY",
    "RETRIES_EXHAUSTED_KEY",
    "DISPATCH_FAILED_KEY",
    "INTERNAL_FAILURE_KEY",
    "CHUNK_FAILED_KEY",
    "DispatchConfig",
    "ServiceSettings",
    "BackoffPolicy",
    "LeafExecutor",
    "merge_outcomes",
    "count_outcomes",
    "attribute_failure",
    "outcome_total",
    "DispatchWorker",
    "DispatchChannel",
    "InProcessDispatchChannel",
    "HttpDispatchChannel",
    "partition_batch",
    "chunk_batch",
    "AdmissionScheduler",
    "Transport",
    "HttpxTransport",
    "generate_targets",
    "WorkerMetrics",
    "NoOpWorkerMetrics",
    "PrometheusWorkerMetrics",
    "TreeFetchError",
    "FetchTransportError",
    "DispatchError",
    "DispatchTransportError",
    "DispatchOverloadedError",
    "DispatchRejectedError",
    "DispatchProtocolError",
    "InvalidRequestError",
]


# Lazy import for the HTTP service host
def __getattr__(name: str):
    """Lazily expose the FastAPI service host."""
    if name in ("create_app", "FetchTreeService"):
        from . import service

        return getattr(service, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
