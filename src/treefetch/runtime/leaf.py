"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Leaf executor: one fetch with bounded retry, classified into an outcome key.
"""

from __future__ import annotations

import asyncio
import logging

from ..aggregate import count_outcomes
from ..config import DispatchConfig
from ..metrics import NoOpWorkerMetrics, WorkerMetrics
from ..transport import Transport
from ..types import (
    RETRIES_EXHAUSTED_KEY,
    SUCCESS_KEY,
    Batch,
    OutcomeKey,
    OutcomeMap,
    Target,
)
from .backoff import BackoffPolicy
from .coalescing import InflightRegistry
from .retry import (
    classify_response,
    classify_unexpected,
    is_retryable_error,
    is_retryable_status,
)

logger = logging.getLogger("treefetch.runtime.leaf")


class LeafExecutor:
    """
    Execute targets against the transport until success or budget exhaustion.

    ``execute_target`` never raises (cancellation excepted): every target
    resolves to exactly one outcome key.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        config: DispatchConfig,
        backoff: BackoffPolicy | None = None,
        metrics: WorkerMetrics | None = None,
    ) -> None:
        self._transport = transport
        self._config = config
        self._backoff = backoff or BackoffPolicy(config)
        self._metrics: WorkerMetrics = metrics or NoOpWorkerMetrics()

    async def execute_target(self, target: Target) -> OutcomeKey:
        """Fetch one target, retrying overload signals and transport errors."""
        attempts = 0
        while True:
            self._metrics.incr("leaf_attempts_total")
            try:
                response = await self._transport.fetch(target)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                if not is_retryable_error(exc):
                    logger.exception("Unexpected fetch failure for %s", target.url)
                    self._record("error")
                    return classify_unexpected(exc)
                reason = str(exc) or type(exc).__name__
            else:
                if not is_retryable_status(response.status_code):
                    key = classify_response(
                        response, excerpt_chars=self._config.body_excerpt_chars
                    )
                    self._record("success" if key == SUCCESS_KEY else "terminal")
                    return key
                reason = f"Rate limited: {response.status_code}"

            attempts += 1
            if attempts >= self._config.max_retries:
                logger.debug(
                    "Retries exhausted for %s after %d attempts (%s)",
                    target.url,
                    attempts,
                    reason,
                )
                self._record("exhausted")
                return RETRIES_EXHAUSTED_KEY

            delay = self._backoff.next_delay(attempts)
            self._metrics.incr("leaf_retries_total")
            logger.debug(
                "Retrying %s in %.3fs (attempt %d/%d, %s)",
                target.url,
                delay,
                attempts,
                self._config.max_retries,
                reason,
            )
            await asyncio.sleep(delay)

    async def execute_batch(self, batch: Batch) -> OutcomeMap:
        """Execute every target concurrently and fold keys into counts."""
        if not batch:
            return {}
        if self._config.coalesce_duplicates:
            registry: InflightRegistry[Target, OutcomeKey] = InflightRegistry()
            keys = await asyncio.gather(
                *(
                    registry.run(target, lambda t=target: self.execute_target(t))
                    for target in batch
                )
            )
            if registry.coalesced:
                logger.debug("Coalesced %d duplicate target(s)", registry.coalesced)
        else:
            keys = await asyncio.gather(
                *(self.execute_target(target) for target in batch)
            )
        return count_outcomes(keys)

    def _record(self, outcome: str) -> None:
        self._metrics.incr("leaf_outcomes_total", tags={"outcome": outcome})
