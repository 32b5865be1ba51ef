"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Service facade wiring settings, transport, channel, and scheduler together.
"""

from __future__ import annotations

import logging
import random

from ..admission import AdmissionScheduler
from ..config import DispatchConfig, ServiceSettings
from ..dispatch.channel import DispatchChannel, HttpDispatchChannel, InProcessDispatchChannel
from ..dispatch.worker import DispatchWorker
from ..errors import InvalidRequestError
from ..metrics import NoOpWorkerMetrics, WorkerMetrics
from ..targets import generate_targets
from ..transport import HttpxTransport, Transport
from ..types import Batch, DispatchResult, OutcomeMap, WorkerHandle

logger = logging.getLogger("treefetch.service")


class FetchTreeService:
    """
    Entry-point operations shared by the HTTP app and the CLI.

    Input validation happens here, before any dispatch. When
    ``settings.self_url`` is set, child workers are reached over HTTP at that
    URL; otherwise every worker runs in-process.
    """

    def __init__(
        self,
        *,
        settings: ServiceSettings | None = None,
        config: DispatchConfig | None = None,
        transport: Transport | None = None,
        channel: DispatchChannel | None = None,
        metrics: WorkerMetrics | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or ServiceSettings()
        self.config = (config or DispatchConfig()).validate()
        self._metrics: WorkerMetrics = metrics or NoOpWorkerMetrics()
        self._owned: list[object] = []
        if transport is None:
            transport = HttpxTransport(timeout_s=self.settings.fetch_timeout_s)
            self._owned.append(transport)
        self._transport = transport
        if channel is None:
            if self.settings.self_url:
                channel = HttpDispatchChannel(self.settings.self_url)
                self._owned.append(channel)
            else:
                channel = InProcessDispatchChannel(transport, metrics=self._metrics)
        self._channel = channel
        self._rng = rng or random.Random()
        self._check_template(self.settings.target_template)

    @staticmethod
    def _check_template(template: str) -> None:
        try:
            template.format(index=1, random=1)
        except (KeyError, IndexError, ValueError) as exc:
            raise ValueError(f"Invalid target template '{template}': {exc}") from exc

    def _check_size(self, size: int, *, secret: str | None) -> None:
        ceiling = self.settings.max_targets_for(secret)
        if size < 1:
            raise InvalidRequestError("Invalid amount parameter: must be >= 1")
        if size > ceiling:
            raise InvalidRequestError(
                f"Amount cannot be over {ceiling} without the secret"
                if ceiling == self.settings.public_max_targets
                else f"Amount cannot be over {ceiling}"
            )

    async def run_amount(
        self,
        amount: int,
        *,
        secret: str | None = None,
        items_per_window: int | None = None,
        base_case_threshold: int | None = None,
    ) -> DispatchResult:
        """Generate `amount` targets from the template and dispatch them."""
        self._check_size(amount, secret=secret)
        config = self._overridden(
            items_per_window=items_per_window,
            base_case_threshold=base_case_threshold,
        )
        targets = generate_targets(amount, self.settings.target_template, rng=self._rng)
        return await self.run_batch(targets, config=config)

    async def run_targets(
        self,
        targets: Batch,
        *,
        secret: str | None = None,
        config: DispatchConfig | None = None,
    ) -> DispatchResult:
        """Dispatch an explicit batch."""
        self._check_size(len(targets), secret=secret)
        return await self.run_batch(targets, config=config or self.config)

    async def run_batch(self, targets: Batch, *, config: DispatchConfig) -> DispatchResult:
        scheduler = AdmissionScheduler(self._channel, config=config, metrics=self._metrics)
        result = await scheduler.run(targets)
        logger.info(
            "Dispatched %d target(s) in %d window(s) in %dms",
            result.total,
            result.windows,
            result.duration_ms,
        )
        return result

    async def run_worker(
        self,
        handle: WorkerHandle,
        targets: Batch,
        config: DispatchConfig,
    ) -> OutcomeMap:
        """Run one worker invocation addressed by a remote parent."""
        worker = DispatchWorker(
            handle,
            config=config,
            transport=self._transport,
            channel=self._channel,
            metrics=self._metrics,
        )
        return await worker.run(targets)

    def _overridden(self, **changes: int | None) -> DispatchConfig:
        try:
            return self.config.with_overrides(**changes)
        except ValueError as exc:
            raise InvalidRequestError(str(exc)) from exc

    async def aclose(self) -> None:
        for resource in self._owned:
            await resource.aclose()  # type: ignore[attr-defined]
        self._owned.clear()
