from __future__ import annotations

import asyncio

import pytest

from treefetch import (
    DISPATCH_FAILED_KEY,
    INTERNAL_FAILURE_KEY,
    RETRIES_EXHAUSTED_KEY,
    BackoffPolicy,
    DispatchConfig,
    DispatchOverloadedError,
    DispatchTransportError,
    DispatchWorker,
    FetchResponse,
    InProcessDispatchChannel,
    Target,
    WorkerHandle,
)


def run_async(coro):
    return asyncio.run(coro)


def _config(**overrides) -> DispatchConfig:
    values = dict(
        initial_backoff_s=0.0,
        max_backoff_s=0.0,
        jitter_max_s=0.0,
        max_retries=3,
    )
    values.update(overrides)
    return DispatchConfig(**values)


def _batch(size: int) -> list[Target]:
    return [Target(f"https://t/{i}", id=str(i)) for i in range(size)]


class _CountingTransport:
    def __init__(self, status_for=None) -> None:
        self._status_for = status_for or (lambda target: 200)
        self.calls: dict[str, int] = {}

    async def fetch(self, target: Target) -> FetchResponse:
        self.calls[target.url] = self.calls.get(target.url, 0) + 1
        await asyncio.sleep(0)
        return FetchResponse(self._status_for(target), "")


class _ForbiddenChannel:
    async def dispatch(self, handle, batch, config):
        raise AssertionError("direct mode must not dispatch children")


class _FlakyChannel:
    """Fails the first `failures` dispatches of every chunk, then delegates."""

    def __init__(self, inner, *, failures: int, error=None) -> None:
        self._inner = inner
        self._failures = failures
        self._error = error or (lambda: DispatchTransportError("unreachable"))
        self.handles: list[str] = []
        self._seen: dict[tuple[str, ...], int] = {}

    async def dispatch(self, handle, batch, config):
        self.handles.append(handle.id)
        key = tuple(target.url for target in batch)
        self._seen[key] = self._seen.get(key, 0) + 1
        if self._seen[key] <= self._failures:
            raise self._error()
        return await self._inner.dispatch(handle, batch, config)


def _root(config, transport, channel) -> DispatchWorker:
    return DispatchWorker(
        WorkerHandle.mint(),
        config=config,
        transport=transport,
        channel=channel,
    )


def test_small_batch_runs_directly():
    transport = _CountingTransport()
    worker = _root(_config(base_case_threshold=60), transport, _ForbiddenChannel())
    batch = _batch(5)

    assert run_async(worker.run(batch)) == {"200": 5}
    assert transport.calls == {t.url: 1 for t in batch}


def test_large_batch_recurses_through_children():
    transport = _CountingTransport()
    channel = InProcessDispatchChannel(transport)
    config = _config(base_case_threshold=60, branching_factor=10)
    batch = _batch(150)

    outcomes = run_async(_root(config, transport, channel).run(batch))

    assert outcomes == {"200": 150}
    assert channel.spawned_workers == 10
    assert channel.live_workers == 0
    assert transport.calls == {t.url: 1 for t in batch}


def test_deep_tree_executes_every_target_exactly_once():
    transport = _CountingTransport()
    channel = InProcessDispatchChannel(transport)
    config = _config(base_case_threshold=5, branching_factor=3)
    batch = _batch(1000)

    outcomes = run_async(_root(config, transport, channel).run(batch))

    assert outcomes == {"200": 1000}
    assert transport.calls == {t.url: 1 for t in batch}
    assert channel.spawned_workers > 3


def test_empty_batch_completes_with_empty_map():
    worker = _root(_config(), _CountingTransport(), _ForbiddenChannel())
    assert run_async(worker.run([])) == {}


def test_mixed_outcomes_are_conserved_across_levels():
    def status_for(target: Target) -> int:
        return (200, 404, 429)[int(target.id) % 3]

    transport = _CountingTransport(status_for)
    channel = InProcessDispatchChannel(transport)
    config = _config(base_case_threshold=7, branching_factor=4, max_retries=2)

    outcomes = run_async(_root(config, transport, channel).run(_batch(100)))

    assert sum(outcomes.values()) == 100
    assert outcomes == {"200": 34, "404": 33, RETRIES_EXHAUSTED_KEY: 33}


def test_failed_child_dispatch_is_retried_on_a_fresh_handle():
    transport = _CountingTransport()
    inner = InProcessDispatchChannel(transport)
    channel = _FlakyChannel(inner, failures=2)
    config = _config(base_case_threshold=10, branching_factor=4, max_retries=3)
    batch = _batch(40)

    outcomes = run_async(_root(config, transport, channel).run(batch))

    assert outcomes == {"200": 40}
    assert len(channel.handles) == 4 * 3
    assert len(set(channel.handles)) == len(channel.handles)
    assert transport.calls == {t.url: 1 for t in batch}


def test_exhausted_child_dispatch_attributes_whole_chunk():
    transport = _CountingTransport()
    channel = _FlakyChannel(
        InProcessDispatchChannel(transport),
        failures=99,
        error=lambda: DispatchOverloadedError(503),
    )
    config = _config(base_case_threshold=10, branching_factor=4, max_retries=3)

    outcomes = run_async(_root(config, transport, channel).run(_batch(35)))

    assert outcomes == {DISPATCH_FAILED_KEY: 35}
    assert len(channel.handles) == 4 * 3
    assert transport.calls == {}


def test_unexpected_orchestration_error_attributes_whole_batch():
    class _BrokenChannel:
        async def dispatch(self, handle, batch, config):
            raise RuntimeError("bug in channel")

    worker = _root(_config(base_case_threshold=2), _CountingTransport(), _BrokenChannel())

    assert run_async(worker.run(_batch(9))) == {INTERNAL_FAILURE_KEY: 9}


def test_active_children_tracks_concurrent_dispatches():
    observed: list[int] = []
    holder: dict[str, DispatchWorker] = {}

    class _GateChannel:
        def __init__(self) -> None:
            self.started = 0
            self.release = asyncio.Event()

        async def dispatch(self, handle, batch, config):
            self.started += 1
            if self.started == 4:
                self.release.set()
            await self.release.wait()
            observed.append(holder["worker"].active_children)
            return {"200": len(batch)}

    async def scenario():
        worker = _root(
            _config(base_case_threshold=1, branching_factor=4),
            _CountingTransport(),
            _GateChannel(),
        )
        holder["worker"] = worker
        outcomes = await worker.run(_batch(8))
        return outcomes, worker.active_children

    outcomes, remaining = run_async(scenario())
    assert outcomes == {"200": 8}
    assert observed[0] == 4
    assert remaining == 0


def test_children_keep_running_when_parent_is_cancelled():
    done: list[str] = []

    class _BlockedTransport:
        def __init__(self, gate) -> None:
            self._gate = gate

        async def fetch(self, target: Target) -> FetchResponse:
            await self._gate.wait()
            done.append(target.url)
            return FetchResponse(200, "")

    async def scenario():
        gate = asyncio.Event()
        transport = _BlockedTransport(gate)
        channel = InProcessDispatchChannel(transport)
        parent = asyncio.create_task(
            _root(_config(base_case_threshold=5, branching_factor=4), transport, channel).run(
                _batch(20)
            )
        )
        while channel.live_workers < 4:
            await asyncio.sleep(0.001)

        parent.cancel()
        await asyncio.gather(parent, return_exceptions=True)
        assert parent.cancelled()
        assert channel.live_workers == 4

        gate.set()
        while channel.live_workers:
            await asyncio.sleep(0.001)

    run_async(scenario())
    assert len(done) == 20


class _RecordingPolicy(BackoffPolicy):
    def __init__(self, config: DispatchConfig) -> None:
        super().__init__(config)
        self.calls: list[tuple[int, int, float]] = []

    def next_delay(self, attempt: int, local_load: int = 0) -> float:
        delay = super().next_delay(attempt, local_load)
        self.calls.append((attempt, local_load, delay))
        return delay


class _SiblingsInFlightChannel:
    """First dispatch of the chunk holding target "0" fails once all siblings are running."""

    def __init__(self) -> None:
        self.attempts: dict[str, int] = {}
        self.all_started = asyncio.Event()
        self.release = asyncio.Event()
        self._started = 0

    async def dispatch(self, handle, batch, config):
        first = batch[0].id
        self.attempts[first] = self.attempts.get(first, 0) + 1
        self._started += 1
        if self._started == 4:
            self.all_started.set()
        await self.all_started.wait()
        if first == "0":
            if self.attempts[first] == 1:
                raise DispatchOverloadedError(503)
            self.release.set()
        else:
            await self.release.wait()
        return {"200": len(batch)}


@pytest.mark.parametrize(
    ("overload_threshold", "scaled"),
    [(None, True), (2, True), (3, False)],
)
def test_dispatch_retry_backoff_uses_live_sibling_count(overload_threshold, scaled):
    config = DispatchConfig(
        base_case_threshold=1,
        branching_factor=4,
        initial_backoff_s=0.01,
        max_backoff_s=1.0,
        jitter_max_s=0.0,
        overload_threshold=overload_threshold,
        overload_multiplier=2.0,
    )
    backoff = _RecordingPolicy(config)
    channel = _SiblingsInFlightChannel()

    async def scenario():
        worker = DispatchWorker(
            WorkerHandle.mint(),
            config=config,
            transport=_CountingTransport(),
            channel=channel,
            backoff=backoff,
        )
        return await asyncio.wait_for(worker.run(_batch(8)), timeout=5.0)

    assert run_async(scenario()) == {"200": 8}
    assert channel.attempts == {"0": 2, "2": 1, "4": 1, "6": 1}

    [(attempt, local_load, delay)] = backoff.calls
    assert attempt == 1
    assert local_load == 3
    expected = backoff.base_delay(1) * (2.0 if scaled else 1.0)
    assert delay == pytest.approx(expected)
