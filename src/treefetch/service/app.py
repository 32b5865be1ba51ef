"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

FastAPI host exposing the entry point and inter-worker dispatch endpoints.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Header, HTTPException, Query

from ..config import DispatchConfig, ServiceSettings
from ..dispatch.channel import WORKER_DISPATCH_PATH
from ..errors import InvalidRequestError
from ..types import DispatchResult, WorkerHandle
from .engine import FetchTreeService
from .models import RunRequest, RunResponse, WorkerDispatchRequest, WorkerDispatchResponse


def _parse_int(name: str, raw: str | None, *, default: int | None) -> int | None:
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise InvalidRequestError(f"Invalid {name} parameter") from exc


def _respond(result: DispatchResult) -> dict[str, Any]:
    return RunResponse.from_result(result).model_dump(by_alias=True)


def create_app(
    service: FetchTreeService | None = None,
    *,
    settings: ServiceSettings | None = None,
    config: DispatchConfig | None = None,
) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        service: Pre-built service (tests inject fakes through this).
        settings: Service settings; defaults to ``ServiceSettings.from_env()``.
        config: Dispatch defaults; defaults to ``DispatchConfig.from_env()``.
    """
    if service is None:
        service = FetchTreeService(
            settings=settings or ServiceSettings.from_env(),
            config=config or DispatchConfig.from_env(),
        )

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        try:
            yield
        finally:
            await service.aclose()

    app = FastAPI(title="treefetch", lifespan=lifespan)
    app.state.service = service

    @app.get("/healthz")
    async def healthz() -> dict[str, Any]:
        return {"status": "ok", "config": service.config.as_payload()}

    @app.get("/")
    async def run_amount(
        amount: str | None = Query(default=None),
        rate_limit: str | None = Query(default=None, alias="rateLimit"),
        batch_size: str | None = Query(default=None, alias="batchSize"),
        secret: str | None = Query(default=None),
    ) -> dict[str, Any]:
        try:
            count = _parse_int("amount", amount, default=100)
            result = await service.run_amount(
                count or 0,
                secret=secret,
                items_per_window=_parse_int("rateLimit", rate_limit, default=None),
                base_case_threshold=_parse_int("batchSize", batch_size, default=None),
            )
        except InvalidRequestError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _respond(result)

    @app.post("/runs")
    async def run_targets(
        payload: RunRequest,
        x_treefetch_secret: str | None = Header(default=None),
    ) -> dict[str, Any]:
        try:
            config = payload.config.apply(service.config)
            result = await service.run_targets(
                [target.to_target() for target in payload.targets],
                secret=x_treefetch_secret,
                config=config,
            )
        except (InvalidRequestError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _respond(result)

    @app.post(WORKER_DISPATCH_PATH)
    async def worker_dispatch(handle: str, payload: WorkerDispatchRequest) -> dict[str, Any]:
        try:
            config = DispatchConfig.from_payload(payload.config)  # type: ignore[arg-type]
        except (TypeError, ValueError) as exc:
            raise HTTPException(
                status_code=422, detail=f"Invalid dispatch config: {exc}"
            ) from exc
        outcomes = await service.run_worker(
            WorkerHandle(id=handle),
            [target.to_target() for target in payload.targets],
            config,
        )
        return WorkerDispatchResponse(handle=handle, outcomes=outcomes).model_dump()

    return app
