"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Command line entry point.

Usage examples:
  treefetch serve --port 8787
  treefetch run --amount 500 --rate-limit 100 --batch-size 60
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from collections.abc import Sequence
from dataclasses import replace

from .config import DispatchConfig, ServiceSettings
from .errors import InvalidRequestError
from .service.engine import FetchTreeService
from .service.models import RunResponse

logger = logging.getLogger("treefetch.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="treefetch",
        description="Recursive fan-out fetch distribution",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP entry point and worker endpoints")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)

    run = sub.add_parser("run", help="Dispatch one tree in-process and print the result")
    run.add_argument("--amount", type=int, default=100)
    run.add_argument("--rate-limit", type=int, default=None, help="Targets per admission window")
    run.add_argument("--window-s", type=float, default=None)
    run.add_argument("--batch-size", type=int, default=None, help="Base-case threshold")
    run.add_argument("--branching-factor", type=int, default=None)
    run.add_argument("--max-retries", type=int, default=None)
    run.add_argument("--template", default=None, help="Target URL template")
    run.add_argument("--secret", default=None)
    return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> int:
    settings = ServiceSettings.from_env()
    if args.template:
        settings = replace(settings, target_template=args.template)
    # The CLI always runs the whole tree in this process.
    settings = replace(settings, self_url=None)
    try:
        config = DispatchConfig.from_env().with_overrides(
            window_s=args.window_s,
            branching_factor=args.branching_factor,
            max_retries=args.max_retries,
        )
        service = FetchTreeService(settings=settings, config=config)
    except ValueError as exc:
        logger.error("%s", exc)
        return 2
    try:
        result = await service.run_amount(
            args.amount,
            secret=args.secret or settings.secret,
            items_per_window=args.rate_limit,
            base_case_threshold=args.batch_size,
        )
    except InvalidRequestError as exc:
        logger.error("%s", exc)
        return 2
    finally:
        await service.aclose()
    print(json.dumps(RunResponse.from_result(result).model_dump(by_alias=True), indent=2))
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .service.app import create_app

    settings = ServiceSettings.from_env()
    uvicorn.run(
        create_app(settings=settings),
        host=args.host or settings.host,
        port=args.port or settings.port,
    )
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "serve":
        return _serve(args)
    return asyncio.run(_run(args))
