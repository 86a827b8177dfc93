"""
Command-line entry point.

    loadgen generate <count>                                  NDJSON orders to stdout
    loadgen load <host> <port> <totalOrders> <concurrency>    closed-loop run + percentiles
    loadgen rate <host> <port> --rate R --duration D ...      open-loop run + checks
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

import httpx
from pydantic import ValidationError

from common.ids import new_run_id
from common.logging import setup_logging
from loadgen import config
from loadgen.closed_loop import ClosedLoopResult, run_closed_loop
from loadgen.config import ClosedLoopConfig, OpenLoopConfig, base_url
from loadgen.dispatcher import OrderDispatcher
from loadgen.errors import ConfigurationError
from loadgen.generator import OrderGenerator
from loadgen.open_loop import OpenLoopResult, run_open_loop
from loadgen.stats import format_report

logger = logging.getLogger("loadgen")

EXIT_USAGE = 2


def _limits(connections: int) -> httpx.Limits:
    return httpx.Limits(max_connections=connections, max_keepalive_connections=connections)


async def closed_loop_main(cfg: ClosedLoopConfig, seed: int | None, timeout: float, api_key: str | None) -> ClosedLoopResult:
    generator = OrderGenerator.seeded(seed, instrument=config.LOADGEN_INSTRUMENT, client_prefix="load-client-")
    orders = generator.generate_batch(cfg.total_orders)
    async with httpx.AsyncClient(limits=_limits(cfg.concurrency)) as client:
        dispatcher = OrderDispatcher(
            client,
            base_url(cfg.host, cfg.port),
            timeout=timeout,
            api_key=api_key,
        )
        return await run_closed_loop(dispatcher, orders, cfg.concurrency)


async def open_loop_main(
    host: str,
    port: int,
    cfg: OpenLoopConfig,
    seed: int | None,
    timeout: float,
    api_key: str | None,
) -> OpenLoopResult:
    generator = OrderGenerator.seeded(seed, instrument=config.LOADGEN_INSTRUMENT, client_prefix="rate-client-")
    async with httpx.AsyncClient(limits=_limits(cfg.max_callers)) as client:
        dispatcher = OrderDispatcher(client, base_url(host, port), timeout=timeout, api_key=api_key)
        return await run_open_loop(dispatcher, generator, cfg)


def cmd_generate(args: argparse.Namespace) -> int:
    if args.count < 0:
        raise ConfigurationError("count must be >= 0")
    generator = OrderGenerator.seeded(args.seed, instrument=config.LOADGEN_INSTRUMENT)
    generator.write_ndjson(args.count, sys.stdout)
    return 0


def cmd_load(args: argparse.Namespace) -> int:
    cfg = ClosedLoopConfig(
        host=args.host,
        port=args.port,
        total_orders=args.total_orders,
        concurrency=args.concurrency,
    )
    logger.info(
        "Run %s: closed loop against %s (orders=%d concurrency=%d)",
        new_run_id(),
        base_url(cfg.host, cfg.port),
        cfg.total_orders,
        cfg.concurrency,
    )
    result = asyncio.run(closed_loop_main(cfg, args.seed, args.timeout, args.api_key))
    for line in format_report(result.report):
        print(line)
    return 0


def cmd_rate(args: argparse.Namespace) -> int:
    cfg = OpenLoopConfig(
        rate=args.rate,
        duration=args.duration,
        pre_allocated_callers=args.pre_allocated,
        max_callers=args.max_callers,
        graceful_stop=args.graceful_stop,
    )
    logger.info("Run %s: open loop against %s", new_run_id(), base_url(args.host, args.port))
    result = asyncio.run(open_loop_main(args.host, args.port, cfg, args.seed, args.timeout, args.api_key))
    print(f"scheduled={result.scheduled} issued={result.issued} completed={result.completed}")
    print(f"dropped={result.dropped} abandoned={result.abandoned} callers={result.callers_allocated}")
    print(f"achieved_rate={result.achieved_rate:.1f}/s target_rate={cfg.rate:.1f}/s")
    for check in result.checks:
        print(check)
    for line in format_report(result.report):
        print(line)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="loadgen", description="Order-intake load harness")
    parser.add_argument("--log-level", default=config.LOADGEN_LOG_LEVEL)
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Emit synthetic orders as NDJSON")
    gen.add_argument("count", type=int, nargs="?", default=1000)
    gen.add_argument("--seed", type=int, default=config.LOADGEN_SEED)
    gen.set_defaults(func=cmd_generate)

    def add_target(p: argparse.ArgumentParser) -> None:
        p.add_argument("host", nargs="?", default=config.TARGET_HOST)
        p.add_argument("port", type=int, nargs="?", default=config.TARGET_PORT)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--seed", type=int, default=config.LOADGEN_SEED)
        p.add_argument("--timeout", type=float, default=config.REQUEST_TIMEOUT_S)
        p.add_argument("--api-key", default=config.TARGET_API_KEY)

    load = sub.add_parser("load", help="Closed-loop batch replay with bounded concurrency")
    add_target(load)
    load.add_argument("total_orders", type=int, nargs="?", default=1000)
    load.add_argument("concurrency", type=int, nargs="?", default=20)
    add_common(load)
    load.set_defaults(func=cmd_load)

    rate = sub.add_parser("rate", help="Open-loop constant arrival rate")
    add_target(rate)
    rate.add_argument("--rate", type=float, default=2000.0)
    rate.add_argument("--duration", type=float, default=30.0)
    rate.add_argument("--pre-allocated", type=int, default=500)
    rate.add_argument("--max-callers", type=int, default=2000)
    rate.add_argument("--graceful-stop", type=float, default=30.0)
    add_common(rate)
    rate.set_defaults(func=cmd_rate)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("loadgen", args.log_level)
    try:
        return args.func(args)
    except (ConfigurationError, ValidationError) as e:
        print(f"loadgen: invalid configuration: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    sys.exit(main())
