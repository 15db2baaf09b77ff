"""Run the agent fleet portfolio monitor.

Defaults:
- Continuous mode: one pass every MONITOR_INTERVAL_MINUTES until SIGINT/SIGTERM.
- `--once` runs a single pass and prints the report as JSON.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
from dataclasses import replace
from typing import Optional

from dotenv import load_dotenv
from loguru import logger

from fleet_monitor.config import PRICE_FEEDS, load_config
from fleet_monitor.data.mongo import MongoManager, jsonify
from fleet_monitor.log import setup_logging
from fleet_monitor.orchestrator.service import PortfolioMonitoringService


def _positive_float(value: str) -> float:
    try:
        minutes = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from exc
    if minutes <= 0:
        raise argparse.ArgumentTypeError(f"must be positive, got {value}")
    return minutes


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Agent fleet portfolio monitor")
    p.add_argument("--once", action="store_true", help="Run exactly one monitoring pass and exit")
    p.add_argument(
        "--interval-minutes",
        type=_positive_float,
        default=None,
        help="Minutes between passes (default from MONITOR_INTERVAL_MINUTES)",
    )
    p.add_argument("--ensure-indexes", action="store_true", help="Create MongoDB indexes and exit")
    p.add_argument("--agent-stats", default=None, metavar="AGENT_ID", help="Print audit statistics for an agent")
    p.add_argument("--frequency", default=None, metavar="STRATEGY", help="Print the monitoring cadence for a strategy")
    p.add_argument(
        "--record-value",
        nargs=2,
        default=None,
        metavar=("WALLET_ID", "VALUE"),
        help="Record a new current portfolio value for a wallet and print it",
    )
    p.add_argument("--db-name", default=None, help="MongoDB database name (default from MONGODB_DB)")
    p.add_argument("--price-feed", default=None, choices=list(PRICE_FEEDS), help="Token price feed")
    return p


def parse_args(parser: argparse.ArgumentParser, argv: Optional[list] = None) -> argparse.Namespace:
    args = parser.parse_args(argv)
    if args.record_value:
        wallet_id, raw = args.record_value
        try:
            amount = float(raw)
        except ValueError:
            parser.error(f"--record-value: not a number: {raw!r}")
        if amount < 0:
            parser.error("--record-value: portfolio value must be >= 0")
        args.record_value = (wallet_id, amount)
    return args


def _print_json(obj) -> None:
    print(json.dumps(jsonify(obj), indent=2, default=str))


async def _run_forever(service: PortfolioMonitoringService, interval_minutes: Optional[float]) -> None:
    stop_event = asyncio.Event()

    def _request_stop(*_args: object) -> None:
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_stop)
        except NotImplementedError:
            signal.signal(sig, lambda *_a: _request_stop())

    handle = service.start_automated_monitoring(interval_minutes, run_immediately=True)
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutdown requested; waiting for in-flight pass")
        await handle.stop()


async def _amain() -> int:
    load_dotenv()
    parser = _build_arg_parser()
    args = parse_args(parser)

    if args.frequency:
        print(PortfolioMonitoringService.get_monitoring_frequency(args.frequency))
        return 0

    cfg = load_config()
    setup_logging(level=cfg.logging.level, log_dir=cfg.logging.log_dir, json_logs=cfg.logging.json_logs)
    if args.price_feed:
        cfg = replace(cfg, price_feed=args.price_feed)

    mongo = MongoManager(db_name=args.db_name or cfg.mongodb_db, uri=cfg.mongodb_uri)
    await mongo.connect()
    service = PortfolioMonitoringService.from_config(cfg, mongo=mongo)
    try:
        if args.ensure_indexes:
            await mongo.ensure_indexes()
            logger.info("Indexes ensured on {}", mongo.db_name)
            return 0

        if args.agent_stats:
            _print_json(await service.get_agent_audit_stats(args.agent_stats))
            return 0

        if args.record_value:
            wallet_id, amount = args.record_value
            value = await service.record_portfolio_value(wallet_id, amount)
            _print_json(value.model_dump(mode="json"))
            return 0

        logger.info(
            "Starting monitor db={} price_feed={} max_concurrency={} cooldown_hours={}",
            mongo.db_name,
            cfg.price_feed,
            cfg.monitor.max_concurrency,
            cfg.monitor.trigger_cooldown_hours,
        )
        if args.once:
            report = await service.monitor_all_portfolios()
            _print_json(report.model_dump(mode="json"))
            return 0

        await mongo.ensure_indexes()
        await _run_forever(service, args.interval_minutes)
        return 0
    finally:
        await service.close()


def main() -> None:
    raise SystemExit(asyncio.run(_amain()))


if __name__ == "__main__":
    main()
