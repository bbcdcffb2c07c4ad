"""Entry point for the SlowDown device client."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

from slowdown_shared.errors import SlowDownError
from slowdown_shared.logs import setup_logging
from slowdown_shared.quota import format_countdown, format_minutes

from .api_client import ApiClient
from .cache import LocalCache
from .config import Config, load_config
from .loop import SlowDownSession, run_session
from .reconcile import ReconcileOutcome
from .usage_source import build_usage_source

logger = logging.getLogger(__name__)


def _load(args: argparse.Namespace) -> Config:
    config_path: Path = args.config
    if not config_path.exists():
        logger.error("Configuration file not found: %s", config_path)
        sys.exit(1)
    config = load_config(config_path)
    if not config.auth_token:
        logger.error("No auth token configured; sign in and set auth_token in %s", config_path)
        sys.exit(1)
    return config


def _api(config: Config) -> ApiClient:
    return ApiClient(config.api_base_url, config.auth_token, timeout=config.request_timeout_seconds)


def _session(config: Config, api: ApiClient) -> SlowDownSession:
    source = build_usage_source(config.usage_snapshot_path, config.timezone_offset_hours)
    return SlowDownSession(config, api, source, LocalCache(config.cache_dir))


async def _run(config: Config) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops; Ctrl+C still raises KeyboardInterrupt
            pass

    async with _api(config) as api:
        session = _session(config, api)
        await run_session(session, stop)


async def _status(config: Config) -> int:
    async with _api(config) as api:
        session = _session(config, api)
        outcome = await session.refresh()

    state = session.state
    quota = session.quota()
    print(f"Date:       {state.date_key}")
    print(f"Used:       {format_minutes(quota.today_used_minutes)}")
    print(f"Allowed:    {format_minutes(quota.total_allowed_minutes)} "
          f"({quota.daily_limit_minutes} + {quota.bonus_minutes} bonus)")
    print(f"Remaining:  {format_countdown(quota.remaining_minutes)}")
    if quota.is_blocked:
        print("Status:     blocked by admin")
    elif quota.is_time_up:
        print("Status:     time is up")
    if state.pending_time_request_id:
        print("Request:    waiting for approval")
    elif session.can_request_time():
        print("Request:    you can ask for more time (slowdown request-time MINUTES)")

    if outcome == ReconcileOutcome.PERMISSION_REQUIRED:
        print("Usage access is not granted on this device; usage shown is from the server.")
    elif outcome == ReconcileOutcome.OFFLINE or not state.is_online:
        print("Offline: showing cached data.")
    return 0


async def _request_time(config: Config, minutes: int, reason: str | None) -> int:
    async with _api(config) as api:
        session = _session(config, api)
        await session.refresh()
        request = await session.request_time(minutes, reason)
    print(f"Requested {minutes} more minutes (request {request.id}), waiting for approval.")
    return 0


def cmd_run(args: argparse.Namespace) -> None:
    """Run the usage tracker in the foreground."""
    setup_logging(args.verbose, args.log_file)
    config = _load(args)
    logger.info("Starting SlowDown client against %s", config.api_base_url)
    try:
        asyncio.run(_run(config))
    except KeyboardInterrupt:
        logger.info("Interrupted")


def cmd_status(args: argparse.Namespace) -> None:
    """Sync once and print today's quota."""
    setup_logging(args.verbose, args.log_file)
    config = _load(args)
    try:
        sys.exit(asyncio.run(_status(config)))
    except SlowDownError as e:
        logger.error("Status failed: %s", e.message)
        sys.exit(1)


def cmd_request_time(args: argparse.Namespace) -> None:
    """Ask an admin for more time today."""
    setup_logging(args.verbose, args.log_file)
    config = _load(args)
    try:
        sys.exit(asyncio.run(_request_time(config, args.minutes, args.reason)))
    except SlowDownError as e:
        logger.error("Request failed: %s", e.message)
        sys.exit(1)


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SlowDown usage limiter client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  slowdown                          Track usage until interrupted
  slowdown status                   Show today's remaining time
  slowdown request-time 15          Ask for 15 more minutes
  slowdown request-time 15 --reason "Homework video"
""",
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=Path("config.json"),
        help="Path to configuration file",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument("--log-file", type=Path, default=None, help="Also log to this file")

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Track usage until interrupted")
    run_parser.set_defaults(func=cmd_run)

    status_parser = subparsers.add_parser("status", help="Show today's quota")
    status_parser.set_defaults(func=cmd_status)

    request_parser = subparsers.add_parser("request-time", help="Ask for more time")
    request_parser.add_argument("minutes", type=int, help="Minutes to request")
    request_parser.add_argument("--reason", default=None, help="Why you need more time")
    request_parser.set_defaults(func=cmd_request_time)

    args = parser.parse_args()

    if args.command is None:
        cmd_run(args)
    else:
        args.func(args)


if __name__ == "__main__":
    main()
