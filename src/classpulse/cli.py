"""Summary: Command-line interface for ClassPulse.

Importance: Provides a local entry point for statistics checks and the HTTP server.
Alternatives: Use the HTTP API for everything.
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from classpulse.app import build_services
from classpulse.config import AppConfig, parse_list
from classpulse.errors import ClassPulseError
from classpulse.models import TypeFilter


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="ClassPulse CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    stats = subparsers.add_parser("stats", help="Show student email statistics")
    stats.add_argument("--days", type=int, default=None)
    stats.add_argument("--keywords", type=str, default="")
    stats.add_argument(
        "--type", dest="type_filter", choices=[item.value for item in TypeFilter], default="all"
    )
    stats.add_argument("--token", type=str, default=None)

    threads = subparsers.add_parser("threads", help="List recent student email threads")
    threads.add_argument("--max-results", type=int, default=None)
    threads.add_argument("--keywords", type=str, default="")
    threads.add_argument("--token", type=str, default=None)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None)
    serve.add_argument("--port", type=int, default=None)

    return parser


def run_cli(argv: list[str] | None = None) -> int:
    """Summary: Execute CLI commands based on arguments.

    Importance: Drives local checks without a browser.
    Alternatives: Invoke services via an HTTP API.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    logging.basicConfig(
        level=config.log_level.upper(), format="%(levelname)s %(name)s: %(message)s"
    )

    if args.command == "serve":
        import uvicorn

        from classpulse.api import create_app

        uvicorn.run(
            create_app(config),
            host=args.host or config.api_host,
            port=args.port or config.api_port,
        )
        return 0

    if args.command == "stats" and args.days is not None and args.days < 1:
        parser.error("--days must be at least 1")
    token = args.token or config.gmail_access_token
    if not token:
        parser.error("an access token is required (--token or GMAIL_ACCESS_TOKEN)")
    services = build_services(config)

    try:
        if args.command == "stats":
            result = asyncio.run(
                services.communication.get_stats(
                    token,
                    window_days=args.days,
                    keywords=parse_list(args.keywords),
                    type_filter=args.type_filter,
                )
            )
            print(f"period: {result.period_label}")
            print(f"total: {result.total}")
            print(f"sent: {result.sent}")
            print(f"received: {result.received}")
            print(f"trend: {result.trend_percent:+d}%")
            for bucket in result.daily_breakdown:
                print(
                    f"{bucket.date.isoformat()} {bucket.day}: "
                    f"sent={bucket.sent_count} received={bucket.received_count}"
                )
            return 0

        if args.command == "threads":
            threads = asyncio.run(
                services.communication.get_recent_threads(
                    token, keywords=parse_list(args.keywords), max_results=args.max_results
                )
            )
            if not threads:
                print("No threads.")
            for thread in threads:
                print(f"{thread.id}: {thread.subject} ({thread.sender}) [{thread.message_count}]")
            return 0
    except ClassPulseError as exc:
        logger.error("%s failed: %s", args.command, exc.kind)
        print(f"error ({exc.kind}): {exc.message}")
        return 1

    return 0


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
