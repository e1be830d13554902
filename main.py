# main.py

"""Entry point for the price tracker command line."""

import argparse
import asyncio
import logging
import os
import sys

from price_tracker.config.logging_config import setup_logging
from price_tracker.config.settings import Settings

logger = logging.getLogger("price_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    platforms = ", ".join(p["label"] for p in Settings.PLATFORMS)

    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description="Track product prices and get alerted on drops.",
        epilog=f"Supported platforms: {platforms}",
    )
    parser.add_argument(
        "-u",
        "--user",
        default=os.getenv("PRICE_TRACKER_USER"),
        help="User id for tracker commands (default: $PRICE_TRACKER_USER).",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format (default: table).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    track = sub.add_parser("track", help="Start tracking a product URL.")
    track.add_argument("url", help="Product page URL.")
    track.add_argument(
        "-t", "--target", default=None, help="Target price for alerts.",
    )
    track.add_argument(
        "--no-wait",
        action="store_false",
        dest="wait",
        help="Return before the first scrape finishes.",
    )

    sub.add_parser("list", help="List your tracked products.")

    untrack = sub.add_parser("untrack", help="Stop tracking a product.")
    untrack.add_argument("tracker_id", type=int)

    pause = sub.add_parser("pause", help="Pause a tracker.")
    pause.add_argument("tracker_id", type=int)

    resume = sub.add_parser("resume", help="Resume a paused tracker.")
    resume.add_argument("tracker_id", type=int)

    target = sub.add_parser("set-target", help="Change a tracker's target.")
    target.add_argument("tracker_id", type=int)
    target.add_argument(
        "price", nargs="?", default=None,
        help="New target price; omit to clear it.",
    )

    show = sub.add_parser("show", help="Show a product's price history.")
    show.add_argument("product_id", type=int)
    show.add_argument(
        "-d", "--days", type=int, default=Settings.HISTORY_DAYS,
        help=f"History window in days (default: {Settings.HISTORY_DAYS}).",
    )
    show.add_argument(
        "--chart",
        action="store_true",
        default=False,
        help="Export and open a Plotly price chart.",
    )

    sub.add_parser("update-all", help="Re-scrape every tracked product.")
    sub.add_parser("check-alerts", help="Evaluate price alerts.")
    sub.add_parser("stats", help="Show admin dashboard counters.")
    return parser


def _dispatch(args: argparse.Namespace, settings: Settings) -> int:
    """Route a parsed command to its runner."""
    from price_tracker.cli import runner

    user = args.user or ""
    fmt = args.output_format

    if args.command == "track":
        return runner.run_track(
            settings, user, args.url, args.target, args.wait, fmt,
        )
    if args.command == "list":
        return runner.run_list(settings, user, fmt)
    if args.command == "untrack":
        return runner.run_untrack(settings, user, args.tracker_id)
    if args.command in ("pause", "resume"):
        return runner.run_set_active(
            settings, user, args.tracker_id, args.command == "resume",
        )
    if args.command == "set-target":
        return runner.run_set_target(
            settings, user, args.tracker_id, args.price,
        )
    if args.command == "show":
        return runner.run_show(
            settings, user, args.product_id, args.days, fmt, args.chart,
        )
    if args.command == "update-all":
        return asyncio.run(runner.run_update_all(settings))
    if args.command == "check-alerts":
        return runner.run_check_alerts(settings)
    return runner.run_stats(settings, fmt)


def main() -> None:
    """Parse arguments, set up logging and run one command."""
    parser = _build_parser()
    args = parser.parse_args()

    settings = Settings.from_env()
    log_file = setup_logging(settings)
    logger.info("price_tracker %s starting, log file: %s", args.command, log_file)

    try:
        exit_code = _dispatch(args, settings)
    except Exception:
        logger.critical("Fatal error in '%s'", args.command, exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
