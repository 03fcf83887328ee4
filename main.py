# main.py

"""Entry point for the pagewatch competitor monitor CLI."""

import argparse
import logging
import sys
from pathlib import Path

from src.config.logging_config import setup_logging

logger = logging.getLogger("pagewatch.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="pagewatch",
        description="Competitor page content and price monitor.",
    )
    parser.add_argument(
        "--db",
        default=None,
        dest="db_path",
        help="SQLite database path (default: data/pagewatch.db).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress (INFO) on the console, not just warnings.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    comp = sub.add_parser("add-competitor", help="Register a competitor.")
    comp.add_argument("name")
    comp.add_argument("website_url")
    comp.add_argument(
        "-r",
        "--recipient",
        default=None,
        dest="alert_recipient",
        help="Webhook URL for this competitor's alerts.",
    )

    page = sub.add_parser("add-page", help="Monitor a page of a competitor.")
    page.add_argument("competitor_id", type=int)
    page.add_argument("url")
    page.add_argument("-l", "--label", default="Homepage")

    check_page = sub.add_parser("check-page", help="Check a single page.")
    check_page.add_argument("page_id", type=int)

    check_comp = sub.add_parser(
        "check-competitor", help="Check all pages of a competitor.",
    )
    check_comp.add_argument("competitor_id", type=int)

    sub.add_parser("check-all", help="Check every active competitor.")

    fetch = sub.add_parser(
        "fetch", help="Preview URLs and their detected price.",
    )
    fetch.add_argument("urls", nargs="+", metavar="url")

    changes = sub.add_parser("changes", help="List recent changes.")
    changes.add_argument("-p", "--page", type=int, default=None)
    changes.add_argument(
        "-c", "--competitor", type=int, default=None,
    )
    changes.add_argument("-n", "--limit", type=int, default=20)
    changes.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="table",
        dest="output_format",
        help="Output format (default: table).",
    )
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    """Run the selected subcommand and return its exit code."""
    from src.cli import runner
    from src.storage.monitor_db import MonitorDB

    if args.command == "fetch":
        from src.scrapers.page_fetcher import PageFetcher

        return runner.run_fetch(PageFetcher(), args.urls)

    store = MonitorDB(Path(args.db_path) if args.db_path else None)
    try:
        if args.command == "add-competitor":
            return runner.run_add_competitor(
                store, args.name, args.website_url, args.alert_recipient,
            )
        if args.command == "add-page":
            return runner.run_add_page(
                store, args.competitor_id, args.url, args.label,
            )
        if args.command == "changes":
            return runner.run_changes(
                store,
                args.page,
                args.competitor,
                args.limit,
                args.output_format,
            )

        monitor = runner.build_monitor(store)
        if args.command == "check-page":
            return runner.run_check_page(monitor, args.page_id)
        if args.command == "check-competitor":
            return runner.run_check_competitor(monitor, args.competitor_id)
        return runner.run_check_all(monitor)
    finally:
        store.close()


def main() -> None:
    """Parse arguments and route to a subcommand."""
    args = _build_parser().parse_args()
    log_file = setup_logging(
        console_level=logging.INFO if args.verbose else None,
    )
    logger.info("pagewatch %s starting, log file: %s", args.command, log_file)
    try:
        exit_code = _dispatch(args)
    except Exception:
        logger.critical("Fatal error in %s", args.command, exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
