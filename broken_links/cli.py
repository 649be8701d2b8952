# broken_links/cli.py
# Defines the command-line interface using argparse.

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import IO, Any, Sequence

from broken_links import __version__
from broken_links.api import DRIVERS, check_url
from broken_links.config import ConfigurationError
from broken_links.models import CAPTURE_CONDITIONS, LINK_ORDERS
from broken_links.ui import (
    render_check_header,
    render_errors_section,
    render_links_section,
    render_summary_line,
)

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILING_LINKS = 1
EXIT_CONFIG_ERROR = 2


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _json_default(o: Any) -> Any:
    # Minimal, safe encoder for dataclasses, enums and datetimes.
    if isinstance(o, datetime):
        return o.isoformat()
    if isinstance(o, Enum):
        return o.value
    if is_dataclass(o):
        return asdict(o)  # type: ignore[arg-type]
    return str(o)


def _parse_expectation(text: str) -> tuple[str, dict[str, Any]]:
    """'https://x/y=304' -> exact code, 'https://x/y=3xx' -> status class."""
    uri, sep, status = text.rpartition("=")
    if not sep or not uri or not status:
        raise argparse.ArgumentTypeError(f"expected URI=STATUS, got {text!r}")
    status = status.strip()
    if status.isdigit():
        return uri, {"status_value": int(status)}
    return uri, {"status_class": status}


def _options_from_args(args: argparse.Namespace) -> dict[str, Any]:
    """Only flags the user actually gave; everything else comes from config."""
    options: dict[str, Any] = {}
    simple = {
        "link_limit": args.link_limit,
        "link_order": args.link_order,
        "link_timeout_millis": args.link_timeout,
        "max_retries": args.max_retries,
        "total_synthetic_timeout_millis": args.total_timeout,
        "query_selector_all": args.selector,
        "get_attributes": args.attributes,
        "wait_for_selector": args.wait_for_selector,
    }
    options.update({k: v for k, v in simple.items() if v is not None})

    screenshot: dict[str, Any] = {}
    if args.screenshots is not None:
        screenshot["capture_condition"] = args.screenshots
    if args.storage_location is not None:
        screenshot["storage_location"] = args.storage_location
    if screenshot:
        options["screenshot_options"] = screenshot

    if args.expect:
        options["per_link_options"] = {
            uri: {"expected_status_code": expected} for uri, expected in args.expect
        }
    return options


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Verify that the links on a page return the expected HTTP status.",
        prog="broken_links",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging output to stderr.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser(
        "check", help="Check the links on a page and print a summary."
    )
    check_parser.add_argument("url", help="The origin URL whose links are checked.")
    check_parser.add_argument("--driver", choices=sorted(DRIVERS), help="Page driver to use.")
    check_parser.add_argument(
        "--json",
        dest="json_output",
        metavar="FILEPATH",
        help="Also write the full report as JSON to this path.",
    )

    limits = check_parser.add_argument_group("limits")
    limits.add_argument("--link-limit", type=int, help="Maximum links to check, origin included.")
    limits.add_argument("--link-order", choices=LINK_ORDERS, help="Which links fill the limit.")
    limits.add_argument("--link-timeout", type=int, metavar="MILLIS", help="Per-attempt timeout.")
    limits.add_argument("--max-retries", type=int, help="Extra attempts for a failing link.")
    limits.add_argument("--total-timeout", type=int, metavar="MILLIS", help="Budget for the whole run.")

    scraping = check_parser.add_argument_group("scraping")
    scraping.add_argument("--selector", help="CSS selector for link elements (default: a).")
    scraping.add_argument(
        "--attribute",
        dest="attributes",
        action="append",
        help="Attribute holding the URL; repeatable (default: href).",
    )
    scraping.add_argument("--wait-for-selector", help="Wait for this selector before scraping.")
    scraping.add_argument(
        "--expect",
        action="append",
        type=_parse_expectation,
        metavar="URI=STATUS",
        help="Expected status for one link, e.g. https://x.org/old=301 or https://x.org/gone=4xx.",
    )

    shots = check_parser.add_argument_group("screenshots")
    shots.add_argument("--screenshots", choices=CAPTURE_CONDITIONS, help="When to capture.")
    shots.add_argument("--storage-location", help="<bucket>/<folder> for screenshots.")
    return parser


async def async_main(
    argv: Sequence[str] | None = None, stdout: IO[str] | None = None
) -> int:
    """Async entry point for the command-line interface."""
    stdout = stdout or sys.stdout
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    render_check_header(args.url, file=stdout)
    try:
        report = await check_url(args.url, options=_options_from_args(args), driver=args.driver)
    except ConfigurationError as e:
        log.error("Invalid configuration: %s", e)
        print(f"Configuration error: {e}", file=stdout)
        return EXIT_CONFIG_ERROR

    render_summary_line(report, file=stdout)
    render_links_section(report, file=stdout)
    render_errors_section(report.errors, file=stdout)

    if args.json_output:
        out_path = Path(args.json_output)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8") as f:
            json.dump(report, f, default=_json_default, indent=2)
        print(f"Full report written to {args.json_output}", file=stdout)

    if report.failing_link_count or report.errors:
        return EXIT_FAILING_LINKS
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Synchronous wrapper for the CLI entry point."""
    return asyncio.run(async_main(argv))


if __name__ == "__main__":
    sys.exit(main())
