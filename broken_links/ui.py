# broken_links/ui.py
# Presentation-only utilities for CLI output.
from __future__ import annotations

from typing import IO, Iterable

from broken_links.models import AggregateReport, BaseError, LinkResult


def _writeln(text: str = "", *, file: IO[str]) -> None:
    file.write(text + "\n")


def render_check_header(url: str, *, file: IO[str]) -> None:
    _writeln(f"Checking links on: {url}...", file=file)


def _render_link(result: LinkResult, *, file: IO[str]) -> None:
    verdict = "PASS" if result.link_passed else "FAIL"
    status = result.status_code if result.status_code is not None else "---"
    _writeln(f"- [{verdict}] {status} {result.target_uri}", file=file)
    if not result.link_passed and result.error_message:
        _writeln(f"    {result.error_type}: {result.error_message}", file=file)


def render_summary_line(report: AggregateReport, *, file: IO[str]) -> None:
    _writeln(
        f"\nLinks: {report.link_count} "
        f"(passing {report.passing_link_count}, failing {report.failing_link_count})",
        file=file,
    )
    _writeln(
        f"Status: 2xx={report.status2xx_count} 3xx={report.status3xx_count} "
        f"4xx={report.status4xx_count} 5xx={report.status5xx_count} "
        f"unreachable={report.unreachable_count}",
        file=file,
    )


def render_links_section(report: AggregateReport, *, file: IO[str]) -> None:
    if report.origin_link_result is None:
        return
    _writeln("\n--- Origin ---", file=file)
    _render_link(report.origin_link_result, file=file)
    if not report.followed_link_results:
        return
    _writeln("\n--- Followed Links ---", file=file)
    for result in report.followed_link_results:
        _render_link(result, file=file)


def render_errors_section(errors: Iterable[BaseError], *, file: IO[str]) -> None:
    errs = list(errors)
    if not errs:
        return
    _writeln("\n--- Errors Encountered ---", file=file)
    for e in errs:
        _writeln(f"- {e.error_type}: {e.error_message}", file=file)
