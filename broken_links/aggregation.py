# Folds per-link results into the final report.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from broken_links.models import (
    AggregateReport,
    BaseError,
    LinkCheckOptions,
    LinkResult,
    now_iso,
)


@dataclass
class LinkCounts:
    link_count: int = 0
    passing_link_count: int = 0
    failing_link_count: int = 0
    unreachable_count: int = 0
    status2xx_count: int = 0
    status3xx_count: int = 0
    status4xx_count: int = 0
    status5xx_count: int = 0
    origin_link_result: Optional[LinkResult] = None
    followed_link_results: List[LinkResult] = field(default_factory=list)


def parse_followed_links(links: Iterable[LinkResult]) -> LinkCounts:
    """
    One pass over all results, origin included.

    Every result with a verdict counts once toward link_count and once toward
    either passing or failing. Its status code picks one bucket: 2xx..5xx, or
    unreachable for anything else, including no status at all.
    """
    counts = LinkCounts()
    for link in links:
        if link.link_passed is None:
            continue
        if link.is_origin:
            counts.origin_link_result = link
        else:
            counts.followed_link_results.append(link)

        counts.link_count += 1
        if link.link_passed:
            counts.passing_link_count += 1
        else:
            counts.failing_link_count += 1

        status_band = link.status_code // 100 if link.status_code is not None else None
        if status_band == 2:
            counts.status2xx_count += 1
        elif status_band == 3:
            counts.status3xx_count += 1
        elif status_band == 4:
            counts.status4xx_count += 1
        elif status_band == 5:
            counts.status5xx_count += 1
        else:
            counts.unreachable_count += 1
    return counts


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def get_end_time(start_time: str) -> str:
    """Now, nudged forward by a millisecond if it would not be after `start_time`."""
    end_time = now_iso()
    try:
        start = _parse_iso(start_time)
    except ValueError:
        return end_time
    end = _parse_iso(end_time)
    if end <= start:
        end = start + timedelta(milliseconds=1)
        end_time = end.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return end_time


def create_report(
    start_time: str,
    options: LinkCheckOptions,
    origin: Optional[LinkResult],
    followed: Iterable[LinkResult],
    *,
    execution_data_storage_path: str = "",
    errors: Iterable[BaseError] = (),
    runtime_metadata: Optional[Dict[str, str]] = None,
) -> AggregateReport:
    """Assemble the report; the end time is taken here."""
    all_links: List[LinkResult] = [origin] if origin is not None else []
    all_links.extend(followed)
    counts = parse_followed_links(all_links)
    return AggregateReport(
        link_count=counts.link_count,
        passing_link_count=counts.passing_link_count,
        failing_link_count=counts.failing_link_count,
        unreachable_count=counts.unreachable_count,
        status2xx_count=counts.status2xx_count,
        status3xx_count=counts.status3xx_count,
        status4xx_count=counts.status4xx_count,
        status5xx_count=counts.status5xx_count,
        options=options,
        origin_link_result=counts.origin_link_result,
        followed_link_results=counts.followed_link_results,
        execution_data_storage_path=execution_data_storage_path,
        errors=list(errors),
        runtime_metadata=dict(runtime_metadata or {}),
        start_time=start_time,
        end_time=get_end_time(start_time),
    )
