# broken_links/fetcher.py
"""
Retrying fetcher: one link, up to max_retries + 1 navigation attempts.

A navigation failure is data, not an exception: it is captured as ErrorInfo
and fed back into the retry loop. Only PageDriverError (the browsing context
is gone) and cancellation escape from here.
"""
from __future__ import annotations

import asyncio
import logging

from broken_links.drivers import PageDriver, PageDriverError, reset_page
from broken_links.link_logic import check_status_passing
from broken_links.models import (
    DEFAULT_EXPECTED_STATUS,
    ErrorInfo,
    ExpectedStatus,
    FetchOutcome,
    LinkCandidate,
    LinkCheckOptions,
    NavigateResponse,
    now_iso,
)

log = logging.getLogger(__name__)


def expected_status_for(options: LinkCheckOptions, target_uri: str) -> ExpectedStatus:
    """Per-link override if present (exact URI match), else the 2xx class."""
    per_link = options.per_link_options.get(target_uri)
    if per_link is not None and per_link.expected_status_code is not None:
        return per_link.expected_status_code
    return DEFAULT_EXPECTED_STATUS


def link_timeout_for(options: LinkCheckOptions, target_uri: str) -> int:
    per_link = options.per_link_options.get(target_uri)
    if per_link is not None and per_link.link_timeout_millis is not None:
        return per_link.link_timeout_millis
    return options.link_timeout_millis


async def fetch_link(
    driver: PageDriver, target_uri: str, timeout_millis: int
) -> FetchOutcome:
    """A single navigation attempt bounded by `timeout_millis`."""
    link_start_time = now_iso()
    try:
        response_or_error = await asyncio.wait_for(
            driver.navigate(target_uri, timeout_millis), timeout_millis / 1000
        )
    except PageDriverError:
        raise
    except asyncio.TimeoutError:
        response_or_error = ErrorInfo(
            kind="TimeoutError",
            message=f"Navigation timeout of {timeout_millis} ms exceeded",
        )
    except Exception as e:
        response_or_error = ErrorInfo(kind=type(e).__name__, message=str(e))
    link_end_time = now_iso()
    return FetchOutcome(response_or_error, link_start_time, link_end_time)


async def fetch_with_retry(
    driver: PageDriver,
    target_uri: str,
    expected: ExpectedStatus,
    max_retries: int,
    timeout_millis: int,
) -> NavigateResponse:
    """
    Retry until an attempt passes or attempts run out.

    An attempt passes iff it produced a response whose status satisfies
    `expected`. A response with the wrong status is a failed attempt and
    consumes a retry, the same as a transport error. When nothing passes, the
    last attempt's outcome is returned as-is.
    """
    retries_remaining = max_retries + 1
    attempts = 0
    passed = False
    outcome = FetchOutcome(None, now_iso(), now_iso())

    while retries_remaining > 0 and not passed:
        retries_remaining -= 1
        if attempts:
            # don't let a hung request from the last attempt bleed into this one
            await reset_page(driver)
        attempts += 1
        outcome = await fetch_link(driver, target_uri, timeout_millis)
        response = outcome.response
        passed = response is not None and check_status_passing(expected, response.status)
        log.debug(
            "Attempt %d for %s: %s (passed=%s)",
            attempts,
            target_uri,
            response.status if response is not None else outcome.error,
            passed,
        )

    return NavigateResponse(
        outcome=outcome,
        passed=passed,
        retries_remaining=retries_remaining,
        attempts=attempts,
    )


async def navigate(
    driver: PageDriver,
    link: LinkCandidate,
    options: LinkCheckOptions,
    expected: ExpectedStatus | None = None,
) -> NavigateResponse:
    """fetch_with_retry with timeout and expectation resolved from `options`."""
    return await fetch_with_retry(
        driver,
        link.target_uri,
        expected or expected_status_for(options, link.target_uri),
        options.max_retries,
        link_timeout_for(options, link.target_uri),
    )
