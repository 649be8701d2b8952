# broken_links/runner.py
"""
Deadline-bounded batch runner.

Links are checked one at a time on a single browsing context, in the order
given. The whole batch races a timer armed for the time left before the global
deadline (minus a margin kept for assembling the report). Whichever finishes
first wins; the loser is cancelled and awaited, so neither the timer nor an
in-flight navigation outlives the call.

Hitting the deadline is not an error: results gathered so far are returned.
A PageDriverError (or any other unexpected fault) stops the batch and becomes
one run-level error naming the link being checked.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from broken_links.drivers import PageDriver, reset_page
from broken_links.fetcher import expected_status_for, navigate
from broken_links.link_logic import should_take_screenshot
from broken_links.models import (
    BaseError,
    LinkCandidate,
    LinkCheckOptions,
    LinkResult,
    ScreenshotOutput,
)
from broken_links.storage import ArtifactStore

log = logging.getLogger(__name__)

INCORRECT_STATUS_CODE_ERROR = "BrokenLinksSynthetic_IncorrectStatusCode"
LINK_CHECK_ERROR = "BrokenLinksSynthetic_LinkCheckError"

# Reserved at the end of the time budget for building and returning the report.
FINALIZE_MARGIN_SECONDS = 0.5


@dataclass
class BatchResult:
    results: List[LinkResult] = field(default_factory=list)
    errors: List[BaseError] = field(default_factory=list)
    timed_out: bool = False


async def check_link(
    driver: PageDriver,
    link: LinkCandidate,
    options: LinkCheckOptions,
    artifact_store: Optional[ArtifactStore] = None,
    is_origin: bool = False,
) -> LinkResult:
    """Navigate to one link (with retries) and build its LinkResult."""
    expected = expected_status_for(options, link.target_uri)
    nav = await navigate(driver, link, options, expected)
    passed = nav.passed
    response = nav.outcome.response
    error = nav.outcome.error

    screenshot_output: Optional[ScreenshotOutput] = None
    if (
        artifact_store is not None
        and artifact_store.enabled
        and should_take_screenshot(options.screenshot_options.capture_condition, passed)
    ):
        screenshot_output = await artifact_store.upload_screenshot(driver, link.target_uri)

    error_type = ""
    error_message = ""
    if error is not None:
        error_type = error.kind
        error_message = error.message
    elif not passed:
        error_type = INCORRECT_STATUS_CODE_ERROR
        if response is not None:
            error_message = (
                f"{link.target_uri} returned status code {response.status} "
                f"when a {expected.describe()} was expected."
            )
        else:
            error_message = (
                f"{link.target_uri} returned no response "
                f"when a {expected.describe()} was expected."
            )

    return LinkResult(
        link_passed=passed,
        expected_status_code=expected,
        source_uri=options.origin_uri,
        target_uri=link.target_uri,
        anchor_text=link.anchor_text,
        html_element=link.html_element,
        status_code=response.status if response is not None else None,
        error_type=error_type,
        error_message=error_message,
        link_start_time=nav.outcome.start_time,
        link_end_time=nav.outcome.end_time,
        is_origin=is_origin,
        screenshot_output=screenshot_output,
    )


async def check_links(
    driver: PageDriver,
    links: Sequence[LinkCandidate],
    options: LinkCheckOptions,
    deadline: float,
    artifact_store: Optional[ArtifactStore] = None,
    *,
    finalize_margin: float = FINALIZE_MARGIN_SECONDS,
) -> BatchResult:
    """
    Check `links` sequentially until done or until `deadline`, a point on the
    running loop's clock (`asyncio.get_running_loop().time()`).
    """
    loop = asyncio.get_running_loop()
    cutoff = deadline - finalize_margin
    batch = BatchResult()

    async def sequential() -> None:
        for link in links:
            # no new link is started once the time budget is spent
            if loop.time() >= cutoff:
                batch.timed_out = True
                return
            try:
                batch.results.append(await check_link(driver, link, options, artifact_store))
            except Exception as e:
                log.error("Error while checking %s: %s", link.target_uri, e, exc_info=True)
                batch.errors.append(
                    BaseError(
                        error_type=LINK_CHECK_ERROR,
                        error_message=(
                            f"An error occurred while checking {link.target_uri}. "
                            "Please reference server logs for further information."
                        ),
                    )
                )
                return
            # single page apps can leave requests hanging; start each link from blank
            await reset_page(driver)

    worker = asyncio.ensure_future(sequential())
    timer = asyncio.ensure_future(asyncio.sleep(max(cutoff - loop.time(), 0.0)))
    try:
        done, _ = await asyncio.wait({worker, timer}, return_when=asyncio.FIRST_COMPLETED)
        if worker not in done:
            batch.timed_out = True
        elif worker.exception() is not None:
            e = worker.exception()
            log.error("Link checking stopped unexpectedly: %s", e, exc_info=e)
            batch.errors.append(
                BaseError(
                    error_type=LINK_CHECK_ERROR,
                    error_message=f"Link checking stopped unexpectedly: {e}",
                )
            )
    finally:
        for task in (worker, timer):
            if not task.done():
                task.cancel()
        await asyncio.gather(worker, timer, return_exceptions=True)

    if batch.timed_out:
        log.warning(
            "Time limit reached: checked %d of %d link(s).", len(batch.results), len(links)
        )
    else:
        log.info("Checked %d of %d link(s).", len(batch.results), len(links))
    return batch
