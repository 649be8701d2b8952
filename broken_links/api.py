# broken_links/api.py
# The primary, programmer-facing API for the library.

from __future__ import annotations

import asyncio
import copy
import dataclasses
import logging
import os
import platform
import uuid
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from broken_links.__about__ import __version__
from broken_links.aggregation import create_report
from broken_links.config import (
    ConfigurationError,
    _deep_merge_dict,
    build_options,
    load_config,
)
from broken_links.drivers import PageDriver, PageDriverError, reset_page
from broken_links.httpx_driver import HttpxPageDriver
from broken_links.link_logic import shuffle_and_truncate
from broken_links.models import (
    AggregateReport,
    BaseError,
    LinkCandidate,
    LinkCheckOptions,
    LinkResult,
    now_iso,
)
from broken_links.playwright_driver import PlaywrightPageDriver
from broken_links.runner import check_link, check_links
from broken_links.storage import ArtifactStore, StorageConfig

log = logging.getLogger(__name__)

DRIVERS = {
    "playwright": PlaywrightPageDriver,
    "httpx": HttpxPageDriver,
}

WAIT_FOR_SELECTOR_ERROR = "BrokenLinksSynthetic_WaitForSelectorError"
RUN_ERROR = "BrokenLinksSynthetic_RunError"


def get_runtime_metadata() -> Dict[str, str]:
    """Describes where this check ran; included verbatim in every report."""
    metadata = {
        "broken_links_version": __version__,
        "python_version": platform.python_version(),
    }
    for key in ("K_SERVICE", "K_REVISION"):
        if os.environ.get(key):
            metadata[key] = os.environ[key]
    return metadata


def _as_options(
    origin_uri: str, options: Union[LinkCheckOptions, Mapping[str, Any], None]
) -> LinkCheckOptions:
    """Validate whatever the caller gave us; a LinkCheckOptions is re-validated too."""
    if isinstance(options, LinkCheckOptions):
        raw = dataclasses.asdict(options)
        raw.pop("origin_uri", None)
        return build_options(origin_uri, raw)
    return build_options(origin_uri, options)


async def run_link_check(
    origin_uri: str,
    options: Union[LinkCheckOptions, Mapping[str, Any], None],
    page_driver: PageDriver,
    artifact_store: Optional[ArtifactStore] = None,
) -> AggregateReport:
    """
    Check the origin, then up to link_limit - 1 links found on it, within
    total_synthetic_timeout_millis.

    Always returns a complete report; a run cut short by the deadline or by a
    broken browsing context is reported, not raised.

    The deadline only bounds the followed links. The origin check (up to
    (max_retries + 1) * link_timeout_millis), wait_for_selector and link
    scraping run before the batch and are not cut off by it.

    Raises:
        ConfigurationError: invalid origin URI or options. Nothing has been
            fetched when this is raised.
    """
    opts = _as_options(origin_uri, options)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + opts.total_synthetic_timeout_millis / 1000
    start_time = now_iso()
    log.info("Starting link check for: %s", origin_uri)

    origin_result: Optional[LinkResult] = None
    followed: list[LinkResult] = []
    errors: list[BaseError] = []

    try:
        # Step 1: the origin itself
        origin_result = await check_link(
            page_driver, LinkCandidate(target_uri=origin_uri), opts, artifact_store, is_origin=True
        )
        if not origin_result.link_passed:
            log.warning("Origin %s did not pass; not following its links.", origin_uri)
        else:
            # Step 2: scrape and select
            if opts.wait_for_selector:
                try:
                    await page_driver.wait_for_selector(
                        opts.wait_for_selector, opts.link_timeout_millis
                    )
                except PageDriverError:
                    raise
                except Exception as e:
                    raise _WaitForSelectorFailed(opts.wait_for_selector, e) from e
            links = await page_driver.resolve_links(opts.query_selector_all, opts.get_attributes)
            selected = shuffle_and_truncate(links, opts.link_limit, opts.link_order)
            log.info("Selected %d of %d link(s) to follow.", len(selected), len(links))

            # Step 3: check them against the deadline
            await reset_page(page_driver)
            batch = await check_links(page_driver, selected, opts, deadline, artifact_store)
            followed = batch.results
            errors.extend(batch.errors)
    except _WaitForSelectorFailed as e:
        log.error("%s", e)
        errors.append(BaseError(error_type=WAIT_FOR_SELECTOR_ERROR, error_message=str(e)))
    except Exception as e:
        log.error("Link check for %s failed: %s", origin_uri, e, exc_info=True)
        errors.append(BaseError(error_type=RUN_ERROR, error_message=str(e)))

    report = create_report(
        start_time,
        opts,
        origin_result,
        followed,
        execution_data_storage_path=(
            artifact_store.execution_data_storage_path if artifact_store is not None else ""
        ),
        errors=errors,
        runtime_metadata=get_runtime_metadata(),
    )
    log.info(
        "Link check complete. %d link(s): %d passing, %d failing, %d error(s).",
        report.link_count,
        report.passing_link_count,
        report.failing_link_count,
        len(report.errors),
    )
    return report


class _WaitForSelectorFailed(Exception):
    def __init__(self, selector: str, cause: Exception):
        super().__init__(f"Waiting for selector {selector!r} failed: {cause}")


async def check_url(
    origin_uri: str,
    *,
    options: Optional[Mapping[str, Any]] = None,
    driver: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
    pyproject_path: Path | None = None,
) -> AggregateReport:
    """
    Convenience wrapper: load configuration, open the configured page driver,
    run the check and close the driver again.

    Args:
        origin_uri: The page whose links are verified.
        options: Overrides for LinkCheckOptions fields, applied over the
            `options` table of the configuration.
        driver: "playwright" or "httpx"; overrides the configuration.
        config: A full configuration dict; when omitted it is loaded from
            defaults and pyproject.toml.
        pyproject_path: Where to look for pyproject.toml.
    """
    config = copy.deepcopy(config) if config is not None else load_config(pyproject_path)
    raw_options = _deep_merge_dict(copy.deepcopy(config.get("options", {})), dict(options or {}))
    opts = build_options(origin_uri, raw_options)

    driver_name = driver or config.get("driver", "playwright")
    driver_cls = DRIVERS.get(driver_name)
    if driver_cls is None:
        raise ConfigurationError(f"Unknown driver {driver_name!r}; expected one of {sorted(DRIVERS)}")

    try:
        storage_config = StorageConfig(**config.get("storage", {}))
    except TypeError as e:
        raise ConfigurationError(f"Invalid storage configuration: {e}") from e
    store = ArtifactStore(
        storage_config,
        storage_location=opts.screenshot_options.storage_location,
        check_id=str(config.get("check_id", "local")),
        execution_id=uuid.uuid4().hex,
    )

    start_time = now_iso()
    try:
        async with driver_cls(config) as page_driver:
            return await run_link_check(origin_uri, opts, page_driver, store)
    except PageDriverError as e:
        log.error("Could not open the page driver: %s", e, exc_info=True)
        return create_report(
            start_time,
            opts,
            None,
            [],
            errors=[BaseError(error_type=type(e).__name__, error_message=str(e))],
            runtime_metadata=get_runtime_metadata(),
        )
