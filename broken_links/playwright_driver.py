# broken_links/playwright_driver.py
"""
Playwright-based page driver.

- One headless Chromium, one context, one page per run.
- The HTTP cache is bypassed so every check really reaches the target.
- Link extraction renders the page, then delegates to link_logic.py.

Config keys consumed:
  - user_agent: str
  - headless: bool
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from playwright.async_api import (
    Browser,
    BrowserContext,
    Page,
    Playwright,
    Route,
    async_playwright,
)
from playwright.async_api import Error as PlaywrightError

from broken_links.drivers import PageDriverError
from broken_links.link_logic import extract_link_candidates
from broken_links.models import LinkCandidate, PageResponse

log = logging.getLogger(__name__)

BLANK_PAGE = "about:blank"
RESET_TIMEOUT_MILLIS = 1_000


async def _continue_route(route: Route) -> None:
    await route.continue_()


@dataclass
class PlaywrightPageDriver:
    """Drives a real browser so JS-rendered links and client-side routing are seen."""

    config: Dict[str, Any] = field(default_factory=dict)

    # Playwright state
    _playwright: Optional[Playwright] = field(default=None, init=False, repr=False)
    _browser: Optional[Browser] = field(default=None, init=False, repr=False)
    _context: Optional[BrowserContext] = field(default=None, init=False, repr=False)
    _page: Optional[Page] = field(default=None, init=False, repr=False)

    async def __aenter__(self) -> "PlaywrightPageDriver":
        """Starts Playwright, launches Chromium, opens a cache-less page."""
        log.info("Starting headless browser session...")
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=bool(self.config.get("headless", True))
            )
            self._context = await self._browser.new_context(
                user_agent=self.config.get("user_agent"),
                # service workers can answer from their own cache
                service_workers="block",
            )
            self._page = await self._context.new_page()
            # routing every request disables the browser's HTTP cache
            await self._page.route("**/*", _continue_route)
        except PlaywrightError as e:
            await self._close()
            raise PageDriverError(f"An error occurred while opening a new page: {e}") from e
        log.info("Browser session ready.")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Tears down the browser cleanly."""
        log.info("Closing headless browser session...")
        await self._close()
        log.info("Browser session closed.")

    async def _close(self) -> None:
        try:
            if self._browser is not None:
                await self._browser.close()
        except PlaywrightError as e:
            log.warning("Failed to close browser: %s", e)
        finally:
            if self._playwright is not None:
                await self._playwright.stop()
            self._browser = self._context = self._page = self._playwright = None

    def _require_page(self) -> Page:
        if self._page is None or self._page.is_closed():
            raise PageDriverError("The browser page is closed or was never opened.")
        return self._page

    async def navigate(self, uri: str, timeout_millis: int) -> Optional[PageResponse]:
        page = self._require_page()
        log.debug("Navigating to %s (timeout=%sms)...", uri, timeout_millis)
        response = await page.goto(uri, wait_until="load", timeout=timeout_millis)
        if response is None:
            return None
        return PageResponse(
            status=response.status,
            url=response.url,
            headers=dict(response.headers),
        )

    async def resolve_links(
        self, query_selector_all: str, get_attributes: List[str]
    ) -> List[LinkCandidate]:
        page = self._require_page()
        html = await page.content()
        soup = BeautifulSoup(html, "html.parser")
        links = extract_link_candidates(soup, page.url, query_selector_all, get_attributes)
        log.info("Found %d link(s) on %s.", len(links), page.url)
        return links

    async def wait_for_selector(self, selector: str, timeout_millis: int) -> None:
        page = self._require_page()
        await page.wait_for_selector(selector, timeout=timeout_millis)

    async def reset(self) -> None:
        if self._page is None or self._page.is_closed():
            return
        try:
            await self._page.goto(BLANK_PAGE, timeout=RESET_TIMEOUT_MILLIS)
        except PlaywrightError as e:
            log.debug("Ignoring failure to reset page: %s", e)

    async def screenshot(self) -> bytes:
        page = self._require_page()
        return await page.screenshot(full_page=True)
