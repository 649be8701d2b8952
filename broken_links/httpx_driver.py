# broken_links/httpx_driver.py
"""
HTTPX-based page driver.

Responsibilities:
- Fetch pages over HTTP(S) with redirects and per-request timeouts.
- Read file: URIs from the local filesystem.
- Keep the last fetched page so links can be scraped from it.

No JavaScript is executed, so links injected client-side are not seen and
screenshots are not available. Use the Playwright driver for those.

Config keys consumed:
  - user_agent: str
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse
from urllib.request import url2pathname

import httpx
from bs4 import BeautifulSoup

from broken_links.drivers import PageDriverError
from broken_links.link_logic import extract_link_candidates
from broken_links.models import LinkCandidate, PageResponse

log = logging.getLogger(__name__)


@dataclass
class HttpxPageDriver:
    """Lightweight driver for static sites."""

    config: Dict[str, Any] = field(default_factory=dict)
    transport: Optional[httpx.AsyncBaseTransport] = None

    _client: Optional[httpx.AsyncClient] = field(default=None, init=False, repr=False)
    _current_url: str = field(default="", init=False)
    _current_html: str = field(default="", init=False, repr=False)

    async def __aenter__(self) -> "HttpxPageDriver":
        headers = {}
        if self.config.get("user_agent"):
            headers["User-Agent"] = self.config["user_agent"]
        self._client = httpx.AsyncClient(
            follow_redirects=True,
            headers=headers,
            transport=self.transport,
        )
        log.info("httpx session initialized.")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client is not None:
            await self._client.aclose()
        log.info("httpx session closed.")

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            raise PageDriverError("The httpx client is closed or was never opened.")
        return self._client

    async def navigate(self, uri: str, timeout_millis: int) -> Optional[PageResponse]:
        client = self._require_client()
        self._current_url = ""
        self._current_html = ""

        if urlparse(uri).scheme.lower() == "file":
            path = Path(url2pathname(urlparse(uri).path))
            text = await asyncio.to_thread(path.read_text, encoding="utf-8", errors="replace")
            self._current_url, self._current_html = uri, text
            return PageResponse(status=200, url=uri, headers={"content-type": "text/html"})

        log.debug("Fetching %s (timeout=%sms)...", uri, timeout_millis)
        resp = await client.get(uri, timeout=timeout_millis / 1000)
        self._current_url = str(resp.url)
        ctype = resp.headers.get("content-type", "").lower()
        if "html" in ctype:
            self._current_html = resp.text
        return PageResponse(
            status=resp.status_code,
            url=str(resp.url),
            headers={k.lower(): v for k, v in resp.headers.items()},
        )

    def _soup(self) -> BeautifulSoup:
        return BeautifulSoup(self._current_html, "html.parser")

    async def resolve_links(
        self, query_selector_all: str, get_attributes: List[str]
    ) -> List[LinkCandidate]:
        self._require_client()
        if not self._current_url:
            return []
        links = extract_link_candidates(
            self._soup(), self._current_url, query_selector_all, get_attributes
        )
        log.info("Found %d link(s) on %s.", len(links), self._current_url)
        return links

    async def wait_for_selector(self, selector: str, timeout_millis: int) -> None:
        # A static page cannot change, so either the element is there or it never will be.
        self._require_client()
        if self._soup().select_one(selector) is None:
            raise LookupError(f"No element matches selector {selector!r} on {self._current_url}")

    async def reset(self) -> None:
        self._current_url = ""
        self._current_html = ""

    async def screenshot(self) -> bytes:
        raise NotImplementedError("Screenshots require the playwright driver.")
