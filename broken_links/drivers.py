# broken_links/drivers.py
"""
The page driver contract shared by the Playwright and httpx implementations.

A driver owns exactly one browsing context for the duration of a run. Only the
batch runner (and the orchestrator, before the batch starts) may call it.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol, runtime_checkable

from broken_links.models import LinkCandidate, PageResponse

log = logging.getLogger(__name__)


class PageDriverError(RuntimeError):
    """The browsing context itself is unusable; remaining links cannot be checked."""


@runtime_checkable
class PageDriver(Protocol):
    async def navigate(self, uri: str, timeout_millis: int) -> Optional[PageResponse]:
        """
        One navigation attempt. Raises on transport failure (DNS, TLS, timeout,
        reset). Raises PageDriverError when the context is no longer usable.
        """
        ...

    async def resolve_links(
        self, query_selector_all: str, get_attributes: List[str]
    ) -> List[LinkCandidate]:
        """Absolute http(s)/file links on the current page."""
        ...

    async def wait_for_selector(self, selector: str, timeout_millis: int) -> None:
        ...

    async def reset(self) -> None:
        """Return to a neutral blank state. Best-effort; never raises."""
        ...

    async def screenshot(self) -> bytes:
        """PNG bytes of the current page."""
        ...


async def reset_page(driver: PageDriver) -> None:
    """Send the driver back to a blank page; a failure is logged and ignored."""
    try:
        await driver.reset()
    except Exception as e:
        log.warning("Ignoring failure to reset the page: %s", e)
