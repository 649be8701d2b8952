# Shared fixtures: an in-memory page driver so no test needs a browser or network.

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence, Union

import pytest

from broken_links.config import build_options
from broken_links.drivers import PageDriverError
from broken_links.models import LinkCandidate, PageResponse

HANG = "hang"

Step = Union[int, None, BaseException, str]


class FakePageDriver:
    """
    Scripted driver. `script` maps a URI to the sequence of results its
    successive navigations produce: an int status, None (no response), an
    exception to raise, or HANG to block until cancelled. The last step
    repeats. Unknown URIs answer 200.
    """

    def __init__(
        self,
        script: Optional[Dict[str, Sequence[Step]]] = None,
        links: Optional[List[LinkCandidate]] = None,
        screenshot_bytes: bytes = b"\x89PNG fake",
    ):
        self.script = {uri: list(steps) for uri, steps in (script or {}).items()}
        self.links = list(links or [])
        self.screenshot_bytes = screenshot_bytes
        self.calls: List[str] = []
        self.resets = 0
        self.closed = False
        self.waited_for: List[str] = []

    async def navigate(self, uri: str, timeout_millis: int) -> Optional[PageResponse]:
        if self.closed:
            raise PageDriverError("page closed")
        self.calls.append(uri)
        steps = self.script.get(uri, [200])
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if step == HANG:
            await asyncio.Event().wait()
        if isinstance(step, BaseException):
            raise step
        if step is None:
            return None
        return PageResponse(status=step, url=uri)

    async def resolve_links(self, query_selector_all, get_attributes):
        return list(self.links)

    async def wait_for_selector(self, selector, timeout_millis):
        self.waited_for.append(selector)

    async def reset(self) -> None:
        self.resets += 1

    async def screenshot(self) -> bytes:
        return self.screenshot_bytes


def make_links(*uris: str) -> List[LinkCandidate]:
    return [LinkCandidate(target_uri=u, anchor_text=f"text {i}", html_element="a") for i, u in enumerate(uris)]


@pytest.fixture
def origin() -> str:
    return "https://example.com"


@pytest.fixture
def options(origin):
    return build_options(origin, {"link_timeout_millis": 5_000, "total_synthetic_timeout_millis": 30_000})


class ResetFails(FakePageDriver):
    """A driver whose reset raises from the `fail_from`-th call on."""

    def __init__(self, *args, fail_from: int = 1, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_from = fail_from

    async def reset(self) -> None:
        await super().reset()
        if self.resets >= self.fail_from:
            raise PageDriverError("target page crashed during reset")
