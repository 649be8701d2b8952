# broken_links/link_logic.py
"""
Pure link-checking logic: no I/O, no browser, no clock.

- Status matching against an exact code or a status class.
- Link selection (ordering + truncation to the link limit).
- Screenshot policy.
- Link extraction from a parsed page (used by every page driver).
- Object-name and storage-path helpers for screenshot artifacts.
"""
from __future__ import annotations

import logging
import posixpath
import random
import re
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag

from broken_links.models import (
    CaptureCondition,
    ExpectedStatus,
    LinkCandidate,
    LinkOrder,
)

log = logging.getLogger(__name__)

CHECKABLE_SCHEMES = {"http", "https", "file"}

_INVALID_OBJECT_CHARS = re.compile(r'[\r\n\u007F-\u009F#\[\]*?:"<>|/]')
_WELL_KNOWN_PREFIX = re.compile(r"^\.well-known/acme-challenge/")
_WHITESPACE = re.compile(r"\s+")


# ---------- status matching ----------


def check_status_passing(expected: Optional[ExpectedStatus], actual: int) -> bool:
    """
    True iff `actual` satisfies `expected`.

    An exact value is compared for equality; a status class B accepts
    100*B through 100*B + 99. An unset expectation never passes.
    """
    if expected is None:
        return False
    if expected.status_value is not None:
        return actual == expected.status_value
    if expected.status_class is not None:
        low = expected.status_class.band * 100
        return low <= actual <= low + 99
    return False


# ---------- selection ----------


def shuffle_and_truncate(
    links: Sequence[LinkCandidate],
    link_limit: int,
    link_order: LinkOrder,
    rng: random.Random | None = None,
) -> List[LinkCandidate]:
    """
    Return a new list of at most `link_limit - 1` links; one slot of the
    limit always belongs to the origin, which is checked separately.

    RANDOM shuffles a copy uniformly (Fisher-Yates via random.shuffle) before
    truncating. FIRST_N keeps the input order. The input is never mutated.
    """
    links_to_follow = list(links)
    if link_order == "RANDOM":
        (rng or random).shuffle(links_to_follow)
    return links_to_follow[: max(link_limit - 1, 0)]


# ---------- screenshots ----------


def should_take_screenshot(capture_condition: CaptureCondition, passed: bool) -> bool:
    return capture_condition == "ALL" or (capture_condition == "FAILING" and not passed)


# ---------- URL helpers ----------


def _scheme(u: str) -> str:
    try:
        return urlparse(u).scheme.lower()
    except ValueError:
        return ""


def is_checkable_url(u: str) -> bool:
    """Return True iff the URL uses a scheme a page driver can navigate to."""
    return _scheme(u) in CHECKABLE_SCHEMES


def qualify_url(value: str, base_uri: str) -> str | None:
    """
    Resolve `value` against `base_uri`. Returns None for empty values and for
    anything that does not end up http(s) or file. file: URIs are kept verbatim.
    """
    value = (value or "").strip()
    if not value:
        return None
    if value.lower().startswith("file:"):
        return value
    try:
        qualified = urljoin(base_uri, value)
    except ValueError:
        log.debug("Could not resolve %r against %s", value, base_uri)
        return None
    return qualified if is_checkable_url(qualified) else None


def extract_link_candidates(
    soup: BeautifulSoup,
    base_uri: str,
    query_selector_all: str,
    get_attributes: Iterable[str],
) -> List[LinkCandidate]:
    """
    Every element matching the CSS selector yields one candidate per attribute
    that holds a checkable URL. Order follows the document, then the attribute list.
    """
    attributes = list(get_attributes)
    out: List[LinkCandidate] = []
    for element in soup.select(query_selector_all):
        if not isinstance(element, Tag):
            continue
        anchor_text = element.get_text().strip()
        for attr in attributes:
            raw = element.get(attr)
            if isinstance(raw, list):
                raw = " ".join(raw)
            qualified = qualify_url(raw or "", base_uri)
            if qualified is None:
                continue
            out.append(
                LinkCandidate(
                    target_uri=qualified,
                    anchor_text=anchor_text,
                    html_element=element.name.lower(),
                )
            )
    return out


# ---------- artifact naming ----------


def sanitize_object_name(input_string: str | None) -> str:
    """
    Make a string safe to use as a stored object name.

    - empty, "." and ".." become "_"
    - a leading ".well-known/acme-challenge/" becomes "_"
    - control characters, path separators and #[]*?:"<>| become "_"
    - surrounding whitespace is trimmed, inner runs of whitespace become "_"
    """
    if not input_string or input_string in (".", ".."):
        return "_"
    name = _WELL_KNOWN_PREFIX.sub("_", input_string)
    name = _INVALID_OBJECT_CHARS.sub("_", name)
    return _WHITESPACE.sub("_", name.strip())


def get_storage_path_to_execution(
    storage_location: str, check_id: str, execution_id: str
) -> str:
    """
    Folder for one execution's artifacts, relative to the storage root.

    `storage_location` is "<root>/<folder...>"; only the folder part is kept.
    """
    try:
        write_destination = ""
        first_slash = storage_location.find("/")
        if first_slash != -1:
            write_destination = storage_location[first_slash + 1 :]
        if write_destination and not write_destination.endswith("/"):
            write_destination += "/"
        return posixpath.join(write_destination, check_id, execution_id)
    except (AttributeError, TypeError):
        return ""
