# broken_links/config.py
"""
Centralized configuration management.

Handles loading defaults, merging in settings from pyproject.toml, applying
runtime overrides, and turning raw option mappings into validated
LinkCheckOptions. Every check here runs before any network activity.
"""
from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional
from urllib.parse import urlparse

import tomli

from broken_links.models import (
    CAPTURE_CONDITIONS,
    LINK_ORDERS,
    ExpectedStatus,
    LinkCheckOptions,
    PerLinkOption,
    ScreenshotOptions,
    StatusClass,
)

log = logging.getLogger(__name__)

VALID_ORIGIN_SCHEMES = ("http", "https", "file")

# Defaults for a single run's options. Keys match LinkCheckOptions fields.
DEFAULT_OPTIONS: dict[str, Any] = {
    "link_limit": 50,
    "query_selector_all": "a",
    "get_attributes": ["href"],
    "link_order": "FIRST_N",
    "link_timeout_millis": 30_000,
    "max_retries": 0,
    "wait_for_selector": "",
    "per_link_options": {},
    "total_synthetic_timeout_millis": 60_000,
    "screenshot_options": {
        "capture_condition": "FAILING",
        "storage_location": "",
    },
}

# This is the baseline configuration dictionary.
DEFAULT_CONFIG: dict[str, Any] = {
    "driver": "playwright",  # or "httpx" for static pages without JS
    "headless": True,
    "user_agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "check_id": "local",
    "options": DEFAULT_OPTIONS,
    "storage": {
        "enabled": True,
        "directory": ".broken_links_artifacts",
    },
}


class ConfigurationError(ValueError):
    """Invalid options, detected before any network activity."""


def _deep_merge_dict(
    base: MutableMapping[str, Any], overrides: Mapping[str, Any]
) -> MutableMapping[str, Any]:
    """Recursively merge dicts."""
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), MutableMapping):
            base[key] = _deep_merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def load_config(pyproject_path: Path | None = None) -> dict[str, Any]:
    """
    Loads configuration from defaults and merges settings from pyproject.toml.

    1. Starts with DEFAULT_CONFIG.
    2. Looks for `pyproject.toml` (current directory unless a path is given).
    3. If found, merges settings from `[tool.broken_links]` over the defaults.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if pyproject_path is None:
        pyproject_path = Path.cwd() / "pyproject.toml"

    if not pyproject_path.exists():
        log.debug("No pyproject.toml found at %s. Using default config.", pyproject_path)
        return config

    try:
        with pyproject_path.open("rb") as f:
            toml_data = tomli.load(f)
    except (OSError, tomli.TOMLDecodeError) as e:
        log.warning(
            "Failed to load or parse %s: %s. Using default config.",
            pyproject_path,
            e,
            exc_info=True,
        )
        return config

    project_config = toml_data.get("tool", {}).get("broken_links", {})
    if project_config:
        log.info("Loading config from %s", pyproject_path)
        config = _deep_merge_dict(config, project_config)  # type: ignore[assignment]
    else:
        log.debug("No [tool.broken_links] section in %s.", pyproject_path)
    return config


# ---------- option parsing & validation ----------


def _is_absolute_uri(value: str, schemes: tuple[str, ...]) -> bool:
    try:
        parsed = urlparse(value)
    except (TypeError, ValueError):
        return False
    if parsed.scheme.lower() not in schemes:
        return False
    return parsed.scheme.lower() == "file" or bool(parsed.netloc)


def _parse_status_class(value: Any) -> StatusClass:
    if isinstance(value, StatusClass):
        return value
    text = str(value).strip().upper()
    if not text.startswith("STATUS_CLASS_"):
        text = f"STATUS_CLASS_{text}"
    try:
        return StatusClass(text)
    except ValueError:
        raise ConfigurationError(f"Unknown status class: {value!r}") from None


def parse_expected_status(value: Any) -> ExpectedStatus:
    """
    Accepts an ExpectedStatus, an int, or a mapping with exactly one of
    `status_value` (100..599) or `status_class` ("STATUS_CLASS_4XX" or "4XX").
    """
    if isinstance(value, ExpectedStatus):
        return parse_expected_status(
            {"status_value": value.status_value, "status_class": value.status_class}
        )
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid expected status: {value!r}")
    elif isinstance(value, int):
        expected = ExpectedStatus.exact(value)
    elif isinstance(value, Mapping):
        status_value = value.get("status_value")
        status_class = value.get("status_class")
        expected = ExpectedStatus(
            status_value=status_value,
            status_class=_parse_status_class(status_class) if status_class is not None else None,
        )
    else:
        raise ConfigurationError(f"Invalid expected status: {value!r}")

    if (expected.status_value is None) == (expected.status_class is None):
        raise ConfigurationError(
            "An expected status needs exactly one of status_value or status_class."
        )
    if expected.status_value is not None and (
        isinstance(expected.status_value, bool)
        or not isinstance(expected.status_value, int)
        or not 100 <= expected.status_value <= 599
    ):
        raise ConfigurationError(
            f"status_value must be an integer between 100 and 599, got {expected.status_value!r}"
        )
    return expected


def _positive_int(name: str, value: Any, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return value


def _parse_per_link_options(raw: Mapping[str, Any]) -> dict[str, PerLinkOption]:
    parsed: dict[str, PerLinkOption] = {}
    for uri, value in raw.items():
        if not _is_absolute_uri(uri, VALID_ORIGIN_SCHEMES):
            raise ConfigurationError(f"per_link_options key is not a valid URI: {uri!r}")
        if isinstance(value, PerLinkOption):
            value = {
                "expected_status_code": value.expected_status_code,
                "link_timeout_millis": value.link_timeout_millis,
            }
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"per_link_options[{uri!r}] must be a mapping")
        expected = value.get("expected_status_code")
        timeout = value.get("link_timeout_millis")
        parsed[uri] = PerLinkOption(
            expected_status_code=parse_expected_status(expected) if expected is not None else None,
            link_timeout_millis=(
                _positive_int(f"per_link_options[{uri!r}].link_timeout_millis", timeout)
                if timeout is not None
                else None
            ),
        )
    return parsed


def build_options(
    origin_uri: str, raw_options: Optional[Mapping[str, Any]] = None
) -> LinkCheckOptions:
    """
    Merge `raw_options` over DEFAULT_OPTIONS and validate the result.

    Raises:
        ConfigurationError: on any invalid value or combination.
    """
    merged: dict[str, Any] = copy.deepcopy(DEFAULT_OPTIONS)
    _deep_merge_dict(merged, dict(raw_options or {}))

    unknown = set(merged) - set(DEFAULT_OPTIONS)
    if unknown:
        raise ConfigurationError(f"Unknown option(s): {', '.join(sorted(unknown))}")

    if not isinstance(origin_uri, str) or not _is_absolute_uri(origin_uri, VALID_ORIGIN_SCHEMES):
        raise ConfigurationError(f"origin_uri must be an absolute http(s) or file URI: {origin_uri!r}")

    link_limit = _positive_int("link_limit", merged["link_limit"])
    max_retries = _positive_int("max_retries", merged["max_retries"], minimum=0)
    link_timeout = _positive_int("link_timeout_millis", merged["link_timeout_millis"])
    total_timeout = _positive_int(
        "total_synthetic_timeout_millis", merged["total_synthetic_timeout_millis"]
    )
    if link_timeout > total_timeout:
        raise ConfigurationError(
            "link_timeout_millis must be less than or equal to total_synthetic_timeout_millis"
        )

    if not isinstance(merged["per_link_options"], Mapping):
        raise ConfigurationError("per_link_options must be a mapping of URI to overrides")

    link_order = str(merged["link_order"]).upper()
    if link_order not in LINK_ORDERS:
        raise ConfigurationError(f"link_order must be one of {LINK_ORDERS}, got {merged['link_order']!r}")

    screenshot_raw = merged["screenshot_options"]
    if isinstance(screenshot_raw, ScreenshotOptions):
        screenshot_raw = {
            "capture_condition": screenshot_raw.capture_condition,
            "storage_location": screenshot_raw.storage_location,
        }
    if not isinstance(screenshot_raw, Mapping):
        raise ConfigurationError("screenshot_options must be a mapping")
    capture_condition = str(screenshot_raw.get("capture_condition", "FAILING")).upper()
    if capture_condition not in CAPTURE_CONDITIONS:
        raise ConfigurationError(
            f"capture_condition must be one of {CAPTURE_CONDITIONS}, got {capture_condition!r}"
        )

    selector = merged["query_selector_all"]
    if not isinstance(selector, str) or not selector.strip():
        raise ConfigurationError("query_selector_all must be a non-empty CSS selector")
    attributes = merged["get_attributes"]
    if isinstance(attributes, str) or not attributes or not all(
        isinstance(a, str) and a for a in attributes
    ):
        raise ConfigurationError("get_attributes must be a non-empty list of attribute names")

    return LinkCheckOptions(
        origin_uri=origin_uri,
        link_limit=link_limit,
        query_selector_all=selector,
        get_attributes=list(attributes),
        link_order=link_order,  # type: ignore[arg-type]
        link_timeout_millis=link_timeout,
        max_retries=max_retries,
        wait_for_selector=str(merged["wait_for_selector"] or ""),
        per_link_options=_parse_per_link_options(merged["per_link_options"]),
        total_synthetic_timeout_millis=total_timeout,
        screenshot_options=ScreenshotOptions(
            capture_condition=capture_condition,  # type: ignore[arg-type]
            storage_location=str(screenshot_raw.get("storage_location", "") or ""),
        ),
    )
