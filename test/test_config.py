from __future__ import annotations

import pytest

from broken_links.config import (
    DEFAULT_CONFIG,
    ConfigurationError,
    build_options,
    load_config,
    parse_expected_status,
)
from broken_links.models import (
    ExpectedStatus,
    LinkCheckOptions,
    PerLinkOption,
    ScreenshotOptions,
    StatusClass,
)

ORIGIN = "https://example.com"


def test_defaults():
    options = build_options(ORIGIN)
    assert options == LinkCheckOptions(
        origin_uri=ORIGIN,
        link_limit=50,
        query_selector_all="a",
        get_attributes=["href"],
        link_order="FIRST_N",
        link_timeout_millis=30_000,
        max_retries=0,
        wait_for_selector="",
        per_link_options={},
        total_synthetic_timeout_millis=60_000,
        screenshot_options=ScreenshotOptions(capture_condition="FAILING", storage_location=""),
    )


def test_overrides_and_normalization():
    options = build_options(
        ORIGIN,
        {
            "link_limit": 3,
            "link_order": "random",
            "max_retries": 2,
            "screenshot_options": {"capture_condition": "all"},
            "per_link_options": {
                "https://example.com/old": {"expected_status_code": {"status_class": "3xx"}},
                "https://example.com/slow": {"link_timeout_millis": 10_000},
            },
        },
    )
    assert options.link_limit == 3
    assert options.link_order == "RANDOM"
    assert options.max_retries == 2
    assert options.screenshot_options == ScreenshotOptions("ALL", "")
    assert options.per_link_options == {
        "https://example.com/old": PerLinkOption(
            expected_status_code=ExpectedStatus.of_class(StatusClass.STATUS_CLASS_3XX)
        ),
        "https://example.com/slow": PerLinkOption(link_timeout_millis=10_000),
    }


def test_file_origin_is_allowed():
    assert build_options("file:///tmp/index.html").origin_uri == "file:///tmp/index.html"


@pytest.mark.parametrize(
    "origin",
    ["", "example.com", "not a url", "ftp://example.com", "https://", "mailto:a@b.c"],
)
def test_bad_origin_is_rejected(origin):
    with pytest.raises(ConfigurationError):
        build_options(origin)


@pytest.mark.parametrize(
    "raw",
    [
        {"link_limit": 0},
        {"link_limit": "5"},
        {"max_retries": -1},
        {"link_timeout_millis": 0},
        {"link_timeout_millis": 70_000},
        {"total_synthetic_timeout_millis": True},
        {"link_order": "LAST_N"},
        {"screenshot_options": {"capture_condition": "SOMETIMES"}},
        {"screenshot_options": "ALL"},
        {"query_selector_all": ""},
        {"get_attributes": []},
        {"get_attributes": "href"},
        {"per_link_options": {"relative/path": {"link_timeout_millis": 5}}},
        {"per_link_options": {"https://example.com/a": {"expected_status_code": {}}}},
        {"per_link_options": {"https://example.com/a": {"expected_status_code": 99}}},
        {"per_link_options": {"https://example.com/a": {"link_timeout_millis": -5}}},
        {"per_link_options": ["https://example.com/a"]},
        {"no_such_option": 1},
    ],
)
def test_invalid_options_are_rejected(raw):
    with pytest.raises(ConfigurationError):
        build_options(ORIGIN, raw)


@pytest.mark.parametrize(
    "value, expected",
    [
        (404, ExpectedStatus.exact(404)),
        ({"status_value": 200}, ExpectedStatus.exact(200)),
        ({"status_class": "STATUS_CLASS_5XX"}, ExpectedStatus.of_class(StatusClass.STATUS_CLASS_5XX)),
        ({"status_class": "1xx"}, ExpectedStatus.of_class(StatusClass.STATUS_CLASS_1XX)),
        ({"status_class": StatusClass.STATUS_CLASS_2XX, "status_value": None},
         ExpectedStatus.of_class(StatusClass.STATUS_CLASS_2XX)),
    ],
)
def test_parse_expected_status(value, expected):
    assert parse_expected_status(value) == expected


@pytest.mark.parametrize(
    "value",
    [
        {"status_value": 200, "status_class": "2xx"},
        {"status_class": "6xx"},
        {"status_value": "200"},
        True,
        "200",
        None,
    ],
)
def test_parse_expected_status_rejects(value):
    with pytest.raises(ConfigurationError):
        parse_expected_status(value)


def test_load_config_defaults_when_no_pyproject(tmp_path):
    config = load_config(tmp_path / "pyproject.toml")
    assert config == DEFAULT_CONFIG
    # a deep copy: mutating it must not leak into the defaults
    config["options"]["link_limit"] = 1
    assert DEFAULT_CONFIG["options"]["link_limit"] == 50


def test_load_config_merges_tool_section(tmp_path):
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        """
[tool.broken_links]
driver = "httpx"
check_id = "nightly"

[tool.broken_links.options]
link_limit = 10
max_retries = 1

[tool.broken_links.storage]
directory = "os-default"
""",
        encoding="utf-8",
    )
    config = load_config(pyproject)
    assert config["driver"] == "httpx"
    assert config["check_id"] == "nightly"
    assert config["options"]["link_limit"] == 10
    assert config["options"]["max_retries"] == 1
    # untouched keys keep their defaults
    assert config["options"]["link_order"] == "FIRST_N"
    assert config["storage"] == {"enabled": True, "directory": "os-default"}


def test_load_config_ignores_broken_toml(tmp_path):
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text("[tool.broken_links\nthis is not toml", encoding="utf-8")
    assert load_config(pyproject) == DEFAULT_CONFIG


@pytest.mark.parametrize(
    "value, expected",
    [
        (ExpectedStatus(status_class="2XX"), ExpectedStatus.of_class(StatusClass.STATUS_CLASS_2XX)),
        (ExpectedStatus(status_class="status_class_4xx"), ExpectedStatus.of_class(StatusClass.STATUS_CLASS_4XX)),
        (ExpectedStatus.exact(418), ExpectedStatus.exact(418)),
    ],
)
def test_expected_status_objects_are_normalized(value, expected):
    assert parse_expected_status(value) == expected
    options = build_options(
        ORIGIN, {"per_link_options": {"https://example.com/a": {"expected_status_code": value}}}
    )
    assert options.per_link_options["https://example.com/a"].expected_status_code == expected


@pytest.mark.parametrize(
    "value",
    [
        ExpectedStatus(status_class="9XX"),
        ExpectedStatus(status_value=42),
        ExpectedStatus(status_value="200"),
        ExpectedStatus(),
        ExpectedStatus(status_value=200, status_class=StatusClass.STATUS_CLASS_2XX),
    ],
)
def test_invalid_expected_status_objects_are_rejected(value):
    with pytest.raises(ConfigurationError):
        parse_expected_status(value)
    with pytest.raises(ConfigurationError):
        build_options(
            ORIGIN, {"per_link_options": {"https://example.com/a": {"expected_status_code": value}}}
        )
