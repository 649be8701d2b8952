from __future__ import annotations

import io
import json

import pytest

from broken_links import cli
from broken_links.aggregation import create_report
from broken_links.config import ConfigurationError, build_options
from broken_links.models import DEFAULT_EXPECTED_STATUS, BaseError, LinkResult

ORIGIN = "https://example.com"


def _result(uri: str, status: int, passed: bool, is_origin: bool = False) -> LinkResult:
    return LinkResult(
        link_passed=passed,
        expected_status_code=DEFAULT_EXPECTED_STATUS,
        source_uri=ORIGIN,
        target_uri=uri,
        anchor_text="",
        html_element="" if is_origin else "a",
        status_code=status,
        error_type="" if passed else "BrokenLinksSynthetic_IncorrectStatusCode",
        error_message="" if passed else f"{uri} returned status code {status}",
        is_origin=is_origin,
    )


def _fake_check_url(report_for, seen):
    async def fake(origin_uri, *, options=None, driver=None, config=None, pyproject_path=None):
        seen.update(origin_uri=origin_uri, options=options, driver=driver)
        return report_for(origin_uri, options or {})

    return fake


def _report(failing: bool = False, errors=()):
    followed = [_result(f"{ORIGIN}/a", 200, True)]
    if failing:
        followed.append(_result(f"{ORIGIN}/b", 404, False))
    return create_report(
        "2024-01-01T00:00:00.000Z",
        build_options(ORIGIN),
        _result(ORIGIN, 200, True, is_origin=True),
        followed,
        errors=list(errors),
    )


@pytest.mark.asyncio
async def test_all_passing_exits_zero(monkeypatch):
    seen: dict = {}
    monkeypatch.setattr(cli, "check_url", _fake_check_url(lambda *_: _report(), seen))
    out = io.StringIO()
    code = await cli.async_main(["check", ORIGIN], stdout=out)
    assert code == cli.EXIT_OK
    text = out.getvalue()
    assert "Checking links on: https://example.com" in text
    assert "Links: 2 (passing 2, failing 0)" in text
    assert "[PASS] 200 https://example.com/a" in text
    assert seen["options"] == {}
    assert seen["driver"] is None


@pytest.mark.asyncio
async def test_failing_link_exits_one(monkeypatch):
    monkeypatch.setattr(cli, "check_url", _fake_check_url(lambda *_: _report(failing=True), {}))
    out = io.StringIO()
    code = await cli.async_main(["check", ORIGIN], stdout=out)
    assert code == cli.EXIT_FAILING_LINKS
    assert "[FAIL] 404 https://example.com/b" in out.getvalue()


@pytest.mark.asyncio
async def test_run_errors_exit_one(monkeypatch):
    report = _report(errors=[BaseError("BrokenLinksSynthetic_LinkCheckError", "target closed")])
    monkeypatch.setattr(cli, "check_url", _fake_check_url(lambda *_: report, {}))
    out = io.StringIO()
    assert await cli.async_main(["check", ORIGIN], stdout=out) == cli.EXIT_FAILING_LINKS
    assert "--- Errors Encountered ---" in out.getvalue()


@pytest.mark.asyncio
async def test_configuration_error_exits_two(monkeypatch):
    async def boom(*args, **kwargs):
        raise ConfigurationError("link_limit must be a positive integer")

    monkeypatch.setattr(cli, "check_url", boom)
    out = io.StringIO()
    code = await cli.async_main(["check", ORIGIN, "--link-limit", "0"], stdout=out)
    assert code == cli.EXIT_CONFIG_ERROR
    assert "Configuration error: link_limit must be a positive integer" in out.getvalue()


@pytest.mark.asyncio
async def test_flags_become_options(monkeypatch):
    seen: dict = {}
    monkeypatch.setattr(cli, "check_url", _fake_check_url(lambda *_: _report(), seen))
    argv = [
        "check",
        ORIGIN,
        "--driver", "httpx",
        "--link-limit", "5",
        "--link-order", "RANDOM",
        "--link-timeout", "2000",
        "--max-retries", "2",
        "--total-timeout", "9000",
        "--selector", "a, link",
        "--attribute", "href",
        "--attribute", "data-href",
        "--wait-for-selector", "#main",
        "--expect", "https://example.com/old=301",
        "--expect", "https://example.com/gone=4xx",
        "--screenshots", "ALL",
        "--storage-location", "bucket/shots",
    ]
    await cli.async_main(argv, stdout=io.StringIO())
    assert seen["driver"] == "httpx"
    assert seen["options"] == {
        "link_limit": 5,
        "link_order": "RANDOM",
        "link_timeout_millis": 2000,
        "max_retries": 2,
        "total_synthetic_timeout_millis": 9000,
        "query_selector_all": "a, link",
        "get_attributes": ["href", "data-href"],
        "wait_for_selector": "#main",
        "screenshot_options": {"capture_condition": "ALL", "storage_location": "bucket/shots"},
        "per_link_options": {
            "https://example.com/old": {"expected_status_code": {"status_value": 301}},
            "https://example.com/gone": {"expected_status_code": {"status_class": "4xx"}},
        },
    }
    # what the CLI produces must be accepted by the option builder
    build_options(ORIGIN, seen["options"])


def test_bad_expectation_is_a_usage_error():
    with pytest.raises(SystemExit):
        cli._build_parser().parse_args(["check", ORIGIN, "--expect", "no-equals-sign"])


@pytest.mark.asyncio
async def test_json_report_is_written(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "check_url", _fake_check_url(lambda *_: _report(failing=True), {}))
    target = tmp_path / "out" / "report.json"
    out = io.StringIO()
    await cli.async_main(["check", ORIGIN, "--json", str(target)], stdout=out)
    data = json.loads(target.read_text(encoding="utf-8"))
    assert data["link_count"] == 3
    assert data["failing_link_count"] == 1
    assert data["origin_link_result"]["is_origin"] is True
    assert data["followed_link_results"][1]["status_code"] == 404
    assert data["options"]["link_order"] == "FIRST_N"
    assert data["followed_link_results"][0]["expected_status_code"]["status_class"] == "STATUS_CLASS_2XX"
    assert f"Full report written to {target}" in out.getvalue()
