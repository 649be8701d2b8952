# Entrypoint for the broken_links package.
# This file makes the public API available to programmers.

from __future__ import annotations

from broken_links.__about__ import __version__
from broken_links.api import check_url, run_link_check
from broken_links.config import ConfigurationError, build_options
from broken_links.drivers import PageDriver, PageDriverError
from broken_links.models import (
    AggregateReport,
    ExpectedStatus,
    LinkCandidate,
    LinkCheckOptions,
    LinkResult,
    StatusClass,
)

# The __all__ variable defines the public API of the package.
__all__ = [
    "check_url",
    "run_link_check",
    "build_options",
    "ConfigurationError",
    "PageDriver",
    "PageDriverError",
    "AggregateReport",
    "ExpectedStatus",
    "LinkCandidate",
    "LinkCheckOptions",
    "LinkResult",
    "StatusClass",
    "__version__",
]
