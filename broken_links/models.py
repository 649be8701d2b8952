# Defines the data structures used throughout the application.
# Field names mirror the broken-links result schema consumed by the monitoring
# backend; renaming any of them breaks that contract.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional, Union

LinkOrder = Literal["FIRST_N", "RANDOM"]
CaptureCondition = Literal["ALL", "FAILING", "NONE"]

LINK_ORDERS = ("FIRST_N", "RANDOM")
CAPTURE_CONDITIONS = ("ALL", "FAILING", "NONE")


def now_iso() -> str:
    """UTC timestamp in ISO 8601 with millisecond precision, e.g. 2024-01-01T00:00:00.000Z."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class StatusClass(str, Enum):
    """A band of HTTP status codes sharing the same leading digit."""

    STATUS_CLASS_1XX = "STATUS_CLASS_1XX"
    STATUS_CLASS_2XX = "STATUS_CLASS_2XX"
    STATUS_CLASS_3XX = "STATUS_CLASS_3XX"
    STATUS_CLASS_4XX = "STATUS_CLASS_4XX"
    STATUS_CLASS_5XX = "STATUS_CLASS_5XX"

    @property
    def band(self) -> int:
        """The leading digit, e.g. 4 for STATUS_CLASS_4XX."""
        return int(self.value[len("STATUS_CLASS_")])


@dataclass(frozen=True)
class ExpectedStatus:
    """
    Either an exact status code or a status class. Exactly one of the two
    fields is set on a valid expectation.
    """

    status_value: Optional[int] = None
    status_class: Optional[StatusClass] = None

    @classmethod
    def exact(cls, value: int) -> "ExpectedStatus":
        return cls(status_value=value)

    @classmethod
    def of_class(cls, status_class: StatusClass) -> "ExpectedStatus":
        return cls(status_class=status_class)

    def describe(self) -> str:
        """Human readable form used in failure messages."""
        if self.status_value is not None:
            return f"{self.status_value} status code"
        if self.status_class is not None:
            return f"{self.status_class.value} status class"
        return "unspecified status"


DEFAULT_EXPECTED_STATUS = ExpectedStatus.of_class(StatusClass.STATUS_CLASS_2XX)


@dataclass(frozen=True)
class LinkCandidate:
    """A link discovered on the origin page, already resolved to an absolute URI."""

    target_uri: str
    anchor_text: str = ""
    html_element: str = ""


@dataclass(frozen=True)
class PerLinkOption:
    """Overrides that apply to a single target URI (exact match)."""

    expected_status_code: Optional[ExpectedStatus] = None
    link_timeout_millis: Optional[int] = None


@dataclass(frozen=True)
class ScreenshotOptions:
    capture_condition: CaptureCondition = "FAILING"
    storage_location: str = ""


@dataclass
class LinkCheckOptions:
    """Per-run options. Build these through config.build_options to get validation."""

    origin_uri: str
    link_limit: int = 50
    query_selector_all: str = "a"
    get_attributes: List[str] = field(default_factory=lambda: ["href"])
    link_order: LinkOrder = "FIRST_N"
    link_timeout_millis: int = 30_000
    max_retries: int = 0
    wait_for_selector: str = ""
    per_link_options: Dict[str, PerLinkOption] = field(default_factory=dict)
    total_synthetic_timeout_millis: int = 60_000
    screenshot_options: ScreenshotOptions = field(default_factory=ScreenshotOptions)


@dataclass(frozen=True)
class PageResponse:
    """The response-like result of a navigation, independent of the driver."""

    status: int
    url: str = ""
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ErrorInfo:
    """A captured transport or navigation failure."""

    kind: str
    message: str


@dataclass(frozen=True)
class FetchOutcome:
    """Raw result of one fetch attempt; `response_or_error` is None when nothing came back."""

    response_or_error: Union[PageResponse, ErrorInfo, None]
    start_time: str
    end_time: str

    @property
    def response(self) -> Optional[PageResponse]:
        if isinstance(self.response_or_error, PageResponse):
            return self.response_or_error
        return None

    @property
    def error(self) -> Optional[ErrorInfo]:
        if isinstance(self.response_or_error, ErrorInfo):
            return self.response_or_error
        return None


@dataclass(frozen=True)
class NavigateResponse:
    """Terminal outcome of the retry loop for one link."""

    outcome: FetchOutcome
    passed: bool
    retries_remaining: int
    attempts: int


@dataclass(frozen=True)
class BaseError:
    error_type: str
    error_message: str


@dataclass(frozen=True)
class ScreenshotOutput:
    screenshot_file: str = ""
    screenshot_error: Optional[BaseError] = None


@dataclass(frozen=True)
class LinkResult:
    """The verdict for one checked link. Never mutated after construction."""

    link_passed: Optional[bool]
    expected_status_code: ExpectedStatus
    source_uri: str
    target_uri: str
    anchor_text: str
    html_element: str
    status_code: Optional[int] = None
    error_type: str = ""
    error_message: str = ""
    link_start_time: str = ""
    link_end_time: str = ""
    is_origin: bool = False
    screenshot_output: Optional[ScreenshotOutput] = None


@dataclass(frozen=True)
class AggregateReport:
    """The final result of a run_link_check operation."""

    link_count: int
    passing_link_count: int
    failing_link_count: int
    unreachable_count: int
    status2xx_count: int
    status3xx_count: int
    status4xx_count: int
    status5xx_count: int
    options: LinkCheckOptions
    origin_link_result: Optional[LinkResult]
    followed_link_results: List[LinkResult] = field(default_factory=list)
    execution_data_storage_path: str = ""
    errors: List[BaseError] = field(default_factory=list)
    runtime_metadata: Dict[str, str] = field(default_factory=dict)
    start_time: str = ""
    end_time: str = ""
