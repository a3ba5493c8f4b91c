"""Traffic estimation.

The estimator only knows the TrafficSource interface; where the figure comes
from (keyed API, headless browser) is the source's business.

- xranks: keyed JSON API (requests)
- scrape: headless Chromium (playwright) reading a "Monthly Visits" figure
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Optional

import requests

from ..errors import ConfigurationError, NetworkError, ParseError, RateLimitError
from ..models import DetectionResult
from ..retry import is_connection_reset, retry_call
from ..taxonomy import source_display_name
from .base import Detector

_LOG = logging.getLogger(__name__)

NO_DATA = "No data available"
RATE_LIMITED = "API Rate Limit Exceeded"
KEY_MISSING = "Traffic API Key Missing"

_COMPACT_RE = re.compile(r"^\s*([0-9][0-9,]*(?:\.[0-9]+)?)\s*([KMB])?\s*\+?\s*$", re.IGNORECASE)
_MULTIPLIERS = {"": 1, "K": 1_000, "M": 1_000_000, "B": 1_000_000_000}


def parse_compact_number(value: Any) -> Optional[int]:
    """Parse 1.2M / 340K / 2B / 12,345 / 42 into an absolute integer."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value >= 0 else None
    if not isinstance(value, str):
        return None
    m = _COMPACT_RE.match(value)
    if not m:
        return None
    number = float(m.group(1).replace(",", "")) * _MULTIPLIERS[(m.group(2) or "").upper()]
    if not math.isfinite(number):
        return None
    return int(round(number))


def format_visits(monthly_visits: int, source: str) -> str:
    # 999_950 rounds to 1000.0K, so promote on the rounded value
    if round(monthly_visits / 1_000, 1) >= 1_000:
        return f"{monthly_visits / 1_000_000:.1f}M/mo ({source})"
    if monthly_visits >= 1_000:
        return f"{monthly_visits / 1_000:.1f}K/mo ({source})"
    return f"{monthly_visits}/mo ({source})"


def find_visits(obj: Any) -> Optional[int]:
    """First positive value under any key mentioning "visits", searched depth-first."""
    if isinstance(obj, dict):
        for key, value in obj.items():
            if "visits" in str(key).lower() and not isinstance(value, (dict, list)):
                parsed = parse_compact_number(value)
                if parsed:
                    return parsed
            if isinstance(value, (dict, list)):
                nested = find_visits(value)
                if nested is not None:
                    return nested
    elif isinstance(obj, list):
        for item in obj:
            nested = find_visits(item)
            if nested is not None:
                return nested
    return None


@dataclass(frozen=True)
class TrafficFigure:
    monthly_visits: int
    source: str


class TrafficSource:
    """Where monthly-visit figures come from."""

    name: str

    def is_available(self) -> bool:
        return True

    def fetch(self, hostname: str) -> Optional[TrafficFigure]:
        """Return a figure, None when the source has no data.

        Raise RateLimitError / NetworkError for transport problems.
        """
        raise NotImplementedError


class XRanksSource(TrafficSource):
    name = "xranks"
    base_url = "https://xranks.com/api/v1/"

    def __init__(self, api_key: Optional[str], *, timeout: float = 15.0, session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def is_available(self) -> bool:
        return bool(self.api_key)

    def fetch(self, hostname: str) -> Optional[TrafficFigure]:
        if not self.api_key:
            raise ConfigurationError("XRANKS_API_KEY not set")

        try:
            resp = self.session.get(
                self.base_url + "domain/rank",
                params={"domain": hostname},
                headers={"Authorization": self.api_key, "Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise NetworkError(f"xranks timed out: {e}", transient=True) from e
        except requests.ConnectionError as e:
            raise NetworkError(f"xranks unreachable: {e}", transient=is_connection_reset(e)) from e

        if resp.status_code == 429:
            raise RateLimitError("xranks rate limit exceeded", retry_after=resp.headers.get("Retry-After"))
        if resp.status_code >= 400:
            raise NetworkError(
                f"xranks HTTP {resp.status_code}",
                transient=resp.status_code >= 500,
                status=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ParseError("xranks returned invalid JSON") from e
        return self.extract(data)

    def extract(self, data: Any) -> Optional[TrafficFigure]:
        if not isinstance(data, dict):
            return None

        visits: Optional[int] = None
        daily = parse_compact_number(data.get("estimated_daily_users"))
        if daily:
            visits = daily * 30  # rough monthly estimate
        if not visits:
            visits = find_visits(data)
        if not visits:
            return None
        return TrafficFigure(monthly_visits=visits, source=source_display_name(self.name))


_MONTHLY_VISITS_RE = re.compile(
    r"(?:Monthly|Total)\s+Visits\s*[:\n\r\t ]*\s*([0-9][0-9,.]*\s*[KMB]?)",
    re.IGNORECASE,
)


def extract_monthly_visits(text: str) -> Optional[int]:
    m = _MONTHLY_VISITS_RE.search(text or "")
    if not m:
        return None
    return parse_compact_number(m.group(1))


class ScrapeSource(TrafficSource):
    """Headless Chromium against a public traffic-lookup page."""

    name = "similarweb"

    def __init__(self, url_template: str, *, timeout: float = 30.0):
        self.url_template = url_template
        self.timeout = timeout

    def fetch(self, hostname: str) -> Optional[TrafficFigure]:
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import sync_playwright

        target_url = self.url_template.format(domain=hostname)
        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(headless=True)
                try:
                    page = browser.new_page()
                    page.goto(
                        target_url,
                        wait_until="domcontentloaded",
                        timeout=max(1000, int(self.timeout * 1000)),
                    )
                    text = page.inner_text("body")
                finally:
                    browser.close()
        except PlaywrightError as e:
            raise NetworkError(f"traffic page load failed: {e}", transient=False) from e

        visits = extract_monthly_visits(text)
        if not visits:
            return None
        return TrafficFigure(monthly_visits=visits, source=source_display_name(self.name))


class TrafficEstimator(Detector):
    name = "traffic"
    kind = "traffic"

    def __init__(self, source: TrafficSource, **kwargs: Any):
        super().__init__(**kwargs)
        self.traffic_source = source
        self.source = source_display_name(source.name)

    def is_available(self) -> bool:
        return self.traffic_source.is_available()

    def _result(self, status: Any, value: str) -> DetectionResult:
        return DetectionResult(kind="traffic", status=status, value=value, source=self.source)

    def detect(self, hostname: str) -> DetectionResult:
        try:
            figure = retry_call(lambda: self.traffic_source.fetch(hostname), policy=self.retry_policy)
        except ConfigurationError:
            return self._result("not_applicable", KEY_MISSING)
        except RateLimitError:
            _LOG.warning("%s rate limited for %s", self.source, hostname)
            return self._result("transient_error", RATE_LIMITED)
        except NetworkError as e:
            _LOG.warning("%s lookup failed for %s: %s", self.source, hostname, e)
            status = "transient_error" if e.transient else "permanent_error"
            return self._result(status, NO_DATA)
        except ParseError as e:
            _LOG.warning("%s payload for %s unusable: %s", self.source, hostname, e)
            return self._result("permanent_error", NO_DATA)

        if figure is None or figure.monthly_visits <= 0:
            return self._result("permanent_error", NO_DATA)
        return DetectionResult(
            kind="traffic",
            status="success",
            value=format_visits(figure.monthly_visits, figure.source),
            source=figure.source,
        )
