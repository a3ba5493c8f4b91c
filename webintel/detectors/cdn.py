"""CDN / hosting attribution.

hostname -> A record (dnspython) -> ipinfo.io org string -> canonical provider.

ipinfo answers with an `org` like "AS13335 Cloudflare, Inc."; the ASN is looked
up in the exact table first, then the cleaned name goes through the keyword
table (see `webintel.taxonomy`).
"""

from __future__ import annotations

import json
import logging
import urllib.error
from typing import Any, Optional
from urllib.parse import quote
from urllib.request import Request, urlopen

from ..errors import NetworkError, ParseError, RateLimitError
from ..models import DetectionResult
from ..resolve import resolve_ipv4
from ..retry import retry_call
from ..taxonomy import normalize_cdn
from .base import Detector

_LOG = logging.getLogger(__name__)

IPINFO_URL = "https://ipinfo.io/{ip}/json"
USER_AGENT = "webintel/cdn"

DNS_LOOKUP_FAILED = "DNS Lookup Failed"
RATE_LIMITED = "API Rate Limit Exceeded"
TOKEN_MISSING = "API Token Missing"
INVALID_TOKEN = "Invalid API Token"
LOOKUP_FAILED = "CDN Lookup Failed"


def fetch_ipinfo(ip: str, token: str, *, timeout: float) -> dict[str, Any]:
    """One ipinfo request, mapped onto the webintel error taxonomy."""
    url = IPINFO_URL.format(ip=quote(ip, safe=":.")) + "?token=" + quote(token, safe="")
    req = Request(url, headers={"User-Agent": USER_AGENT, "Accept": "application/json"})
    try:
        with urlopen(req, timeout=timeout) as resp:
            raw = resp.read()
    except urllib.error.HTTPError as e:
        if e.code == 429:
            retry_after = e.headers.get("Retry-After") if e.headers is not None else None
            raise RateLimitError("ipinfo rate limit exceeded", retry_after=retry_after) from e
        raise NetworkError(
            f"ipinfo HTTP {e.code}: {e.reason}",
            transient=500 <= e.code < 600,
            status=e.code,
        ) from e

    try:
        data = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ParseError("ipinfo returned invalid JSON") from e
    if not isinstance(data, dict):
        raise ParseError("ipinfo returned an unexpected payload")
    return data


def _asn_from_payload(data: dict[str, Any]) -> Optional[str]:
    # Paid ipinfo plans expose a structured "asn" object.
    asn = data.get("asn")
    if isinstance(asn, dict) and isinstance(asn.get("asn"), str):
        return asn["asn"].upper()
    return None


class CdnAttributor(Detector):
    name = "cdn"
    kind = "cdn"
    source = "ipinfo"

    def __init__(
        self,
        token: Optional[str],
        *,
        http_timeout: float = 15.0,
        dns_timeout: float = 10.0,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.token = token
        self.http_timeout = http_timeout
        self.dns_timeout = dns_timeout

    def is_available(self) -> bool:
        return bool(self.token)

    def _result(self, status: Any, value: str) -> DetectionResult:
        return DetectionResult(kind="cdn", status=status, value=value, source=self.source)

    def detect(self, hostname: str) -> DetectionResult:
        if not self.token:
            return self._result("not_applicable", TOKEN_MISSING)

        try:
            ip = resolve_ipv4(hostname, timeout=self.dns_timeout)[0]
        except NetworkError as e:
            _LOG.info("DNS lookup failed for %s: %s", hostname, e)
            return self._result("permanent_error", DNS_LOOKUP_FAILED)

        token = self.token
        try:
            data = retry_call(
                lambda: fetch_ipinfo(ip, token, timeout=self.http_timeout),
                policy=self.retry_policy,
            )
        except RateLimitError:
            _LOG.warning("ipinfo rate limited while attributing %s", hostname)
            return self._result("transient_error", RATE_LIMITED)
        except NetworkError as e:
            _LOG.warning("ipinfo lookup failed for %s (%s): %s", hostname, ip, e)
            if e.status in (401, 403):
                return self._result("permanent_error", INVALID_TOKEN)
            status = "transient_error" if e.transient else "permanent_error"
            return self._result(status, LOOKUP_FAILED)
        except ParseError as e:
            _LOG.warning("ipinfo payload for %s unusable: %s", hostname, e)
            return self._result("permanent_error", "Unknown")
        except (urllib.error.URLError, OSError) as e:
            _LOG.warning("ipinfo unreachable for %s: %s", hostname, e)
            return self._result("transient_error", LOOKUP_FAILED)

        org = data.get("org")
        if not isinstance(org, str) or not org.strip():
            return self._result("permanent_error", "Unknown")

        match = normalize_cdn(org, _asn_from_payload(data))
        _LOG.debug("cdn %s -> %s via %s rule (org=%r)", hostname, match.label, match.rule, org)
        return self._result("success", match.label)
