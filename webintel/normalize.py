"""Domain normalization and domain-column classification.

Normalization is strict about shape and silent about
resolvability: whether a hostname exists in DNS is for the detectors to find
out.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

from .errors import InputError, NormalizationError
from .models import DomainRecord

_SCHEME_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)
_HOSTNAME_RE = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z0-9-]{2,63}$")

# Strict form used before handing a hostname to external tools.
DOMAIN_RE = re.compile(r"^([a-zA-Z0-9-]+\.)+[a-zA-Z]{2,}$")


def _to_punycode(host: str) -> str:
    """Convert unicode hostname to punycode (idna)."""
    try:
        return host.encode("idna").decode("ascii")
    except UnicodeError as e:
        raise NormalizationError(f"Cannot encode hostname: {host!r}") from e


def _is_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def parse_hostname(value: str) -> str:
    """Reduce a URL or bare host to a canonical hostname.

    Raises NormalizationError when the value cannot be read as either.
    """
    raw = value.strip().lower()
    if not raw or any(c.isspace() for c in raw):
        raise NormalizationError(f"Not a URL or hostname: {value!r}")

    url = raw if _SCHEME_RE.match(raw) else "http://" + raw
    try:
        parsed = urlsplit(url)
        host = parsed.hostname or ""
    except ValueError as e:
        raise NormalizationError(f"Not a URL or hostname: {value!r}") from e

    host = host.rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    if not host:
        raise NormalizationError(f"Not a URL or hostname: {value!r}")

    if _is_ip(host):
        return host

    host = _to_punycode(host)
    if not _HOSTNAME_RE.match(host):
        raise NormalizationError(f"Not a URL or hostname: {value!r}")
    return host


def normalize_domain(value: Any) -> DomainRecord:
    """Turn a raw cell value into a DomainRecord.

    - non-string, empty or whitespace-only -> hostname absent
    - unparsable -> invalid
    """
    if not isinstance(value, str) or not value.strip():
        return DomainRecord(raw_input=value)
    try:
        return DomainRecord(raw_input=value, hostname=parse_hostname(value))
    except NormalizationError:
        return DomainRecord(raw_input=value, invalid=True)


# Column classification


@dataclass(frozen=True)
class ColumnRule:
    name: str
    test: Callable[[str], bool]


_BARE_DOMAIN_RE = re.compile(r"^[\w-]+\.[\w.-]+$")

# Priority order; a column qualifies on the first rule it satisfies.
COLUMN_RULES: tuple[ColumnRule, ...] = (
    ColumnRule("scheme", lambda v: v.startswith(("http://", "https://"))),
    ColumnRule("bare_domain", lambda v: bool(_BARE_DOMAIN_RE.match(v))),
)


def classify_value(value: Any) -> Optional[str]:
    """Name of the first rule the value satisfies, or None."""
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    for rule in COLUMN_RULES:
        if rule.test(trimmed):
            return rule.name
    return None


def is_likely_url(value: Any) -> bool:
    return classify_value(value) is not None


def find_domain_column(first_row: Mapping[str, Any]) -> str:
    """Pick the column carrying the domain, scanning columns in document order."""
    for column, value in first_row.items():
        if classify_value(value) is not None:
            return column
    raise InputError("No website URL found in any column.")
