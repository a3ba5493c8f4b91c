"""Process configuration.

Read once at startup from the environment (optionally seeded from a .env file).
There is no hot-reload: `get_settings()` is memoized for the process lifetime.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .cache import parse_ttl
from .errors import ConfigurationError

DEFAULT_SCRAPE_URL = "https://www.similarweb.com/website/{domain}/"


@dataclass(frozen=True)
class Settings:
    ipinfo_token: Optional[str] = None
    xranks_api_key: Optional[str] = None

    max_concurrency: int = 5
    detector_timeout: float = 45.0
    http_timeout: float = 15.0
    scan_timeout: float = 30.0
    probe_timeout: float = 7.0
    retries: int = 2

    cache_ttl_seconds: int = 3600

    traffic_source: str = "xranks"  # xranks|scrape
    traffic_scrape_url: str = DEFAULT_SCRAPE_URL
    wafw00f_path: str = "wafw00f"

    log_level: str = "INFO"
    port: int = 5050


def _load_dotenv() -> None:
    # Try current dir, then home dir
    for env_path in [Path(".env"), Path.home() / ".env", Path.home() / ".webintel.env"]:
        if env_path.exists():
            load_dotenv(env_path)
            break


def _env(name: str, *aliases: str) -> Optional[str]:
    for key in (name, *aliases):
        value = os.getenv(key)
        if value is not None and value.strip():
            return value.strip()
    return None


def _int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    _load_dotenv()

    ttl_raw = _env("WEBINTEL_CACHE_TTL") or "1h"
    try:
        ttl = parse_ttl(ttl_raw)
    except ValueError as e:
        raise ConfigurationError(f"WEBINTEL_CACHE_TTL: {e}") from e

    traffic_source = (_env("WEBINTEL_TRAFFIC_SOURCE") or "xranks").lower()
    if traffic_source not in {"xranks", "scrape"}:
        raise ConfigurationError(
            f"WEBINTEL_TRAFFIC_SOURCE must be 'xranks' or 'scrape', got {traffic_source!r}"
        )

    return Settings(
        ipinfo_token=_env("IPINFO_API_KEY", "IPINFO_TOKEN"),
        xranks_api_key=_env("XRANKS_API_KEY"),
        max_concurrency=_int("WEBINTEL_MAX_CONCURRENCY", 5, minimum=1),
        detector_timeout=_float("WEBINTEL_DETECTOR_TIMEOUT", 45.0),
        http_timeout=_float("WEBINTEL_HTTP_TIMEOUT", 15.0),
        scan_timeout=_float("WEBINTEL_SCAN_TIMEOUT", 30.0),
        probe_timeout=_float("WEBINTEL_PROBE_TIMEOUT", 7.0),
        retries=_int("WEBINTEL_RETRIES", 2),
        cache_ttl_seconds=ttl,
        traffic_source=traffic_source,
        traffic_scrape_url=_env("WEBINTEL_TRAFFIC_SCRAPE_URL") or DEFAULT_SCRAPE_URL,
        wafw00f_path=_env("WAFW00F_PATH") or "wafw00f",
        log_level=(_env("WEBINTEL_LOG_LEVEL") or "INFO").upper(),
        port=_int("PORT", 5050, minimum=1),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
