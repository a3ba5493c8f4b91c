"""Built-in detectors wired from Settings."""

from __future__ import annotations

from typing import Optional

from ..cache import TTLCache
from ..config import Settings
from ..retry import RetryPolicy
from .base import Detector
from .cdn import CdnAttributor
from .defense import DefenseFingerprinter
from .traffic import ScrapeSource, TrafficEstimator, TrafficSource, XRanksSource


def traffic_source_from_settings(settings: Settings) -> TrafficSource:
    if settings.traffic_source == "scrape":
        return ScrapeSource(settings.traffic_scrape_url, timeout=settings.detector_timeout)
    return XRanksSource(settings.xranks_api_key, timeout=settings.http_timeout)


def builtin_detectors(settings: Settings, cache: Optional[TTLCache] = None) -> dict[str, Detector]:
    """cdn / defense / traffic sharing one cache."""
    if cache is None:
        cache = TTLCache(ttl_seconds=settings.cache_ttl_seconds)
    policy = RetryPolicy(retries=settings.retries)

    return {
        "cdn": CdnAttributor(
            settings.ipinfo_token,
            http_timeout=settings.http_timeout,
            cache=cache,
            retry_policy=policy,
        ),
        "defense": DefenseFingerprinter(
            scan_timeout=settings.scan_timeout,
            probe_timeout=settings.probe_timeout,
            executable=settings.wafw00f_path,
            cache=cache,
            retry_policy=policy,
        ),
        "traffic": TrafficEstimator(
            traffic_source_from_settings(settings),
            cache=cache,
            retry_policy=policy,
        ),
    }
