"""Detector interface.

A Detector is a thin adapter over one external signal (IP intelligence, a CLI
scanner, a traffic data source). It must be safe to run in parallel and must
return exactly one DetectionResult per hostname: expected failures are
reported through `status`, never raised.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..cache import TTLCache, make_cache_key
from ..models import DetectionKind, DetectionResult
from ..retry import RetryPolicy

_LOG = logging.getLogger(__name__)


class Detector:
    """Base interface for detectors."""

    # Stable name used in the registry and in logs.
    name: str

    kind: DetectionKind

    # Provenance label used for results produced outside `detect`
    # (timeouts, unexpected failures).
    source: str = "unknown"

    def __init__(
        self,
        *,
        cache: Optional[TTLCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy()

    def is_available(self) -> bool:
        """Whether this detector is configured (e.g. has its API key)."""
        return True

    def detect(self, hostname: str) -> DetectionResult:
        raise NotImplementedError

    def run(self, hostname: str) -> DetectionResult:
        """detect() behind the shared cache.

        Only successful results are stored, and only once the call completed.
        """
        key = make_cache_key(self.kind, hostname)
        if self.cache is not None:
            cached = self.cache.get(key)
            if isinstance(cached, DetectionResult):
                _LOG.debug("cache hit %s", key)
                return cached

        result = self.detect(hostname)
        if self.cache is not None and result.ok:
            self.cache.set(key, result)
        return result
