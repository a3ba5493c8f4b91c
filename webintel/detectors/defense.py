"""Perimeter defense fingerprinting (WAF / bot manager).

Two independent signals run side by side and are merged by set union:

- active: wafw00f subprocess (`wafw00f.run_wafw00f`)
- passive: bot-manager header markers (`headers.probe_bot_manager_headers`)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional

from ..models import DetectionResult
from ..normalize import DOMAIN_RE
from ..taxonomy import NO_SECURITY, merge_security_labels, normalize_security_product
from .base import Detector
from .headers import probe_bot_manager_headers
from .wafw00f import INVALID_DOMAIN, ScanResult, run_wafw00f

_LOG = logging.getLogger(__name__)

Scanner = Callable[[str], ScanResult]
Prober = Callable[[str], list[str]]


def normalize_all(names: list[str]) -> list[str]:
    out: list[str] = []
    for name in names:
        label = normalize_security_product(name)
        if label and label not in out:
            out.append(label)
    return out


class DefenseFingerprinter(Detector):
    name = "defense"
    kind = "defense"
    source = "wafw00f+headers"

    def __init__(
        self,
        *,
        scan_timeout: float = 30.0,
        probe_timeout: float = 7.0,
        executable: str = "wafw00f",
        scanner: Optional[Scanner] = None,
        prober: Optional[Prober] = None,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.scanner: Scanner = scanner or (
            lambda host: run_wafw00f(host, timeout=scan_timeout, executable=executable)
        )
        self.prober: Prober = prober or (
            lambda host: probe_bot_manager_headers(host, timeout=probe_timeout)
        )

    def _result(self, status: Any, value: str, source: Optional[str] = None) -> DetectionResult:
        return DetectionResult(kind="defense", status=status, value=value, source=source or self.source)

    def detect(self, hostname: str) -> DetectionResult:
        if not DOMAIN_RE.match(hostname):
            return self._result("permanent_error", INVALID_DOMAIN)

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="webintel-defense") as executor:
            scan_future = executor.submit(self.scanner, hostname)
            probe_future = executor.submit(self.prober, hostname)
            scan = scan_future.result()
            try:
                header_hits = probe_future.result()
            except Exception as e:  # noqa: BLE001
                _LOG.debug("header probe raised for %s: %s", hostname, e)
                header_hits = []

        scan_labels = normalize_all(scan.detected)
        header_labels = normalize_all(header_hits)

        if scan.status != "success" and not header_labels:
            return self._result(scan.status, scan.error or "Detection failed", "wafw00f")

        value = merge_security_labels(scan_labels, header_labels)
        if scan.status != "success":
            # Partial answer: shown in the cell but kept out of the cache.
            _LOG.info("wafw00f failed for %s (%s); using header signal only", hostname, scan.error)
            return self._result("transient_error", value, "headers")
        if value == NO_SECURITY:
            _LOG.debug("no defense detected for %s", hostname)
        return self._result("success", value)
