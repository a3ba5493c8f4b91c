"""Row scheduling and result aggregation.

Rows are analyzed by a bounded thread pool. Within a row the detectors run
concurrently, each under its own deadline, and are merged back into the row's
CDN / Security / Traffic fields before the row counts as done.

Failure is row-local: whatever goes wrong for one domain never changes another
row's labels.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

from .cache import TTLCache
from .config import Settings, get_settings
from .detectors.base import Detector
from .detectors.builtins import builtin_detectors
from .detectors.registry import DetectorRegistry
from .errors import DomainResolutionError, InputError, NetworkError
from .models import (
    ANALYSIS_FAILED,
    ENRICHMENT_COLUMNS,
    DetectionKind,
    DetectionResult,
    failed_result,
)
from .normalize import find_domain_column, normalize_domain
from .resolve import resolve_ipv4
from .timeouts import with_timeout

_LOG = logging.getLogger(__name__)

Row = dict[str, Any]

ALL_KINDS: tuple[DetectionKind, ...] = ("cdn", "defense", "traffic")


def merge_placeholder(row: Mapping[str, Any], label: str) -> Row:
    out = dict(row)
    for column in ENRICHMENT_COLUMNS.values():
        out[column] = label
    return out


def merge_row(row: Mapping[str, Any], results: Mapping[DetectionKind, DetectionResult]) -> Row:
    """Append the three enrichment fields; a missing or blank result becomes a failure label."""
    out = dict(row)
    for kind, column in ENRICHMENT_COLUMNS.items():
        result = results.get(kind)
        value = result.value if result is not None else None
        out[column] = value if isinstance(value, str) and value.strip() else ANALYSIS_FAILED
    return out


class RowScheduler:
    def __init__(
        self,
        detectors: Mapping[str, Detector],
        *,
        concurrency_limit: int = 5,
        deadline: float = 45.0,
        dns_timeout: float = 10.0,
    ):
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be >= 1")
        self.detectors = dict(detectors)
        self.concurrency_limit = concurrency_limit
        self.deadline = deadline
        self.dns_timeout = dns_timeout

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, *, cache: Optional[TTLCache] = None) -> "RowScheduler":
        settings = settings or get_settings()
        detectors = builtin_detectors(settings, cache)
        # Plugins registered under a built-in name replace it.
        detectors.update(DetectorRegistry.load_entrypoints())
        registry = DetectorRegistry(detectors)
        for detector in registry.select(ALL_KINDS):
            if not detector.is_available():
                _LOG.warning("Detector %s is not configured; its column will say so", detector.name)
        return cls(
            {d.name: d for d in registry.select(ALL_KINDS)},
            concurrency_limit=settings.max_concurrency,
            deadline=settings.detector_timeout,
        )

    # Single domain

    def _run_detector(self, kind: DetectionKind, hostname: str) -> DetectionResult:
        detector = self.detectors.get(kind)
        if detector is None:
            return failed_result(kind, "none")
        try:
            return with_timeout(
                lambda: detector.run(hostname),
                self.deadline,
                kind=kind,
                source=detector.source,
            )
        except Exception:  # noqa: BLE001
            _LOG.exception("%s detector crashed for %s", kind, hostname)
            return failed_result(kind, detector.source)

    def analyze_hostname(
        self, hostname: str, kinds: Sequence[DetectionKind] = ALL_KINDS
    ) -> dict[DetectionKind, DetectionResult]:
        """Fan out to the requested detectors and fan back in."""
        with ThreadPoolExecutor(max_workers=len(kinds), thread_name_prefix="webintel-fanout") as executor:
            futures = {kind: executor.submit(self._run_detector, kind, hostname) for kind in kinds}
            return {kind: future.result() for kind, future in futures.items()}

    # Batch

    def analyze_row(self, row: Mapping[str, Any], column: str) -> Row:
        try:
            record = normalize_domain(row.get(column))
            placeholder = record.placeholder
            if placeholder is not None or record.hostname is None:
                return merge_placeholder(row, placeholder or ANALYSIS_FAILED)

            started = time.monotonic()
            results = self.analyze_hostname(record.hostname)
            _LOG.debug(
                "analyzed %s in %.2fs: %s",
                record.hostname,
                time.monotonic() - started,
                {k: r.status for k, r in results.items()},
            )
            return merge_row(row, results)
        except Exception:  # noqa: BLE001
            _LOG.exception("Row analysis failed for %r", row.get(column))
            return merge_placeholder(row, ANALYSIS_FAILED)

    def run(self, rows: Iterable[Mapping[str, Any]], column: str) -> list[Row]:
        """Enrich every row; returns only once all rows are done, in input order."""
        rows = list(rows)
        if not rows:
            return []

        started = time.monotonic()
        with ThreadPoolExecutor(
            max_workers=min(self.concurrency_limit, len(rows)),
            thread_name_prefix="webintel-row",
        ) as executor:
            futures = [executor.submit(self.analyze_row, row, column) for row in rows]
            enriched = [f.result() for f in futures]

        _LOG.info(
            "Enriched %d rows (column %r) in %.1fs with concurrency %d",
            len(enriched),
            column,
            time.monotonic() - started,
            self.concurrency_limit,
        )
        return enriched


def analyze_rows(rows: Sequence[Mapping[str, Any]], scheduler: Optional[RowScheduler] = None) -> list[Row]:
    """Pick the domain column from the first row, then enrich every row."""
    if not rows:
        raise InputError("The spreadsheet is empty.")
    column = find_domain_column(rows[0])
    _LOG.info("Using column %r as the website column", column)
    scheduler = scheduler or RowScheduler.from_settings()
    return scheduler.run(rows, column)


def analyze_domain(value: Optional[str], scheduler: Optional[RowScheduler] = None) -> dict[str, str]:
    """Ad hoc lookup: CDN and defense labels for a single domain."""
    if value is None or not str(value).strip():
        raise InputError("Domain parameter is required")

    record = normalize_domain(value)
    if not record.is_valid or record.hostname is None:
        raise InputError("Invalid domain", {"domain": value})
    hostname = record.hostname
    scheduler = scheduler or RowScheduler.from_settings()

    try:
        resolve_ipv4(hostname, timeout=scheduler.dns_timeout)
    except NetworkError as e:
        raise DomainResolutionError("Unable to resolve domain IP", {"domain": hostname}) from e

    results = scheduler.analyze_hostname(hostname, kinds=("cdn", "defense"))
    return {
        "domain": hostname,
        "cdn": results["cdn"].value,
        "waf": results["defense"].value,
    }
