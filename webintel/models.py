"""Models for webintel.

Plain dataclasses (no pydantic in the core); the web layer converts them with
`to_dict()`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional

DetectionKind = Literal["cdn", "defense", "traffic"]
DetectionStatus = Literal[
    "success",
    "timeout",
    "transient_error",
    "permanent_error",
    "not_applicable",
]

# Enrichment columns appended to every row, in output order.
ENRICHMENT_COLUMNS: dict[DetectionKind, str] = {
    "cdn": "CDN",
    "defense": "Security",
    "traffic": "Traffic",
}

NO_WEBSITE = "No Website Provided"
INVALID_URL = "Invalid URL"
ANALYSIS_FAILED = "Analysis failed"
TIMEOUT = "Timeout"


@dataclass(frozen=True)
class DomainRecord:
    """Result of normalizing one raw cell."""

    raw_input: Any
    hostname: Optional[str] = None

    # Present-but-unparsable input. Distinct from an absent hostname so rows can
    # be labeled "Invalid URL" rather than "No Website Provided".
    invalid: bool = False

    @property
    def is_valid(self) -> bool:
        return self.hostname is not None and not self.invalid

    @property
    def placeholder(self) -> Optional[str]:
        """Fixed label for rows that never reach a detector."""
        if self.invalid:
            return INVALID_URL
        if self.hostname is None:
            return NO_WEBSITE
        return None


@dataclass(frozen=True)
class DetectionResult:
    kind: DetectionKind
    status: DetectionStatus
    value: str
    source: str

    @property
    def ok(self) -> bool:
        return self.status == "success"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def timeout_result(kind: DetectionKind, source: str) -> DetectionResult:
    return DetectionResult(kind=kind, status="timeout", value=TIMEOUT, source=source)


def failed_result(kind: DetectionKind, source: str) -> DetectionResult:
    return DetectionResult(kind=kind, status="transient_error", value=ANALYSIS_FAILED, source=source)
