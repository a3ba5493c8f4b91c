"""Exceptions for webintel.

Request-level errors (InputError, DomainResolutionError, DocumentError) carry an
HTTP status code and abort the whole request. Everything else is row-local: the
detectors catch it and turn it into a labeled DetectionResult.
"""

from __future__ import annotations

from typing import Any, Optional


class WebIntelError(Exception):
    """Base exception for all webintel errors."""

    error_code: str = "WEBINTEL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        if self.details:
            out["details"] = self.details
        return out


# Request-level (abort the whole operation)


class InputError(WebIntelError):
    """Structural problem with the submitted input (empty document, no domain column)."""

    error_code = "INPUT_ERROR"
    status_code = 400


class DomainResolutionError(WebIntelError):
    """Ad hoc lookup for a domain that does not resolve."""

    error_code = "DOMAIN_UNRESOLVABLE"
    status_code = 400


class DocumentError(WebIntelError):
    """The uploaded document could not be opened at all."""

    error_code = "DOCUMENT_ERROR"
    status_code = 500


class ConfigurationError(WebIntelError):
    error_code = "CONFIGURATION_ERROR"
    status_code = 500


# Row-local


class NormalizationError(WebIntelError):
    error_code = "NORMALIZATION_ERROR"
    status_code = 400


class NetworkError(WebIntelError):
    """DNS failure, connection timeout/reset or upstream 5xx.

    `transient` marks the classes the retry policy is allowed to retry.
    """

    error_code = "NETWORK_ERROR"

    def __init__(
        self,
        message: str,
        *,
        transient: bool = True,
        status: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.transient = transient
        self.status = status


class RateLimitError(WebIntelError):
    """Upstream answered HTTP 429."""

    error_code = "RATE_LIMITED"

    def __init__(self, message: str, *, retry_after: Optional[str] = None):
        super().__init__(message, {"retry_after": retry_after} if retry_after else None)
        self.retry_after = retry_after


class ProcessError(WebIntelError):
    error_code = "PROCESS_ERROR"

    def __init__(
        self,
        message: str,
        *,
        timed_out: bool = False,
        returncode: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.timed_out = timed_out
        self.returncode = returncode


class ParseError(WebIntelError):
    """Unexpected response shape or a missing expected field."""

    error_code = "PARSE_ERROR"
