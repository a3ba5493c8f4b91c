"""Adapter over the wafw00f CLI (https://github.com/EnableSecurity/wafw00f).

wafw00f only speaks human-readable text, so this is the one place that knows
its wording. Callers get a ScanResult and never an exception for anything
short of a crash of this process.

Typical output (colors stripped):

    [*] Checking https://example.com
    [+] The site https://example.com is behind Cloudflare (Cloudflare Inc.) WAF.
    [~] Number of requests: 2
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from subprocess import PIPE, Popen, TimeoutExpired
from typing import Optional

from ..errors import ProcessError
from ..models import DetectionStatus

_LOG = logging.getLogger(__name__)

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
_BEHIND_RE = re.compile(
    r"is behind (?:an? )?(?P<name>.+?)(?:\s*\([^)]*\))?(?:\s+WAF)?\s*\.?\s*$",
    re.IGNORECASE,
)
_DETECTION_MARKER = "[+]"
_AMBIGUOUS_MARKERS = (
    "generic",
    "seems to be behind a waf",
    "some sort of security solution",
)
_ASPNET_RE = re.compile(r"ASP\.?NET", re.IGNORECASE)
_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "could not resolve",
    "nodename nor servname",
    "temporary failure in name resolution",
)

TIMEOUT_LABEL = "Timeout"
INVALID_DOMAIN = "Invalid domain"
DETECTION_FAILED = "Detection failed"


@dataclass(frozen=True)
class ScanResult:
    detected: list[str] = field(default_factory=list)
    raw: str = ""
    status: DetectionStatus = "success"
    error: Optional[str] = None

    @property
    def label(self) -> Optional[str]:
        """Failure label, when the scan itself failed."""
        return self.error if self.status != "success" else None


def strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text or "")


def parse_output(stdout: str) -> list[str]:
    """Raw product names from lines carrying an explicit detection marker."""
    found: list[str] = []
    for line in strip_ansi(stdout).splitlines():
        line = line.strip()
        if not line.startswith(_DETECTION_MARKER):
            continue
        text = line[len(_DETECTION_MARKER):].strip()
        lowered = text.lower()
        if any(marker in lowered for marker in _AMBIGUOUS_MARKERS):
            continue
        if _ASPNET_RE.search(text):
            continue

        m = _BEHIND_RE.search(text)
        name = m.group("name").strip() if m else re.sub(r"\s*\([^)]*\)\s*$", "", text).strip()
        if name and name not in found:
            found.append(name)
    return found


def _execute(args: list[str], timeout: float) -> tuple[str, str]:
    """Run the scanner and return decoded (stdout, stderr).

    Raises ProcessError for a kill on timeout or a nonzero exit; `stderr` is
    kept in `details` for diagnosis.
    """
    p = Popen(args, stdout=PIPE, stderr=PIPE)
    try:
        stdout_b, stderr_b = p.communicate(timeout=timeout)
    except TimeoutExpired as e:
        p.kill()
        p.communicate()
        raise ProcessError(f"{args[0]} took longer than {timeout:.0f}s", timed_out=True) from e

    stdout = stdout_b.decode("utf-8", errors="replace") if stdout_b else ""
    stderr = stderr_b.decode("utf-8", errors="replace") if stderr_b else ""
    if p.returncode != 0:
        raise ProcessError(
            f"{args[0]} exited {p.returncode}",
            returncode=p.returncode,
            details={"stderr": stderr, "stdout": stdout},
        )
    return stdout, stderr


def run_wafw00f(hostname: str, *, timeout: float = 30.0, executable: str = "wafw00f") -> ScanResult:
    try:
        stdout, _ = _execute([executable, hostname], timeout)
    except OSError as e:
        _LOG.error("Cannot start %s: %s", executable, e)
        return ScanResult(status="transient_error", error=DETECTION_FAILED)
    except ProcessError as e:
        if e.timed_out:
            _LOG.warning("%s for %s, killed", e, hostname)
            return ScanResult(status="timeout", error=TIMEOUT_LABEL)

        stderr = e.details.get("stderr", "")
        raw = e.details.get("stdout", "")
        diag = strip_ansi(stderr).lower()
        if any(marker in diag for marker in _DNS_FAILURE_MARKERS):
            return ScanResult(raw=raw, status="permanent_error", error=INVALID_DOMAIN)
        _LOG.warning("%s for %s: %s", e, hostname, stderr.strip()[:200])
        return ScanResult(raw=raw, status="transient_error", error=DETECTION_FAILED)

    return ScanResult(detected=parse_output(stdout), raw=stdout)
