"""Passive bot-manager probe: one TLS request, response header names only.

Best effort. Any connection problem yields an empty signal, never an error.
"""

from __future__ import annotations

import http.client
import logging
import socket
import ssl

from ..logging_utils import log_suppressed
from ..taxonomy import BOT_MANAGER_HEADERS

_LOG = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0 Safari/537.36"
)


def _unverified_context() -> ssl.SSLContext:
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def match_bot_manager_headers(header_names: list[str]) -> list[str]:
    found: list[str] = []
    for header in header_names:
        lowered = header.lower()
        for marker, label in BOT_MANAGER_HEADERS:
            if marker in lowered and label not in found:
                found.append(label)
    return found


def fetch_header_names(hostname: str, *, timeout: float = 7.0) -> list[str]:
    conn = http.client.HTTPSConnection(hostname, 443, timeout=timeout, context=_unverified_context())
    try:
        conn.request("GET", "/", headers={"User-Agent": USER_AGENT, "Accept": "text/html"})
        resp = conn.getresponse()
        return [name for name, _ in resp.getheaders()]
    finally:
        conn.close()


def probe_bot_manager_headers(hostname: str, *, timeout: float = 7.0) -> list[str]:
    try:
        names = fetch_header_names(hostname, timeout=timeout)
    except (OSError, ssl.SSLError, socket.timeout, http.client.HTTPException) as e:
        log_suppressed(_LOG, e, f"header probe failed for {hostname}")
        return []
    return match_bot_manager_headers(names)
