"""Retry utilities (linear backoff) and transient-error classification."""

from __future__ import annotations

import socket
import time
import urllib.error
from dataclasses import dataclass
from typing import Callable, TypeVar

import requests
from urllib3.exceptions import ProtocolError

from .errors import NetworkError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 2  # total attempts = 1 + retries
    base_delay_seconds: float = 0.5
    max_delay_seconds: float = 5.0


def _sleep_seconds(attempt: int, policy: RetryPolicy) -> float:
    # attempt starts at 1 for the first retry sleep
    delay = policy.base_delay_seconds * attempt
    return max(0.0, min(delay, policy.max_delay_seconds))


def _is_transient_os_error(e: BaseException) -> bool:
    return isinstance(e, (socket.timeout, TimeoutError, ConnectionResetError))


def is_connection_reset(e: BaseException) -> bool:
    """True when a wrapped connection error was caused by the peer resetting it.

    requests nests the socket error inside urllib3 errors (`reason`, `args`
    and the exception chain), so all of those are searched.
    """
    seen: set[int] = set()
    stack: list[object] = [e]
    while stack:
        cur = stack.pop()
        if not isinstance(cur, BaseException) or id(cur) in seen:
            continue
        seen.add(id(cur))
        if isinstance(cur, (ConnectionResetError, ProtocolError)):
            return True
        stack.extend(cur.args)
        stack.extend((getattr(cur, "reason", None), cur.__cause__, cur.__context__))
    return False


def is_transient_error(e: BaseException) -> bool:
    """True for connection timeout, connection reset and HTTP 5xx.

    429 is not transient: rate limits surface as their own label.
    """
    if isinstance(e, NetworkError):
        return e.transient

    if isinstance(e, urllib.error.HTTPError):
        return 500 <= e.code < 600
    if isinstance(e, urllib.error.URLError):
        return _is_transient_os_error(e.reason) if isinstance(e.reason, BaseException) else False

    if isinstance(e, requests.HTTPError):
        status = getattr(e.response, "status_code", None)
        return status is not None and 500 <= int(status) < 600
    if isinstance(e, requests.Timeout):
        return True
    if isinstance(e, requests.ConnectionError):
        return is_connection_reset(e)

    return _is_transient_os_error(e)


def retry_call(
    fn: Callable[[], T],
    policy: RetryPolicy,
    should_retry: Callable[[Exception], bool] = is_transient_error,
) -> T:
    """Call fn with retries.

    - Retries on exceptions that satisfy should_retry.
    - Raises the last exception if all attempts fail.
    """
    attempts = 1 + max(policy.retries, 0)
    last_err: Exception | None = None

    for i in range(attempts):
        try:
            return fn()
        except Exception as e:  # noqa: BLE001
            last_err = e
            if i == attempts - 1 or not should_retry(e):
                raise
            time.sleep(_sleep_seconds(i + 1, policy))

    # unreachable, but keeps mypy happy
    raise last_err  # type: ignore[misc]
