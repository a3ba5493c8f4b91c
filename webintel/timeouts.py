"""Hard deadlines around single detector calls.

The call runs on its own worker thread and the caller waits at most `deadline`
seconds. A late call is abandoned, not cancelled: whatever it eventually returns
is dropped, and sockets/browsers it holds may outlive the deadline.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, TypeVar

from .models import DetectionKind, DetectionResult, timeout_result

T = TypeVar("T")

_LOG = logging.getLogger(__name__)


class DeadlineExceeded(Exception):
    pass


def call_with_deadline(fn: Callable[[], T], deadline: float, *, name: str = "call") -> T:
    """Return fn() or raise DeadlineExceeded once `deadline` seconds pass.

    Exceptions raised by fn propagate unchanged.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"webintel-{name}")
    try:
        future = executor.submit(fn)
        try:
            return future.result(timeout=deadline)
        except FutureTimeout as e:
            # fn itself may raise TimeoutError, which is FutureTimeout on 3.11+
            if future.done():
                return future.result()
            future.cancel()
            raise DeadlineExceeded(f"{name} exceeded {deadline:.1f}s") from e
    finally:
        # Never join the worker: a hung call must not hold up the caller.
        executor.shutdown(wait=False)


def with_timeout(
    fn: Callable[[], DetectionResult],
    deadline: float,
    *,
    kind: DetectionKind,
    source: str,
) -> DetectionResult:
    try:
        return call_with_deadline(fn, deadline, name=kind)
    except DeadlineExceeded as e:
        _LOG.warning("%s detector timed out: %s", kind, e)
        return timeout_result(kind, source)
