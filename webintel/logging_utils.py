import logging
import threading
import time
from typing import Dict, Tuple

_SuppressionKey = Tuple[str, str, int]

_SUPPRESSION_LOCK = threading.Lock()
_SUPPRESSION_STATE: Dict[_SuppressionKey, Dict[str, float]] = {}

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the `webintel` logger (idempotent)."""
    logger = logging.getLogger("webintel")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, "_webintel", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._webintel = True  # type: ignore[attr-defined]
        logger.addHandler(handler)


def log_suppressed(
    logger: logging.Logger,
    exc: BaseException,
    context: str,
    *,
    level: int = logging.DEBUG,
    sample: int = 5,
    cooldown: float = 120.0,
) -> int:
    """Emit a throttled log entry for repeated soft-failures.

    The first `sample` occurrences per (logger, context, level) are written,
    then at most one entry every `cooldown` seconds. Returns the total number
    of occurrences seen for the context.
    """
    now = time.time()
    key: _SuppressionKey = (logger.name, context, level)
    with _SUPPRESSION_LOCK:
        state = _SUPPRESSION_STATE.setdefault(key, {"count": 0, "last_emit": 0.0})
        state["count"] = int(state["count"]) + 1
        count = int(state["count"])
        should_emit = count <= sample or (now - state["last_emit"]) >= cooldown
        if should_emit:
            state["last_emit"] = now
    if should_emit:
        logger.log(level, "%s err=%s (suppressed=%d)", context, exc, max(0, count - 1))
    return count
