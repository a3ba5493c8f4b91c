"""In-memory TTL cache shared by the detectors.

Goal: avoid repeating slow/quota-bound lookups for the same hostname within a
batch and across requests in one process.

- key -> (inserted_at, payload)
- TTL fixed per instance, checked at read time (lazy eviction, no sweeper)
- clock is injectable so tests can expire entries deterministically

Entries are treated as immutable once written. Concurrent writers for the same
key store equivalent data, so no locking is done.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


def parse_ttl(ttl: str) -> int:
    """Parse TTL strings like: 3600, 10m, 1h, 7d."""
    s = ttl.strip().lower()
    if s.isdigit():
        return int(s)

    units = {"s": 1, "m": 60, "h": 3600, "d": 86400}
    unit = s[-1:]
    if unit not in units or not s[:-1].isdigit():
        raise ValueError(f"Invalid TTL: {ttl}")
    return int(s[:-1]) * units[unit]


def make_cache_key(namespace: str, hostname: str) -> str:
    return f"{namespace}:{hostname.strip().casefold()}"


@dataclass
class TTLCache:
    ttl_seconds: int = 3600
    max_items: int = 4096
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)

    def __post_init__(self) -> None:
        self._d: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        v = self._d.get(key)
        if v is None:
            return None
        inserted_at, payload = v
        if self.clock() - inserted_at >= self.ttl_seconds:
            self._d.pop(key, None)
            return None
        return payload

    def set(self, key: str, value: Any) -> None:
        if key not in self._d and len(self._d) >= self.max_items:
            # Dicts keep insertion order: drop the oldest entry.
            try:
                self._d.pop(next(iter(self._d)))
            except (StopIteration, KeyError):
                pass
        self._d[key] = (self.clock(), value)

    def clear(self) -> None:
        self._d.clear()

    def __len__(self) -> int:
        return len(self._d)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None
