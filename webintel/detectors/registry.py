"""Detector registry + plugin loading."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from importlib import metadata
from typing import Optional

from .base import Detector

_LOG = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "webintel.detectors"


@dataclass
class DetectorRegistry:
    detectors: dict[str, Detector]

    @staticmethod
    def load_entrypoints(group: str = ENTRY_POINT_GROUP) -> dict[str, Detector]:
        """Load Detector plugins via Python entry points.

        - never raises (best-effort)
        - supports either a Detector instance or a factory returning one
        - registers by `detector.name`
        """
        loaded: dict[str, Detector] = {}
        try:
            eps = list(metadata.entry_points().select(group=group))
        except Exception as e:  # noqa: BLE001
            _LOG.warning("Cannot enumerate %s entry points: %s", group, e)
            return loaded

        for ep in eps:
            try:
                obj = ep.load()
                detector = obj() if callable(obj) else obj
            except Exception as e:  # noqa: BLE001
                _LOG.warning("Skipping detector plugin %s: %s", ep.name, e)
                continue
            if isinstance(detector, Detector):
                loaded[detector.name] = detector
            else:
                _LOG.warning("Entry point %s did not produce a Detector", ep.name)

        return loaded

    def get(self, name: str) -> Detector:
        return self.detectors[name]

    def list_names(self) -> list[str]:
        return sorted(self.detectors.keys())

    def select(self, names: Optional[Iterable[str]] = None) -> list[Detector]:
        if names is None:
            names = self.list_names()
        return [self.detectors[n] for n in names if n in self.detectors]
