from .base import Detector
from .builtins import builtin_detectors
from .registry import DetectorRegistry

__all__ = ["Detector", "DetectorRegistry", "builtin_detectors"]
