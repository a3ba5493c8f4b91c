"""WebIntel - CDN, security and traffic enrichment for website lists."""

from .pipeline import RowScheduler, analyze_domain, analyze_rows

__version__ = "1.0.0"
__all__ = [
    "RowScheduler",
    "analyze_domain",
    "analyze_rows",
]
