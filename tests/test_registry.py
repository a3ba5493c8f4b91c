from __future__ import annotations

from types import SimpleNamespace
from typing import Any

from webintel.cache import TTLCache
from webintel.config import Settings
from webintel.detectors import DetectorRegistry, builtin_detectors
from webintel.detectors.cdn import CdnAttributor
from webintel.detectors.traffic import ScrapeSource, XRanksSource
from webintel.models import DetectionResult


class PluginDetector(CdnAttributor):
    name = "cdn"

    def detect(self, hostname: str) -> DetectionResult:
        return DetectionResult(kind="cdn", status="success", value="Plugin CDN", source="plugin")


def test_builtin_detectors_share_cache() -> None:
    cache = TTLCache()
    detectors = builtin_detectors(Settings(ipinfo_token="tok"), cache)

    assert sorted(detectors) == ["cdn", "defense", "traffic"]
    assert all(d.cache is cache for d in detectors.values())
    assert detectors["cdn"].is_available() is True
    assert detectors["traffic"].is_available() is False


def test_traffic_source_selection() -> None:
    xr = builtin_detectors(Settings(xranks_api_key="k"))["traffic"]
    scrape = builtin_detectors(Settings(traffic_source="scrape"))["traffic"]
    assert isinstance(xr.traffic_source, XRanksSource)  # type: ignore[attr-defined]
    assert isinstance(scrape.traffic_source, ScrapeSource)  # type: ignore[attr-defined]
    assert scrape.source == "Similarweb"


def test_registry_select_and_names() -> None:
    reg = DetectorRegistry(builtin_detectors(Settings()))
    assert reg.list_names() == ["cdn", "defense", "traffic"]
    assert [d.name for d in reg.select(["traffic", "missing", "cdn"])] == ["traffic", "cdn"]
    assert reg.get("defense").kind == "defense"


def test_load_entrypoints(monkeypatch: Any) -> None:
    good = SimpleNamespace(name="plugin", load=lambda: (lambda: PluginDetector("tok")))
    bad = SimpleNamespace(name="broken", load=lambda: (_ for _ in ()).throw(ImportError("nope")))
    other = SimpleNamespace(name="other", load=lambda: object())

    class FakeEntryPoints:
        def select(self, group: str) -> list[Any]:
            assert group == "webintel.detectors"
            return [good, bad, other]

    monkeypatch.setattr("webintel.detectors.registry.metadata.entry_points", lambda: FakeEntryPoints())

    loaded = DetectorRegistry.load_entrypoints()
    assert list(loaded) == ["cdn"]
    assert loaded["cdn"].detect("example.com").value == "Plugin CDN"
