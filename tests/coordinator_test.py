import threading

import pytest

from gamescout.cache import CacheStore
from gamescout.coordinator import PlatformState, ScanCoordinator
from gamescout.models import SCANNED_PLATFORMS, DetectionResult, GameRecord, Platform
from gamescout.provider import MemoryProvider


class FakeDetector:
    def __init__(self, platform, games=(), exc=None, gate=None, error=None):
        self.platform = platform
        self.games = list(games)
        self.exc = exc
        self.error = error
        self.gate = gate
        self.started = threading.Event()
        self.calls = 0

    def detect(self, provider, options=None):
        self.calls += 1
        self.started.set()
        if self.gate is not None:
            assert self.gate.wait(5)
        if self.exc is not None:
            raise self.exc
        return DetectionResult(self.platform, list(self.games), self.error)


def one_game(platform, name=None, path=None):
    name = name or f"{platform.value} Game"
    return GameRecord(id=f"{platform.slug}-1", name=name, platform=platform,
                      install_path=path or f"C:/Games/{platform.slug}/game")


@pytest.fixture
def fakes():
    return {p: FakeDetector(p, [one_game(p)]) for p in SCANNED_PLATFORMS}


@pytest.fixture
def make(fakes):
    made = []

    def _make(settings=None, cache=None):
        coord = ScanCoordinator(MemoryProvider(), cache or CacheStore(), detectors=fakes, settings=settings)
        made.append(coord)
        return coord

    yield _make
    for c in made:
        c.close()


def test_one_failing_platform_is_isolated(make, fakes):
    fakes[Platform.XBOX].exc = OSError("disk went away")
    report = make().scan_all()

    assert set(report.errors) == set(SCANNED_PLATFORMS)
    assert {p: e for p, e in report.errors.items() if e} == {Platform.XBOX: "IOError: disk went away"}
    assert len(report.catalog) == 6
    assert Platform.XBOX not in {g.platform for g in report.catalog}


def test_failed_platform_is_not_cached(make, fakes):
    fakes[Platform.GOG].exc = ValueError("bad data")
    coord = make()
    report = coord.scan_all()
    assert report.errors[Platform.GOG] == "ValueError: bad data"
    assert coord.cache.peek(Platform.GOG) is None
    assert coord.cache.peek(Platform.STEAM) is not None
    assert coord.status()[Platform.GOG].last_outcome is PlatformState.FAILED


def test_partial_result_is_kept_and_cached(make, fakes):
    denied = "C:/Program Files/WindowsApps: IOError: Access is denied"
    fakes[Platform.XBOX].error = denied
    coord = make()
    report = coord.scan_all()

    game = fakes[Platform.XBOX].games[0]
    assert game in report.catalog
    assert report.errors[Platform.XBOX] == denied
    assert coord.cache.peek(Platform.XBOX).games == [game]
    assert game in coord.get_cached_catalog()

    coord.scan_all()
    assert fakes[Platform.XBOX].calls == 1


def test_fresh_cache_skips_detectors_unless_forced(make, fakes):
    coord = make()
    coord.scan_all()
    coord.scan_all()
    assert all(f.calls == 1 for f in fakes.values())

    coord.scan_all(force_refresh=True)
    assert all(f.calls == 2 for f in fakes.values())


def test_scan_platform_reports_cache_use(make, fakes):
    coord = make()
    first = coord.scan_platform(Platform.EPIC)
    second = coord.scan_platform(Platform.EPIC)
    assert not first.from_cache and second.from_cache
    assert second.games == first.games
    assert fakes[Platform.EPIC].calls == 1


def test_catalog_is_deduplicated_and_ordered(make, fakes):
    fakes[Platform.STEAM].games = [
        one_game(Platform.STEAM, "Portal", "C:/a/Portal"),
        GameRecord(id="steam-400", name="portal", platform=Platform.STEAM,
                   install_path="D:/b/Portal", size_mb=4000),
    ]
    report = make().scan_all()
    steam = [g for g in report.catalog if g.platform is Platform.STEAM]
    assert [g.id for g in steam] == ["steam-400"]
    assert report.catalog[0].platform is Platform.STEAM
    assert report.catalog[-1].platform is Platform.GOG


def test_ignore_patterns_hide_install_paths(make, fakes):
    fakes[Platform.GOG].games = [one_game(Platform.GOG, "Demo Thing", "D:/Games/Demos/Thing")]
    report = make(settings={"ignore_patterns": ["Demos/"]}).scan_all()
    assert Platform.GOG not in {g.platform for g in report.catalog}
    assert report.errors[Platform.GOG] is None


def test_cached_catalog_and_clear(make, fakes):
    coord = make()
    assert coord.get_cached_catalog() == []
    coord.scan_all()
    assert len(coord.get_cached_catalog()) == 7
    assert all(f.calls == 1 for f in fakes.values())

    coord.clear_cache()
    assert coord.get_cached_catalog() == []


def test_concurrent_scan_of_same_platform_is_refused(make, fakes):
    gate = threading.Event()
    steam = fakes[Platform.STEAM]
    steam.gate = gate
    coord = make()
    coord.cache.put(Platform.STEAM, [one_game(Platform.STEAM, "Stale")])

    results = []
    t = threading.Thread(target=lambda: results.append(coord.scan_platform(Platform.STEAM, force_refresh=True)))
    t.start()
    try:
        assert steam.started.wait(5)
        busy = coord.scan_platform(Platform.STEAM)
        assert "already in progress" in busy.error
        assert [g.name for g in busy.games] == ["Stale"]
        assert coord.status()[Platform.STEAM].state is PlatformState.SCANNING
    finally:
        gate.set()
        t.join(5)

    assert results and results[0].ok
    assert steam.calls == 1
    assert coord.status()[Platform.STEAM].state is PlatformState.IDLE
