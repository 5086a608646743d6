import json
from datetime import datetime, timedelta, timezone

import pytest

from gamescout.cache import CacheStore
from gamescout.models import GameRecord, Platform

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class Clock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kw):
        self.now += timedelta(**kw)


@pytest.fixture
def clock():
    return Clock()


def games():
    return [
        GameRecord(id="steam-730", name="Counter-Strike 2", platform=Platform.STEAM,
                   install_path="D:/SteamLibrary/steamapps/common/Counter-Strike Global Offensive",
                   executable_path="D:/SteamLibrary/steamapps/common/Counter-Strike Global Offensive/cs2.exe",
                   process_name="cs2.exe", size_mb=35840, icon_url="https://cdn.example/730.jpg",
                   last_played=T0 - timedelta(days=2)),
        GameRecord(id="steam-70", name="Half-Life", platform=Platform.STEAM, install_path="C:/hl"),
    ]


def test_fresh_hit_then_expiry(clock):
    store = CacheStore(freshness_seconds=3600, now=clock)
    store.put(Platform.STEAM, games())

    clock.advance(seconds=3599)
    hit = store.get(Platform.STEAM)
    assert hit is not None and hit.games == games()
    assert hit.fetched_at == T0

    clock.advance(seconds=1)
    assert store.get(Platform.STEAM) is None
    assert store.peek(Platform.STEAM).games == games()


def test_force_refresh_is_a_miss(clock):
    store = CacheStore(now=clock)
    store.put(Platform.STEAM, games())
    assert store.get(Platform.STEAM, force_refresh=True) is None
    assert store.get(Platform.EPIC) is None


def test_fetched_at_never_goes_backwards(clock):
    store = CacheStore(now=clock)
    store.put(Platform.STEAM, games())
    clock.advance(minutes=-30)
    entry = store.put(Platform.STEAM, [])
    assert entry.fetched_at == T0
    clock.advance(hours=2)
    assert store.put(Platform.STEAM, []).fetched_at == T0 + timedelta(minutes=90)


def test_round_trip_through_disk(tmp_path, clock):
    store = CacheStore(tmp_path, now=clock)
    store.put(Platform.STEAM, games())
    assert (tmp_path / "steam.json").exists()

    reloaded = CacheStore(tmp_path, now=clock)
    entry = reloaded.get(Platform.STEAM)
    assert entry.games == games()
    assert entry.fetched_at == T0
    assert set(reloaded.entries()) == {Platform.STEAM}


def test_invalidate_all_forgets_everything(tmp_path, clock):
    store = CacheStore(tmp_path, now=clock)
    store.put(Platform.STEAM, games())
    store.put(Platform.GOG, [])
    store.invalidate_all()

    assert store.entries() == {}
    assert store.get(Platform.STEAM) is None
    assert list(tmp_path.glob("*.json")) == []
    assert CacheStore(tmp_path, now=clock).entries() == {}


def test_corrupt_file_is_ignored(tmp_path, clock):
    (tmp_path / "steam.json").write_text("{", encoding="utf-8")
    (tmp_path / "epic.json").write_text(json.dumps({"platform": "Epic", "fetchedAt": T0.isoformat(), "games": []}),
                                        encoding="utf-8")
    store = CacheStore(tmp_path, now=clock)
    assert set(store.entries()) == {Platform.EPIC}


def test_write_failure_keeps_memory_entry(tmp_path, clock):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("x", encoding="utf-8")
    store = CacheStore(blocker, now=clock)
    store.put(Platform.STEAM, games())
    assert store.get(Platform.STEAM).games == games()
