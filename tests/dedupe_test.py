import itertools
from datetime import datetime, timedelta, timezone

from gamescout.dedupe import catalog_sort_key, deduplicate, merge, resolve_catalog
from gamescout.models import GameRecord, Platform

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)


def rec(id, name, platform=Platform.STEAM, path=None, **kw):
    return GameRecord(id=id, name=name, platform=platform, install_path=path or f"C:/Games/{id}", **kw)


def test_richer_record_wins():
    bare = rec("steam-730", "Counter-Strike 2", path="C:/lib/cs2")
    full = rec("steam-730", "Counter-Strike 2", path="D:/lib/cs2", size_mb=35840,
               icon_url="https://cdn.example/730.jpg")
    assert merge(bare, full) is full
    assert merge(full, bare) is full

    sized = rec("x-1", "Game", size_mb=10)
    bigger = rec("x-1", "Game", path="D:/x", size_mb=20)
    assert merge(sized, bigger) is bigger

    old = rec("x-1", "Game", last_played=T0)
    recent = rec("x-1", "Game", path="D:/x", last_played=T0 + timedelta(days=1))
    assert merge(old, recent) is recent


def test_merge_is_order_independent():
    records = [
        rec("a-1", "Portal", path="C:/a", size_mb=5),
        rec("a-2", "portal", path="D:/a", size_mb=5),
        rec("a-3", "PORTAL", path="E:/a", size_mb=5),
        rec("b-1", "Hades", platform=Platform.EPIC, path="C:/h", icon_url="h.png"),
        rec("b-2", "Hades", platform=Platform.EPIC, path="D:/h", last_played=T0),
        rec("c-1", "Hades", platform=Platform.GOG, path="C:/g"),
    ]
    expected = sorted(deduplicate(records), key=catalog_sort_key)
    assert len(expected) == 3
    for perm in itertools.permutations(records):
        assert sorted(deduplicate(perm), key=catalog_sort_key) == expected
        assert resolve_catalog(perm) == expected


def test_same_id_under_two_names_collapses():
    a = rec("steam-10", "Counter-Strike", size_mb=1)
    b = rec("steam-10", "Counter-Strike: Source", size_mb=2)
    assert deduplicate([a, b]) == [b]
    assert deduplicate([b, a]) == [b]


def test_catalog_order():
    games = [
        rec("e1", "Alan Wake 2", platform=Platform.EPIC),
        rec("s1", "Zeta", last_played=T0),
        rec("s2", "Alpha", last_played=T0 + timedelta(hours=1)),
        rec("s3", "beta"),
        rec("s4", "Alpha Centauri"),
        rec("o1", "Other Thing", platform=Platform.OTHER, last_played=T0),
        rec("x1", "Halo", platform=Platform.XBOX),
    ]
    order = [g.id for g in resolve_catalog(games)]
    assert order == ["s2", "s1", "s4", "s3", "e1", "x1", "o1"]


def test_sort_key_is_a_strict_total_order():
    games = [
        rec("s1", "Same", path="C:/1"),
        rec("s2", "Same", path="C:/2"),
        rec("s3", "same", path="C:/3"),
        rec("s4", "Same", path="C:/4", last_played=T0),
        rec("g1", "Same", platform=Platform.GOG),
    ]
    keys = [catalog_sort_key(g) for g in games]
    assert len(set(keys)) == len(games)
    ordered = sorted(games, key=catalog_sort_key)
    for a, b in zip(ordered, ordered[1:]):
        assert catalog_sort_key(a) < catalog_sort_key(b)
