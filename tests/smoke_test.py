#!/usr/bin/env python3
"""
Smoke test for GameScout, end to end against a simulated Windows machine.

Checks:
- settings file round trip and defaults
- full scan through the Flask API (Steam, Xbox, GOG found; nothing else errors)
- second scan served from the cache without touching the detectors
- cache files survive an app restart
- ignore patterns hide a platform's games
"""
import shutil
import tempfile
from pathlib import Path

from gamescout import create_app, ensure_cache_dir
from gamescout.provider import MemoryProvider
from gamescout.settings import DEFAULTS, load_settings, save_settings

FIXTURE = Path(__file__).parent / "fixtures" / "machine.json"


def _names(body):
    return [g["name"] for g in body["catalog"]]


def main():
    tmp = Path(tempfile.mkdtemp(prefix="gamescout_test_"))
    apps = []
    try:
        cache_dir = tmp / "cache"
        ensure_cache_dir(str(cache_dir))
        settings_file = cache_dir / "settings.json"

        assert load_settings(settings_file) == DEFAULTS
        settings_file.write_text("{ broken", encoding="utf-8")
        assert load_settings(settings_file) == DEFAULTS, "unreadable settings must fall back to defaults"

        save_settings(settings_file, dict(DEFAULTS, freshness_seconds=600))
        assert load_settings(settings_file)["freshness_seconds"] == 600

        machine = MemoryProvider.from_json(FIXTURE)
        app = create_app(str(cache_dir), provider=machine)
        apps.append(app)
        client = app.test_client()

        first = client.post("/api/scan").get_json()
        assert _names(first) == ["Counter-Strike 2", "Forza Horizon 5", "Witcher 3"], _names(first)
        assert not any(first["errors"].values()), first["errors"]

        # the cache answers now; an unreadable disk must not matter
        machine.failing.add("C:")
        second = client.post("/api/scan").get_json()
        assert _names(second) == _names(first)
        machine.failing.clear()

        # restart: a new app over the same cache directory sees the same catalog
        app2 = create_app(str(cache_dir), provider=MemoryProvider())
        apps.append(app2)
        restored = app2.test_client().get("/api/games").get_json()["games"]
        assert [g["name"] for g in restored] == _names(first)

        # ignore patterns
        save_settings(settings_file, dict(DEFAULTS, ignore_patterns=["GOG Games/"]))
        app3 = create_app(str(cache_dir), provider=MemoryProvider.from_json(FIXTURE))
        apps.append(app3)
        hidden = app3.test_client().post("/api/scan", json={"force": True}).get_json()
        assert _names(hidden) == ["Counter-Strike 2", "Forza Horizon 5"], _names(hidden)

        print("[OK] Settings defaults and round trip.")
        print("[OK] Scan found:", _names(first))
        print("[OK] Cached scan served without disk access.")
        print("[OK] Catalog restored after restart:", len(restored), "games")
        print("[OK] Ignore patterns respected (GOG hidden).")

    finally:
        for a in apps:
            a.extensions["gamescout"].close()
        shutil.rmtree(tmp, ignore_errors=True)


def test_smoke():
    main()


if __name__ == "__main__":
    main()
