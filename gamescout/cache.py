"""Per-platform result cache with a freshness window, persisted as one JSON file per platform."""
from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .models import CacheEntry, GameRecord, Platform

logger = logging.getLogger(__name__)

DEFAULT_FRESHNESS_SECONDS = 3600


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CacheStore:
    def __init__(self, directory: Optional[Path] = None, freshness_seconds: float = DEFAULT_FRESHNESS_SECONDS,
                 now: Callable[[], datetime] = utcnow):
        self.directory = Path(directory) if directory else None
        self.freshness_seconds = float(freshness_seconds)
        self._now = now
        self._entries: Dict[Platform, CacheEntry] = {}
        self._locks: Dict[Platform, threading.Lock] = {p: threading.Lock() for p in Platform}
        self._load()

    def now(self) -> datetime:
        return self._now()

    def _file(self, platform: Platform) -> Path:
        return self.directory / f"{platform.slug}.json"

    def _load(self) -> None:
        if self.directory is None or not self.directory.is_dir():
            return
        for platform in Platform:
            f = self._file(platform)
            if not f.exists():
                continue
            try:
                entry = CacheEntry.from_dict(json.loads(f.read_text("utf-8")))
            except Exception as e:
                logger.warning("ignoring corrupt cache file %s: %s", f, e)
                continue
            if entry.platform is platform:
                self._entries[platform] = entry

    def get(self, platform: Platform, force_refresh: bool = False) -> Optional[CacheEntry]:
        """The cached entry while it is fresh; None on a miss or when forced."""
        if force_refresh:
            return None
        entry = self._entries.get(platform)
        if entry is None:
            return None
        if entry.age_seconds(self._now()) < self.freshness_seconds:
            return entry
        return None

    def peek(self, platform: Platform) -> Optional[CacheEntry]:
        return self._entries.get(platform)

    def entries(self) -> Dict[Platform, CacheEntry]:
        return dict(self._entries)

    def put(self, platform: Platform, games: List[GameRecord]) -> CacheEntry:
        with self._locks[platform]:
            now = self._now()
            previous = self._entries.get(platform)
            if previous is not None and previous.fetched_at > now:
                now = previous.fetched_at
            entry = CacheEntry(platform, list(games), now)
            self._entries[platform] = entry
            self._persist(entry)
        return entry

    def _persist(self, entry: CacheEntry) -> None:
        if self.directory is None:
            return
        target = self._file(entry.platform)
        tmp = target.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(entry.to_dict(), indent=2), encoding="utf-8")
            os.replace(tmp, target)
        except OSError as e:
            logger.warning("could not persist %s cache to %s: %s", entry.platform.value, target, e)

    def invalidate_all(self) -> None:
        for platform in Platform:
            with self._locks[platform]:
                self._entries.pop(platform, None)
                if self.directory is None:
                    continue
                try:
                    self._file(platform).unlink()
                except FileNotFoundError:
                    pass
                except OSError as e:
                    logger.warning("could not remove cache file for %s: %s", platform.value, e)
