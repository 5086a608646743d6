"""Scan coordinator: fan detectors out over a thread pool, join, merge."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional

from .cache import CacheStore
from .dedupe import resolve_catalog
from .detectors import DETECTORS, PlatformDetector
from .errors import ConcurrentScanInProgress, describe
from .models import SCANNED_PLATFORMS, DetectionResult, GameRecord, Platform, ScanReport
from .provider import CapabilityProvider
from .settings import DEFAULTS, ScanOptions
from .utils import is_path_ignored

logger = logging.getLogger(__name__)


class PlatformState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class CoordinatorState(str, Enum):
    IDLE = "idle"
    SCANNING_ALL = "scanning_all"
    AGGREGATING = "aggregating"


@dataclass
class PlatformStatus:
    state: PlatformState = PlatformState.IDLE
    last_outcome: Optional[PlatformState] = None
    last_error: Optional[str] = None
    last_count: int = 0


class ScanCoordinator:
    """Runs every platform detector concurrently and builds the unified catalog.

    Construct one per process with the provider and cache it should use; there is
    no module-level instance. Detector failures stay inside their platform: they
    become that platform's error string and never reach the caller as exceptions.
    """

    def __init__(self, provider: CapabilityProvider, cache: CacheStore,
                 detectors: Optional[Mapping[Platform, PlatformDetector]] = None,
                 settings: Optional[dict] = None):
        self.provider = provider
        self.cache = cache
        self.detectors = dict(detectors if detectors is not None else DETECTORS)
        self.settings = dict(DEFAULTS, **(settings or {}))
        self.options = ScanOptions.from_settings(self.settings)
        self._pool = ThreadPoolExecutor(max_workers=int(self.settings["max_workers"]) or None,
                                        thread_name_prefix="gamescout-scan")
        self._lock = threading.Lock()
        self._running = set()
        self._status: Dict[Platform, PlatformStatus] = {p: PlatformStatus() for p in SCANNED_PLATFORMS}
        self.state = CoordinatorState.IDLE

    # --- per-platform unit -----------------------------------------------------

    def _claim(self, platform: Platform) -> bool:
        with self._lock:
            if platform in self._running:
                return False
            self._running.add(platform)
            self._status[platform].state = PlatformState.SCANNING
            return True

    def _release(self, platform: Platform, result: DetectionResult) -> None:
        with self._lock:
            self._running.discard(platform)
            st = self._status[platform]
            st.last_outcome = PlatformState.SUCCEEDED if result.ok else PlatformState.FAILED
            st.last_error = result.error
            st.last_count = len(result.games)
            st.state = PlatformState.IDLE

    def _busy(self, platform: Platform) -> DetectionResult:
        stale = self.cache.peek(platform)
        return DetectionResult(platform, list(stale.games) if stale else [],
                               str(ConcurrentScanInProgress(platform)), from_cache=stale is not None)

    def _run(self, platform: Platform, force: bool) -> DetectionResult:
        """Worker body; the caller has already claimed ``platform``."""
        result = DetectionResult(platform)
        try:
            hit = self.cache.get(platform, force_refresh=force)
            if hit is not None:
                logger.debug("%s: served from cache", platform.value)
                result = DetectionResult(platform, list(hit.games), from_cache=True)
                return result

            detector = self.detectors.get(platform)
            if detector is None:
                return result
            try:
                result = detector.detect(self.provider, self.options)
            except Exception as e:
                logger.warning("%s detection failed: %s", platform.value, e, exc_info=True)
                result = DetectionResult(platform, error=describe(e))
                return result

            # partial results (games plus an error) are cached too
            self.cache.put(platform, result.games)
            return result
        finally:
            self._release(platform, result)

    def _submit(self, platform: Platform, force: bool) -> Optional[Future]:
        if not self._claim(platform):
            return None
        try:
            return self._pool.submit(self._run, platform, force)
        except RuntimeError:
            self._release(platform, DetectionResult(platform))
            raise

    # --- caller interface ------------------------------------------------------

    def scan_platform(self, platform: Platform, force_refresh: bool = False) -> DetectionResult:
        fut = self._submit(platform, force_refresh)
        if fut is None:
            logger.info("%s scan already running", platform.value)
            return self._busy(platform)
        return fut.result()

    def scan_all(self, force_refresh: bool = False) -> ScanReport:
        self.state = CoordinatorState.SCANNING_ALL
        try:
            futures: Dict[Platform, Optional[Future]] = {
                p: self._submit(p, force_refresh) for p in SCANNED_PLATFORMS
            }
            results: Dict[Platform, DetectionResult] = {}
            for p, fut in futures.items():
                results[p] = fut.result() if fut is not None else self._busy(p)

            self.state = CoordinatorState.AGGREGATING
            games = [g for r in results.values() for g in r.games]
            catalog = self._finish(games)
            errors = {p: results[p].error for p in SCANNED_PLATFORMS}
            failed = [p.value for p, err in errors.items() if err]
            logger.info("scan complete: %d game(s), %d platform error(s)%s", len(catalog), len(failed),
                        f" ({', '.join(failed)})" if failed else "")
            return ScanReport(catalog, errors)
        finally:
            self.state = CoordinatorState.IDLE

    def clear_cache(self) -> None:
        self.cache.invalidate_all()
        logger.info("cache cleared")

    def get_cached_catalog(self) -> List[GameRecord]:
        games = [g for entry in self.cache.entries().values() for g in entry.games]
        return self._finish(games)

    def _finish(self, games: List[GameRecord]) -> List[GameRecord]:
        patterns = self.options.ignore_patterns
        if patterns:
            games = [g for g in games if not is_path_ignored(g.install_path, patterns)]
        return resolve_catalog(games)

    def status(self) -> Dict[Platform, PlatformStatus]:
        with self._lock:
            return {p: PlatformStatus(**vars(s)) for p, s in self._status.items()}

    def close(self) -> None:
        self._pool.shutdown(wait=True)
