import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)

DEFAULTS = {
    "freshness_seconds": 3600,
    "max_scan_depth": 3,
    "min_exe_size_mb": 10,
    "max_workers": 7,
    "ignore_patterns": [],
}


def load_settings(settings_file: Path) -> Dict:
    default = {k: (list(v) if isinstance(v, list) else v) for k, v in DEFAULTS.items()}
    try:
        if settings_file.exists():
            data = json.loads(settings_file.read_text("utf-8"))
            default.update({k: data.get(k, default[k]) for k in default})
    except Exception as e:
        logger.warning("ignoring unreadable settings file %s: %s", settings_file, e)
    return default


def save_settings(settings_file: Path, settings: dict) -> None:
    settings_file.write_text(json.dumps(settings, indent=2), encoding="utf-8")


@dataclass(frozen=True)
class ScanOptions:
    """Knobs the detectors read; built from the settings dict."""
    max_depth: int = 3
    min_exe_size_mb: int = 10
    ignore_patterns: List[str] = field(default_factory=list)

    @property
    def min_exe_bytes(self) -> int:
        return self.min_exe_size_mb * 1024 * 1024

    @classmethod
    def from_settings(cls, settings: dict) -> "ScanOptions":
        return cls(
            max_depth=int(settings.get("max_scan_depth", DEFAULTS["max_scan_depth"])),
            min_exe_size_mb=int(settings.get("min_exe_size_mb", DEFAULTS["min_exe_size_mb"])),
            ignore_patterns=[str(p) for p in settings.get("ignore_patterns") or []],
        )
