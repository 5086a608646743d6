from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional


class Platform(str, Enum):
    STEAM = "Steam"
    EPIC = "Epic"
    XBOX = "Xbox"
    ORIGIN = "Origin"
    BATTLE_NET = "Battle.net"
    GOG = "GOG"
    UBISOFT_CONNECT = "Ubisoft Connect"
    RIOT = "Riot"
    OTHER = "Other"

    @property
    def priority(self) -> int:
        return PLATFORM_PRIORITY[self]

    @property
    def slug(self) -> str:
        return _SLUGS[self]

    @classmethod
    def parse(cls, text: str) -> "Platform":
        """Accept a display value, member name or slug ("battle.net", "BATTLE_NET", "battlenet")."""
        key = (text or "").strip().lower()
        for p in cls:
            if key in (p.value.lower(), p.name.lower(), p.slug):
                return p
        if key in ("uplay", "ubisoft", "ubisoftconnect"):
            return cls.UBISOFT_CONNECT
        if key == "ea":
            return cls.ORIGIN
        raise ValueError(f"unknown platform: {text!r}")


PLATFORM_PRIORITY: Dict[Platform, int] = {
    Platform.STEAM: 1,
    Platform.EPIC: 2,
    Platform.XBOX: 3,
    Platform.BATTLE_NET: 4,
    Platform.ORIGIN: 5,
    Platform.UBISOFT_CONNECT: 6,
    Platform.GOG: 7,
    Platform.RIOT: 8,
    Platform.OTHER: 9,
}

_SLUGS: Dict[Platform, str] = {
    Platform.STEAM: "steam",
    Platform.EPIC: "epic",
    Platform.XBOX: "xbox",
    Platform.ORIGIN: "origin",
    Platform.BATTLE_NET: "battlenet",
    Platform.GOG: "gog",
    Platform.UBISOFT_CONNECT: "uplay",
    Platform.RIOT: "riot",
    Platform.OTHER: "other",
}

# Platforms that have a detector; Riot and Other only appear on imported records.
SCANNED_PLATFORMS: List[Platform] = [
    Platform.STEAM,
    Platform.EPIC,
    Platform.XBOX,
    Platform.ORIGIN,
    Platform.BATTLE_NET,
    Platform.GOG,
    Platform.UBISOFT_CONNECT,
]


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts is not None else None


def _parse_iso(raw) -> Optional[datetime]:
    if not raw:
        return None
    ts = datetime.fromisoformat(str(raw))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True)
class GameRecord:
    id: str
    name: str
    platform: Platform
    install_path: str
    executable_path: str = ""       # falls back to install_path
    process_name: str = ""
    size_mb: int = 0
    icon_url: str = ""
    last_played: Optional[datetime] = None
    optimized: bool = False         # owned downstream; never set by detection

    def __post_init__(self):
        if not self.install_path:
            raise ValueError(f"GameRecord {self.id!r} needs an install path")
        if not self.executable_path:
            object.__setattr__(self, "executable_path", self.install_path)

    @property
    def dedupe_key(self):
        return (self.name.lower(), self.platform.value.lower())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "platform": self.platform.value,
            "installPath": self.install_path,
            "executablePath": self.executable_path,
            "processName": self.process_name,
            "sizeMB": self.size_mb,
            "iconUrl": self.icon_url,
            "lastPlayed": _iso(self.last_played),
            "optimized": self.optimized,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GameRecord":
        return cls(
            id=str(data["id"]),
            name=str(data["name"]),
            platform=Platform(data["platform"]),
            install_path=str(data["installPath"]),
            executable_path=str(data.get("executablePath") or ""),
            process_name=str(data.get("processName") or ""),
            size_mb=int(data.get("sizeMB") or 0),
            icon_url=str(data.get("iconUrl") or ""),
            last_played=_parse_iso(data.get("lastPlayed")),
            optimized=bool(data.get("optimized", False)),
        )


@dataclass
class DetectionResult:
    platform: Platform
    games: List[GameRecord] = field(default_factory=list)
    error: Optional[str] = None
    from_cache: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "platform": self.platform.value,
            "games": [g.to_dict() for g in self.games],
            "error": self.error,
            "fromCache": self.from_cache,
        }


@dataclass(frozen=True)
class CacheEntry:
    platform: Platform
    games: List[GameRecord]
    fetched_at: datetime

    def age_seconds(self, now: datetime) -> float:
        return (now - self.fetched_at).total_seconds()

    def to_dict(self) -> dict:
        return {
            "platform": self.platform.value,
            "fetchedAt": self.fetched_at.isoformat(),
            "games": [g.to_dict() for g in self.games],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CacheEntry":
        return cls(
            platform=Platform(data["platform"]),
            games=[GameRecord.from_dict(g) for g in data.get("games", [])],
            fetched_at=_parse_iso(data["fetchedAt"]),
        )


@dataclass
class ScanReport:
    catalog: List[GameRecord]
    errors: Dict[Platform, Optional[str]]

    def to_dict(self) -> dict:
        return {
            "catalog": [g.to_dict() for g in self.catalog],
            "errors": {p.value: err for p, err in self.errors.items()},
        }
