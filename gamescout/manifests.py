"""Launcher metadata parsers: Steam ACF/VDF files and Epic's installation list."""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import vdf

from .errors import ManifestParseError

# --- Steam ---------------------------------------------------------------------

_FIELD_RE = {
    "appid": re.compile(r'"appid"\s+"(\d+)"', re.IGNORECASE),
    "name": re.compile(r'"name"\s+"((?:[^"\\]|\\.)+)"', re.IGNORECASE),
    "installdir": re.compile(r'"installdir"\s+"((?:[^"\\]|\\.)+)"', re.IGNORECASE),
    "sizeondisk": re.compile(r'"SizeOnDisk"\s+"(\d+)"', re.IGNORECASE),
    "lastplayed": re.compile(r'"LastPlayed"\s+"(\d+)"', re.IGNORECASE),
}

# libraryfolders.vdf has shipped in several shapes over the years; every
# match from every shape is kept.
_LIBRARY_FLAT_RE = re.compile(r'"path"\s+"((?:[^"\\]|\\.)+)"', re.IGNORECASE)
_LIBRARY_NESTED_RE = re.compile(r'"([0-9]+)"\s+\{[^}]*?"path"\s+"((?:[^"\\]|\\.)+)"', re.IGNORECASE)
_LIBRARY_LEGACY_RE = re.compile(r'^\s*"([0-9]+)"\s+"((?:[^"\\]|\\.)+)"\s*$', re.MULTILINE)


def _unescape(value: str) -> str:
    return value.replace("\\\\", "\\").replace('\\"', '"')


@dataclass(frozen=True)
class SteamManifest:
    app_id: str
    name: str
    install_dir: str
    size_on_disk: int = 0
    last_played: Optional[datetime] = None

    @property
    def size_mb(self) -> int:
        return round(self.size_on_disk / (1024 * 1024))


def _lower_keys(node) -> dict:
    return {str(k).lower(): v for k, v in node.items()} if isinstance(node, dict) else {}


def _fields_from_vdf(text: str) -> Optional[dict]:
    try:
        doc = vdf.loads(text)
    except (SyntaxError, ValueError):
        return None
    state = _lower_keys(doc).get("appstate")
    if not isinstance(state, dict):
        return None
    return {k: v for k, v in _lower_keys(state).items() if k in _FIELD_RE and isinstance(v, str)}


def _fields_from_patterns(text: str) -> dict:
    fields = {}
    for key, rx in _FIELD_RE.items():
        m = rx.search(text)
        if m:
            fields[key] = _unescape(m.group(1))
    return fields


def _epoch(raw) -> Optional[datetime]:
    try:
        secs = int(raw or 0)
    except (TypeError, ValueError):
        return None
    if secs <= 0:
        return None
    return datetime.fromtimestamp(secs, tz=timezone.utc)


def parse_app_manifest(text: str, source: str = "appmanifest") -> Optional[SteamManifest]:
    """Parse one ``appmanifest_<id>.acf``.

    Returns None when appid, name or installdir is missing; raises
    ManifestParseError when the text carries none of the expected fields at all.
    """
    fields = _fields_from_vdf(text)
    if not fields:
        fields = _fields_from_patterns(text)
    if not any(k in fields for k in ("appid", "name", "installdir")):
        raise ManifestParseError(source, "no AppState fields found")

    app_id = (fields.get("appid") or "").strip()
    name = (fields.get("name") or "").strip()
    install_dir = (fields.get("installdir") or "").strip()
    if not app_id.isdigit() or not name or not install_dir:
        return None
    try:
        size = int(fields.get("sizeondisk") or 0)
    except ValueError:
        size = 0
    return SteamManifest(app_id, name, install_dir, size, _epoch(fields.get("lastplayed")))


def parse_library_folders(text: str) -> List[str]:
    """Library folder paths listed in ``libraryfolders.vdf``, in file order, deduplicated."""
    found: List[str] = []
    for m in _LIBRARY_FLAT_RE.finditer(text):
        found.append(m.group(1))
    for m in _LIBRARY_NESTED_RE.finditer(text):
        found.append(m.group(2))
    for m in _LIBRARY_LEGACY_RE.finditer(text):
        # numeric keys also index app sizes in the "apps" block; only paths count
        if re.search(r"[\\/:]", m.group(2)):
            found.append(m.group(2))

    out: List[str] = []
    seen = set()
    for raw in found:
        path = _unescape(raw).strip()
        if path and path.lower() not in seen:
            seen.add(path.lower())
            out.append(path)
    return out


def steam_icon_url(app_id: str) -> str:
    return f"https://cdn.cloudflare.steamstatic.com/steam/apps/{app_id}/header.jpg"


# --- Epic ----------------------------------------------------------------------

@dataclass(frozen=True)
class EpicInstall:
    display_name: str
    app_name: str
    install_location: str
    launch_executable: str = ""


def parse_installation_list(text: str, source: str = "LauncherInstalled.dat") -> List[EpicInstall]:
    try:
        doc = json.loads(text)
    except ValueError as e:
        raise ManifestParseError(source, f"invalid JSON: {e}") from e
    entries = doc.get("InstallationList") if isinstance(doc, dict) else None
    if not isinstance(entries, list):
        raise ManifestParseError(source, "missing InstallationList array")

    installs: List[EpicInstall] = []
    for item in entries:
        if not isinstance(item, dict):
            continue
        location = str(item.get("InstallLocation") or "").strip()
        if not location:
            continue
        app_name = str(item.get("AppName") or "").strip()
        display = str(item.get("DisplayName") or "").strip() or app_name
        if not display:
            display = re.split(r"[\\/]", location.rstrip("\\/"))[-1]
        installs.append(EpicInstall(display, app_name, location,
                                    str(item.get("LaunchExecutable") or "").strip()))
    return installs


# --- titles --------------------------------------------------------------------

_MARKS_RE = re.compile(r"[®™©]")
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def strip_marks(name: str) -> str:
    return re.sub(r"\s+", " ", _MARKS_RE.sub("", name or "")).strip()


def clean_gog_title(name: str) -> str:
    """Drop a leading "GOG " and a trailing parenthetical, e.g. "GOG Witcher 3 (GOTY)"."""
    s = re.sub(r"^GOG\s+", "", strip_marks(name), flags=re.IGNORECASE)
    s = re.sub(r"\s*\([^()]*\)$", "", s).strip()
    return s or strip_marks(name)


def words_from_folder(folder: str) -> str:
    """``AssassinsCreed_Origins`` -> ``Assassins Creed Origins``."""
    s = folder.replace("_", " ")
    s = _CAMEL_RE.sub(" ", s)
    return re.sub(r"\s+", " ", s).strip()


def xbox_package_title(package: str) -> str:
    """``Microsoft.HaloInfinite_1.0.0.0_x64__8wekyb3d8bbwe`` -> ``Halo Infinite``."""
    base = package.split("_", 1)[0]
    if "." in base:
        base = base.rsplit(".", 1)[1] or base
    return words_from_folder(base) or package
