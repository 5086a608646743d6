"""Capability providers: the only way the engine touches the OS.

Detectors never call ``os``/``winreg`` directly. They receive a provider, so a
mock environment is just another provider (``MemoryProvider``) rather than a
branch inside detection logic.
"""
from __future__ import annotations

import json
import os
import posixpath
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

if sys.platform == "win32":
    import winreg
else:
    winreg = None

WELL_KNOWN_KINDS = ("home", "localAppData", "programFiles", "programFilesX86", "programData", "systemDrive")


@dataclass(frozen=True)
class DirEntry:
    name: str
    is_dir: bool


class CapabilityProvider(ABC):
    @abstractmethod
    def registry_get(self, hive: str, key_path: str, value_name: str) -> Optional[str]:
        """Return a registry string value, or None when absent."""

    @abstractmethod
    def path_exists(self, path: str) -> bool: ...

    @abstractmethod
    def list_dir(self, path: str) -> List[DirEntry]: ...

    @abstractmethod
    def read_file(self, path: str) -> bytes: ...

    @abstractmethod
    def stat_size(self, path: str) -> int:
        """Size of a file in bytes."""

    @abstractmethod
    def get_env_var(self, name: str) -> Optional[str]: ...

    @abstractmethod
    def get_well_known_path(self, kind: str) -> Optional[str]: ...

    def read_text(self, path: str) -> str:
        return self.read_file(path).decode("utf-8", errors="replace")

    def is_dir(self, path: str) -> bool:
        parent, name = os.path.split(path.rstrip("/\\"))
        if not name:
            return self.path_exists(path)
        try:
            return any(e.is_dir and e.name == name for e in self.list_dir(parent))
        except OSError:
            return False


# ──────────────────────────────────────────────────────────────────────────────
# Real OS
# ──────────────────────────────────────────────────────────────────────────────

_HIVES = {
    "HKCU": "HKEY_CURRENT_USER",
    "HKLM": "HKEY_LOCAL_MACHINE",
}


class LocalProvider(CapabilityProvider):
    def registry_get(self, hive, key_path, value_name):
        if winreg is None:
            return None
        root = getattr(winreg, _HIVES.get(hive, hive))
        try:
            with winreg.OpenKey(root, key_path) as key:
                value, _ = winreg.QueryValueEx(key, value_name)
        except FileNotFoundError:
            return None
        return str(value) if value else None

    def path_exists(self, path):
        return os.path.exists(path)

    def is_dir(self, path):
        return os.path.isdir(path)

    def list_dir(self, path):
        with os.scandir(path) as it:
            return [DirEntry(e.name, e.is_dir()) for e in it]

    def read_file(self, path):
        with open(path, "rb") as f:
            return f.read()

    def stat_size(self, path):
        return os.stat(path).st_size

    def get_env_var(self, name):
        return os.environ.get(name) or None

    def get_well_known_path(self, kind):
        env = os.environ
        home = str(Path.home())
        if kind == "home":
            return home
        if kind == "localAppData":
            return env.get("LOCALAPPDATA") or os.path.join(home, "AppData", "Local")
        if kind == "programFiles":
            return env.get("ProgramFiles") or r"C:\Program Files"
        if kind == "programFilesX86":
            return env.get("ProgramFiles(x86)") or r"C:\Program Files (x86)"
        if kind == "programData":
            return env.get("ProgramData") or r"C:\ProgramData"
        if kind == "systemDrive":
            return env.get("SystemDrive") or "C:"
        raise ValueError(f"unknown well-known path kind: {kind}")


# ──────────────────────────────────────────────────────────────────────────────
# In-memory (mock environment, tests)
# ──────────────────────────────────────────────────────────────────────────────

def _norm(path: str) -> str:
    p = posixpath.normpath(str(path).replace("\\", "/"))
    return p.rstrip("/") or "/"


class MemoryProvider(CapabilityProvider):
    """A simulated machine: files, registry values, env vars and well-known paths.

    Paths are compared after folding backslashes to slashes, so fixtures may use
    either separator. ``failing`` paths raise OSError on any access, which is how
    tests simulate permission errors.
    """

    def __init__(self, *, files: Optional[Dict[str, bytes]] = None,
                 registry: Optional[Dict[Tuple[str, str, str], str]] = None,
                 env: Optional[Dict[str, str]] = None,
                 well_known: Optional[Dict[str, str]] = None,
                 failing: Iterable[str] = ()):
        self._files: Dict[str, bytes] = {}
        self._sizes: Dict[str, int] = {}
        self._dirs = {"/"}
        self.registry: Dict[Tuple[str, str, str], str] = {}
        self.env: Dict[str, str] = dict(env or {})
        self.well_known: Dict[str, str] = dict(well_known or {})
        self.failing = {_norm(p) for p in failing}
        for path, data in (files or {}).items():
            self.add_file(path, data)
        for (hive, key, name), value in (registry or {}).items():
            self.set_registry(hive, key, name, value)

    # building
    def add_dir(self, path: str) -> str:
        p = _norm(path)
        while p not in self._dirs:
            self._dirs.add(p)
            p = posixpath.dirname(p) or "/"
        return p

    def add_file(self, path: str, data=b"", size: Optional[int] = None) -> str:
        p = _norm(path)
        if isinstance(data, str):
            data = data.encode("utf-8")
        self.add_dir(posixpath.dirname(p) or "/")
        self._files[p] = data
        if size is not None:
            self._sizes[p] = size
        return p

    def set_registry(self, hive: str, key_path: str, value_name: str, value: str) -> None:
        self.registry[(hive.upper(), key_path.lower(), value_name.lower())] = value

    def _check(self, path: str) -> str:
        p = _norm(path)
        for bad in self.failing:
            if p == bad or p.startswith(bad + "/"):
                raise PermissionError(13, "Access is denied", path)
        return p

    # interface
    def registry_get(self, hive, key_path, value_name):
        return self.registry.get((hive.upper(), key_path.lower(), value_name.lower()))

    def path_exists(self, path):
        p = self._check(path)
        return p in self._dirs or p in self._files

    def is_dir(self, path):
        return self._check(path) in self._dirs

    def list_dir(self, path):
        p = self._check(path)
        if p not in self._dirs:
            raise FileNotFoundError(2, "No such directory", path)
        prefix = "" if p == "/" else p
        out = []
        for d in self._dirs:
            if d != p and posixpath.dirname(d) == (prefix or "/"):
                out.append(DirEntry(posixpath.basename(d), True))
        for f in self._files:
            if posixpath.dirname(f) == (prefix or "/"):
                out.append(DirEntry(posixpath.basename(f), False))
        return sorted(out, key=lambda e: e.name)

    def read_file(self, path):
        p = self._check(path)
        if p not in self._files:
            raise FileNotFoundError(2, "No such file", path)
        return self._files[p]

    def stat_size(self, path):
        p = self._check(path)
        if p not in self._files:
            raise FileNotFoundError(2, "No such file", path)
        return self._sizes.get(p, len(self._files[p]))

    def get_env_var(self, name):
        return self.env.get(name)

    def get_well_known_path(self, kind):
        if kind not in WELL_KNOWN_KINDS:
            raise ValueError(f"unknown well-known path kind: {kind}")
        return self.well_known.get(kind)

    @classmethod
    def from_json(cls, fixture: Path) -> "MemoryProvider":
        """Load a fixture: {"files": {path: text | {"size": n}}, "dirs": [...],
        "registry": [[hive, key, name, value], ...], "env": {...}, "wellKnown": {...}}"""
        data = json.loads(Path(fixture).read_text("utf-8"))
        mp = cls(env=data.get("env"), well_known=data.get("wellKnown"))
        for d in data.get("dirs", []):
            mp.add_dir(d)
        for path, content in (data.get("files") or {}).items():
            if isinstance(content, dict):
                mp.add_file(path, content.get("text", ""), size=content.get("size"))
            else:
                mp.add_file(path, content)
        for hive, key, name, value in data.get("registry", []):
            mp.set_registry(hive, key, name, value)
        return mp
