"""Source locator: where is a launcher installed, and where does it put games."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .provider import CapabilityProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistryProbe:
    hive: str
    key: str
    value: str
    is_file: bool = False   # value names an executable; its parent directory is the root


# A path template is a tuple: (well-known kind or "@root" or "@drive", *parts).
PathTemplate = Tuple[str, ...]


@dataclass(frozen=True)
class LauncherSource:
    name: str
    registry: Tuple[RegistryProbe, ...] = ()
    default_roots: Tuple[PathTemplate, ...] = ()
    games_registry: Tuple[RegistryProbe, ...] = ()
    games_roots: Tuple[PathTemplate, ...] = ()
    requires_root: bool = True   # False: games roots are probed even without a launcher install


def _probe(desc: str, fn: Callable[[], object], default=None):
    """Run one probe; anything it raises means "not found"."""
    try:
        return fn()
    except Exception as e:
        logger.debug("probe %s failed: %s", desc, e)
        return default


def _exists(provider: CapabilityProvider, path: str) -> bool:
    return bool(path) and bool(_probe(f"exists {path}", lambda: provider.path_exists(path), False))


def read_registry(provider: CapabilityProvider, probe: RegistryProbe) -> Optional[str]:
    raw = _probe(f"{probe.hive}\\{probe.key}\\{probe.value}",
                 lambda: provider.registry_get(probe.hive, probe.key, probe.value))
    if not raw:
        return None
    value = str(raw).strip().strip('"')
    if probe.is_file:
        cut = max(value.rfind("/"), value.rfind("\\"))
        value = value[:cut] if cut > 0 else ""
    return os.path.normpath(value) if value else None


def expand(provider: CapabilityProvider, template: PathTemplate, root: Optional[str] = None) -> Optional[str]:
    head, *parts = template
    if head == "@root":
        base = root
    elif head == "@drive":
        base = _probe("systemDrive", lambda: provider.get_well_known_path("systemDrive")) or "C:"
        base = base.rstrip("\\/") + os.sep
    elif head.startswith("@"):
        # literal drive letter, e.g. "@D:" -> D:\
        base = head[1:] + os.sep
    else:
        base = _probe(head, lambda: provider.get_well_known_path(head))
    if not base:
        return None
    return os.path.join(base, *parts)


def locate_root(provider: CapabilityProvider, source: LauncherSource) -> Optional[str]:
    """Registry first (in order), then conventional defaults. None = not installed."""
    for probe in source.registry:
        value = read_registry(provider, probe)
        if value and _exists(provider, value):
            logger.debug("%s root from registry: %s", source.name, value)
            return value
    for template in source.default_roots:
        path = expand(provider, template)
        if path and _exists(provider, path):
            logger.debug("%s root from defaults: %s", source.name, path)
            return path
    return None


def locate_games_roots(provider: CapabilityProvider, source: LauncherSource,
                       root: Optional[str]) -> List[str]:
    """Every existing games root, in probe order, without duplicates."""
    seen = set()
    found: List[str] = []

    def _keep(path: Optional[str]):
        if not path:
            return
        key = os.path.normcase(os.path.normpath(path))
        if key in seen:
            return
        seen.add(key)
        if _exists(provider, path):
            found.append(path)

    for probe in source.games_registry:
        _keep(read_registry(provider, probe))
    for template in source.games_roots:
        if template[0] == "@root" and not root:
            continue
        _keep(expand(provider, template, root))
    return found


@dataclass
class Located:
    root: Optional[str]
    games_roots: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.root is not None or bool(self.games_roots)


def locate(provider: CapabilityProvider, source: LauncherSource) -> Located:
    root = locate_root(provider, source)
    if root is None and source.requires_root:
        return Located(None)
    return Located(root, locate_games_roots(provider, source, root))
