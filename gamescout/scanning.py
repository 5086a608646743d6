import io
import logging
import os
import re
from collections import deque
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from PIL import Image

from .classify import is_denied_executable, is_non_launch_name
from .provider import CapabilityProvider

logger = logging.getLogger(__name__)

ICON_EXTS = (".png", ".jpg", ".jpeg", ".webp", ".ico", ".bmp")
MAX_SIZE_ENTRIES = 20000


@dataclass(frozen=True)
class Resolution:
    executable: str
    process_name: str
    size_bytes: Optional[int]   # None when the file could not be stat'ed


def _normalize(s: str) -> str:
    return re.sub(r"[^a-z0-9]", "", s.lower())


def find_executables(provider: CapabilityProvider, game_dir: str, exts: Sequence[str],
                     max_depth: int = 3) -> List[str]:
    """Breadth-first; every matching file from depth 0 to ``max_depth``, shallow first.

    Files inside one directory come back in case-insensitive name order, so the
    result for a given tree never changes between runs.
    """
    exts = tuple(e.lower() for e in exts)
    results: List[str] = []
    q = deque([(game_dir, 0)])

    while q:
        cur, depth = q.popleft()
        if depth > max_depth:
            continue
        try:
            entries = sorted(provider.list_dir(cur), key=lambda e: e.name.lower())
        except OSError as e:
            logger.debug("cannot list %s: %s", cur, e)
            continue

        for e in entries:
            if not e.is_dir and e.name.lower().endswith(exts):
                results.append(os.path.join(cur, e.name))
        for e in entries:
            if e.is_dir:
                q.append((os.path.join(cur, e.name), depth + 1))
    return results


def choose_executable(candidates: Sequence[str], install_dir: str, extra_excludes: Iterable[str] = ()) -> Optional[str]:
    """Name match on the install folder, then anything that is not an installer/helper, then the first one.

    A name match wins even when the name looks like a helper ("Crashlands.exe");
    among several name matches a launchable one is preferred.
    """
    usable = [c for c in candidates if not is_denied_executable(c)]
    if not usable:
        return None
    extra = tuple(x.lower() for x in extra_excludes)
    launchable = [c for c in usable if not is_non_launch_name(c, extra)]

    folder = _normalize(os.path.basename(install_dir.rstrip("\\/")) or install_dir)
    if folder:
        named = [c for c in usable if folder in _normalize(os.path.splitext(os.path.basename(c))[0])]
        for c in named:
            if c in launchable:
                return c
        if named:
            return named[0]
    if launchable:
        return launchable[0]
    return usable[0]


def resolve_executable(provider: CapabilityProvider, install_dir: str, *,
                       exts: Sequence[str] = (".exe",), max_depth: int = 3,
                       extra_excludes: Iterable[str] = ()) -> Optional[Resolution]:
    candidates = find_executables(provider, install_dir, exts, max_depth)
    chosen = choose_executable(candidates, install_dir, extra_excludes)
    if chosen is None:
        return None
    try:
        size = provider.stat_size(chosen)
    except OSError:
        size = None
    return Resolution(chosen, os.path.basename(chosen), size)


def directory_size_mb(provider: CapabilityProvider, root: str, max_depth: int = 3) -> int:
    """Best-effort size of a tree, bounded in depth and entry count; 0 when unknown."""
    total = 0
    seen = 0
    q = deque([(root, 0)])
    while q and seen < MAX_SIZE_ENTRIES:
        cur, depth = q.popleft()
        try:
            entries = provider.list_dir(cur)
        except OSError:
            continue
        for e in entries:
            seen += 1
            path = os.path.join(cur, e.name)
            if e.is_dir:
                if depth < max_depth:
                    q.append((path, depth + 1))
                continue
            try:
                total += provider.stat_size(path)
            except OSError:
                pass
    return round(total / (1024 * 1024))


def contains_game_files(provider: CapabilityProvider, folder: str,
                        exts: Tuple[str, ...] = (".exe", ".dll", ".pak", ".dat", ".bin", ".ini", ".cfg")) -> bool:
    try:
        entries = provider.list_dir(folder)
    except OSError:
        return False
    return any(not e.is_dir and e.name.lower().endswith(exts) for e in entries)


def pick_best_icon(provider: CapabilityProvider, game_dir: str, target_ar: float = 1.0) -> Optional[str]:
    """Among images in the install root, the one closest to ``target_ar``; larger wins ties."""
    try:
        names = [e.name for e in provider.list_dir(game_dir)
                 if not e.is_dir and e.name.lower().endswith(ICON_EXTS)]
    except OSError:
        return None

    best = None
    best_score = float("inf")
    best_area = -1
    for name in sorted(names, key=str.lower):
        f = os.path.join(game_dir, name)
        try:
            with Image.open(io.BytesIO(provider.read_file(f))) as im:
                w, h = im.size
        except Exception as e:
            logger.debug("not an image: %s (%s)", f, e)
            continue
        if w <= 0 or h <= 0:
            continue
        score = abs(w / h - target_ar)
        area = w * h
        if score < best_score or (abs(score - best_score) < 1e-6 and area > best_area):
            best, best_score, best_area = f, score, area
    return best


def render_thumbnail(data: bytes, size: int = 256) -> bytes:
    """PNG thumbnail of an icon image (ICO/JPEG/...); raises if the bytes are not an image."""
    with Image.open(io.BytesIO(data)) as im:
        im = im.convert("RGBA")
        im.thumbnail((size, size))
        out = io.BytesIO()
        im.save(out, format="PNG")
    return out.getvalue()
