"""Deduplication and catalog ordering across every platform's results."""
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Tuple

from .models import GameRecord

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _played(g: GameRecord) -> datetime:
    ts = g.last_played
    if ts is None:
        return _EPOCH
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def richness(g: GameRecord) -> Tuple:
    """Higher is richer: icon, then size, then recency."""
    return (bool(g.icon_url), g.size_mb, _played(g))


# exact richness ties go to the smallest identity, whatever the input order
def _identity(g: GameRecord) -> Tuple:
    return (g.id, g.install_path, g.executable_path, g.name, g.process_name, g.icon_url, g.optimized)


def merge(a: GameRecord, b: GameRecord) -> GameRecord:
    ra, rb = richness(a), richness(b)
    if ra != rb:
        return a if ra > rb else b
    return min(a, b, key=_identity)


def deduplicate(records: Iterable[GameRecord]) -> List[GameRecord]:
    """One record per (name, platform), then one per id; the richer record survives."""
    by_key: Dict[Tuple[str, str], GameRecord] = {}
    for g in records:
        k = g.dedupe_key
        by_key[k] = merge(by_key[k], g) if k in by_key else g

    by_id: Dict[str, GameRecord] = {}
    for g in by_key.values():
        by_id[g.id] = merge(by_id[g.id], g) if g.id in by_id else g
    return list(by_id.values())


def catalog_sort_key(g: GameRecord):
    """Platform priority, then most recently played, then name; unplayed titles last."""
    played = g.last_played is not None
    stamp = -_played(g).timestamp() if played else 0.0
    return (g.platform.priority, 0 if played else 1, stamp, g.name.casefold(), g.name, g.id)


def resolve_catalog(records: Iterable[GameRecord]) -> List[GameRecord]:
    return sorted(deduplicate(records), key=catalog_sort_key)
