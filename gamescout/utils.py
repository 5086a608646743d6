import fnmatch
import hashlib
import os
import re
from typing import List


def normalize_path(path: str) -> str:
    """Case- and separator-insensitive form used for comparisons and hashing."""
    p = re.sub(r"[\\/]+", "/", str(path).strip()).rstrip("/")
    return p.lower()


def path_key(prefix: str, install_path: str) -> str:
    digest = hashlib.sha1(normalize_path(install_path).encode("utf-8")).hexdigest()[:16]
    return f"{prefix}-{digest}"


def safe_join(base: str, rel: str) -> str:
    """Join a manifest-relative path (either separator) onto ``base``."""
    parts = [p for p in re.split(r"[\\/]+", rel) if p and p != "."]
    return os.path.join(base, *parts)


# --- ignore patterns (gitignore-ish) ---

def _match_any(path: str, patterns: List[str]) -> bool:
    """Basic gitignore-like matching with !negations and dir patterns.

    - 'Games/Demo/' matches 'games/demo' and everything under it
    - '*/Steam/steamapps/common/SDK*' globs via fnmatch
    - a pattern without a slash also matches the last path component
    - '!keepme' re-includes a previously ignored path; last matching rule wins
    """
    pr = normalize_path(path)
    name = pr.rsplit("/", 1)[-1]
    decided = None

    for raw in patterns:
        neg = raw.startswith("!")
        pat = (raw[1:] if neg else raw).replace("\\", "/").lower()
        if not pat.strip("/"):
            continue

        if pat.endswith("/"):
            base = pat.strip("/")
            hit = pr == base or pr.endswith("/" + base) or ("/" + base + "/") in (pr + "/")
        elif "/" in pat:
            hit = fnmatch.fnmatch(pr, pat) or fnmatch.fnmatch(pr, "*/" + pat.lstrip("/"))
        else:
            hit = fnmatch.fnmatch(name, pat)

        if hit:
            decided = not neg

    return bool(decided)


def is_path_ignored(install_path: str, patterns: List[str]) -> bool:
    return bool(patterns) and _match_any(install_path, patterns)
