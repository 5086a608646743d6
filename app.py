#!/usr/bin/env python3
import logging
import os
import sys

from gamescout import create_app, ensure_cache_dir, BIND, PORT
from gamescout.provider import LocalProvider, MemoryProvider


def _resolve_cache_dir() -> str:
    if len(sys.argv) >= 2:
        return os.path.abspath(sys.argv[1])
    return os.path.abspath(os.path.expanduser(os.environ.get("GAMESCOUT_CACHE_DIR", "~/.gamescout")))


def _provider():
    fixture = os.environ.get("GAMESCOUT_FIXTURE")
    if fixture:
        logging.getLogger(__name__).info("using simulated machine from %s", fixture)
        return MemoryProvider.from_json(fixture)
    return LocalProvider()


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cache_dir = _resolve_cache_dir()
    ensure_cache_dir(cache_dir)
    app = create_app(cache_dir, provider=_provider())
    app.run(host=BIND, port=PORT, debug=False)
