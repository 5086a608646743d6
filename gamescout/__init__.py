import os
from pathlib import Path
from typing import Optional

from flask import Flask

from .cache import CacheStore
from .coordinator import ScanCoordinator
from .provider import CapabilityProvider, LocalProvider
from .routes import bp as routes_bp
from .settings import load_settings

# Bind only localhost unless overridden
BIND = os.environ.get("BIND", "127.0.0.1")
PORT = int(os.environ.get("PORT", "5000"))


def ensure_cache_dir(cache_dir: str) -> None:
    try:
        os.makedirs(cache_dir, exist_ok=True)
    except OSError as e:
        raise SystemExit(f"cache directory is not usable: {cache_dir} ({e})")


def create_app(cache_dir: str, provider: Optional[CapabilityProvider] = None,
               settings: Optional[dict] = None) -> Flask:
    app = Flask(__name__)
    app.config["CACHE_DIR"] = cache_dir
    app.config["SETTINGS_FILE"] = os.path.join(cache_dir, "settings.json")
    app.config["ALLOWED_ICON_EXT"] = {".png", ".jpg", ".jpeg", ".webp", ".ico", ".bmp"}
    app.config["ICON_SIZE"] = 256

    if settings is None:
        settings = load_settings(Path(app.config["SETTINGS_FILE"]))
    cache = CacheStore(Path(cache_dir), freshness_seconds=settings.get("freshness_seconds", 3600))
    app.extensions["gamescout"] = ScanCoordinator(provider or LocalProvider(), cache, settings=settings)

    app.register_blueprint(routes_bp)
    return app
