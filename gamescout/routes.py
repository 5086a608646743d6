from __future__ import annotations

import html
import io
import logging
import os

from flask import Blueprint, abort, current_app, jsonify, redirect, request, send_file

from .models import SCANNED_PLATFORMS, Platform
from .scanning import render_thumbnail

logger = logging.getLogger(__name__)

bp = Blueprint("gamescout", __name__)


def _cfg():
    c = current_app.config
    return (
        current_app.extensions["gamescout"],
        set(c["ALLOWED_ICON_EXT"]),
        int(c["ICON_SIZE"]),
    )


def _force() -> bool:
    raw = request.values.get("force")
    if raw is None and request.is_json:
        raw = (request.get_json(silent=True) or {}).get("force")
    return str(raw).strip().lower() in ("1", "true", "yes", "on")


def _platform_or_404(name: str) -> Platform:
    try:
        platform = Platform.parse(name)
    except ValueError:
        abort(404, description=f"unknown platform: {name}")
    if platform not in SCANNED_PLATFORMS:
        abort(404, description=f"{platform.value} has no detector")
    return platform


@bp.errorhandler(404)
def not_found(e):
    return jsonify(error=getattr(e, "description", "not found")), 404


@bp.get("/api/games")
def games():
    coord, *_ = _cfg()
    return jsonify(games=[g.to_dict() for g in coord.get_cached_catalog()])


@bp.post("/api/scan")
def scan_all():
    coord, *_ = _cfg()
    report = coord.scan_all(force_refresh=_force())
    return jsonify(report.to_dict())


@bp.post("/api/scan/<platform>")
def scan_platform(platform):
    coord, *_ = _cfg()
    result = coord.scan_platform(_platform_or_404(platform), force_refresh=_force())
    return jsonify(result.to_dict())


@bp.post("/api/cache/clear")
def clear_cache():
    coord, *_ = _cfg()
    coord.clear_cache()
    return jsonify(ok=True)


@bp.get("/api/platforms")
def platforms():
    coord, *_ = _cfg()
    entries = coord.cache.entries()
    now = coord.cache.now()
    out = []
    for p, st in coord.status().items():
        entry = entries.get(p)
        out.append({
            "platform": p.value,
            "state": st.state.value,
            "lastOutcome": st.last_outcome.value if st.last_outcome else None,
            "lastError": st.last_error,
            "lastCount": st.last_count,
            "cachedGames": len(entry.games) if entry else 0,
            "cacheAgeSeconds": round(entry.age_seconds(now)) if entry else None,
        })
    return jsonify(platforms=out, coordinator=coord.state.value)


def _placeholder(title: str):
    svg = f"""
    <svg xmlns="http://www.w3.org/2000/svg" width="256" height="256">
      <rect width="100%" height="100%" fill="#1f2630"/>
      <text x="50%" y="50%" fill="#e0e6ee" font-size="20" text-anchor="middle" dominant-baseline="middle">
        {html.escape(title[:24])}
      </text>
    </svg>
    """
    return send_file(io.BytesIO(svg.encode("utf-8")), mimetype="image/svg+xml")


@bp.get("/icon/<game_id>")
def icon(game_id):
    coord, ICON_EXTS, ICON_SIZE = _cfg()
    game = next((g for g in coord.get_cached_catalog() if g.id == game_id), None)
    if game is None:
        abort(404, description=f"unknown game: {game_id}")

    url = game.icon_url
    if url.startswith(("http://", "https://")):
        return redirect(url)
    if url and os.path.splitext(url)[1].lower() in ICON_EXTS:
        try:
            png = render_thumbnail(coord.provider.read_file(url), ICON_SIZE)
            return send_file(io.BytesIO(png), mimetype="image/png")
        except Exception as e:
            logger.debug("icon for %s unusable (%s): %s", game_id, url, e)
    return _placeholder(game.name)


@bp.get("/favicon.ico")
def favicon():
    return ("", 204)
