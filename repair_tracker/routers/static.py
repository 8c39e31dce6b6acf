"""Static asset fallback for every path no other route claims.

Must be included last: its catch-all pattern would otherwise shadow the API.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import APIRouter, Depends
from fastapi.responses import FileResponse, PlainTextResponse, Response

from ..core.config import AppSettings
from ..deps import get_app_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["static"])

INDEX_FILE = "index.html"
MIME_TYPES = {
    ".html": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".json": "application/json",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".svg": "image/svg+xml",
}


def resolve_static_path(root: Path, asset_path: str) -> Path | None:
    """Map a URL path onto ``root``; ``None`` when it escapes the root."""

    root = root.resolve()
    relative = asset_path.lstrip("/") or INDEX_FILE
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    if candidate.is_dir():
        candidate = candidate / INDEX_FILE
    return candidate


def cache_control_for(path: Path) -> str:
    return "no-cache" if path.suffix.lower() == ".html" else "public, max-age=3600"


@router.get("/{asset_path:path}", include_in_schema=False)
async def serve_static(asset_path: str, settings: AppSettings = Depends(get_app_settings)) -> Response:
    path = resolve_static_path(settings.resolved_static_dir, asset_path)
    if path is None:
        logger.warning("static.traversal_rejected", extra={"extra_data": {"path": asset_path}})
        return PlainTextResponse("Access denied", status_code=403)
    if not path.is_file():
        return PlainTextResponse("File not found", status_code=404)
    return FileResponse(
        path,
        media_type=MIME_TYPES.get(path.suffix.lower(), "text/plain"),
        headers={"Cache-Control": cache_control_for(path)},
    )
