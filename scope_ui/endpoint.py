from __future__ import annotations

import os

from Chord_Scope.config import Config


def resolve_endpoint(
    ws_url: str | None = None,
    ws_host: str | None = None,
    ws_port: int | None = None,
) -> str:
    """Resolve the backend WebSocket URL using CLI > env > config precedence."""

    ws_url = ws_url or os.getenv("CHORD_WS_URL") or Config.ws_url
    if ws_url:
        return ws_url

    ws_host = ws_host or os.getenv("CHORD_WS_HOST") or Config.ws_host
    if ws_port is None:
        ws_port = int(os.getenv("CHORD_WS_PORT", str(Config.ws_port)))
    path = Config.ws_path or ""
    if path and not path.startswith("/"):
        path = "/" + path
    return f"ws://{ws_host}:{ws_port}{path}"
