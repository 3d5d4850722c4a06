#!/usr/bin/env python3
"""
server_init.py
Builds and runs the RoomRelay Flask + Socket.IO application.
"""

from __future__ import annotations

import logging
import os
import secrets
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

# Optional WebSocket support via eventlet
# - Default: threading (long-polling + simple-websocket)
# - Override with: ROOMRELAY_SOCKETIO_ASYNC=eventlet
ROOMRELAY_SOCKETIO_ASYNC = os.environ.get("ROOMRELAY_SOCKETIO_ASYNC", "threading").strip().lower()
_EVENTLET_AVAILABLE = False
if ROOMRELAY_SOCKETIO_ASYNC == "eventlet":
    try:
        import eventlet  # type: ignore

        eventlet.monkey_patch()
        _EVENTLET_AVAILABLE = True
    except ImportError:
        _EVENTLET_AVAILABLE = False

from flask import Flask, request
from flask_cors import CORS
from flask_socketio import SocketIO

from constants import APP_VERSION, DEFAULT_ROOMS, MAX_FRAME_BYTES
from routes_main import register_main_routes
from socket_handlers import register_socketio_handlers


def _message_queue_url(settings: Dict[str, Any]) -> Optional[str]:
    """Pick the Socket.IO message queue URL, if any.

    Environment wins over the settings file; ``REDIS_URL`` is the last resort.
    """
    candidates = (
        os.environ.get("ROOMRELAY_SOCKETIO_MESSAGE_QUEUE"),
        os.environ.get("SOCKETIO_MESSAGE_QUEUE"),
        settings.get("socketio_message_queue"),
        os.environ.get("REDIS_URL"),
    )
    for url in candidates:
        url = (url or "").strip()
        if url:
            return url
    return None


def _check_queue_reachable(url: str) -> None:
    """Exit with status 2 when a redis:// queue is configured but unusable.

    Every worker would otherwise broadcast only to its own clients.
    """
    if not url.startswith(("redis://", "rediss://")):
        return
    try:
        import redis  # type: ignore
    except ImportError:
        logging.critical("[socketio] message queue %s needs the 'redis' package (pip install roomrelay[redis])", url)
        raise SystemExit(2)

    try:
        redis.Redis.from_url(url, socket_connect_timeout=1, socket_timeout=1).ping()
    except Exception as exc:
        logging.critical("[socketio] message queue %s unreachable: %s", url, exc)
        raise SystemExit(2)
    logging.info("[socketio] message queue %s reachable", url)


def _log_startup_banner(settings: Dict[str, Any], settings_file: Optional[Path] | None) -> None:
    """Log a boot banner that makes 'wrong config' obvious."""
    cfg_path = Path(settings_file) if settings_file else None
    cfg_exists = bool(cfg_path and cfg_path.exists())
    cfg_mtime = None
    if cfg_exists:
        try:
            cfg_mtime = datetime.fromtimestamp(cfg_path.stat().st_mtime).isoformat(timespec="seconds")
        except OSError:
            cfg_mtime = None

    logging.info("==================== RoomRelay Boot ====================")
    logging.info("RoomRelay version: %s", APP_VERSION)
    logging.info("Settings file: %s (exists=%s%s)", str(cfg_path) if cfg_path else "<none>", cfg_exists,
                 f", mtime={cfg_mtime}" if cfg_mtime else "")
    logging.info(
        "Rooms: %s | typing_scope=%s | max_file_bytes=%s | trust_client_timestamps=%s",
        ", ".join(settings.get("default_rooms") or DEFAULT_ROOMS),
        settings.get("typing_scope"),
        settings.get("max_file_bytes"),
        bool(settings.get("trust_client_timestamps")),
    )
    logging.info("=========================================================")


def _ensure_secret_key(settings: Dict[str, Any]) -> str:
    key = settings.get("secret_key") or os.getenv("SECRET_KEY")
    if key:
        return key
    # Flask sessions are unused by the relay; a one-off key is fine.
    key = secrets.token_urlsafe(64)
    settings["secret_key"] = key
    return key


def create_app(
    settings: Dict[str, Any],
    settings_file: Optional[Path] | None = None,
) -> tuple[Flask, SocketIO]:
    """Create and configure the Flask + Socket.IO application.

    This function does **not** start a server. It is safe to import from a
    Gunicorn `wsgi.py` module.
    """

    settings_file = Path(settings_file) if isinstance(settings_file, str) else settings_file

    # ───── Flask App Core ─────
    app = Flask(__name__)
    app.config["ROOMRELAY_SETTINGS_FILE"] = str(settings_file) if settings_file else None
    app.config["ROOMRELAY_SETTINGS"] = settings
    app.secret_key = _ensure_secret_key(settings)

    cors_origins = settings.get("cors_allowed_origins") or "*"
    CORS(app, origins=cors_origins)

    async_mode = str(settings.get("async_mode") or ROOMRELAY_SOCKETIO_ASYNC or "threading").lower()
    if async_mode == "eventlet" and not _EVENTLET_AVAILABLE:
        logging.warning(
            "[socketio] async_mode=eventlet requested but eventlet is not active "
            "(set ROOMRELAY_SOCKETIO_ASYNC=eventlet before import); using threading"
        )
        async_mode = "threading"
    if async_mode not in ("threading", "eventlet"):
        async_mode = "threading"
    app.config["ROOMRELAY_SOCKETIO_ASYNC_MODE"] = async_mode

    # Multi-worker broadcast: configure a Redis message queue.
    message_queue = _message_queue_url(settings)
    if message_queue:
        _check_queue_reachable(message_queue)

    try:
        max_frame = int(settings.get("max_frame_bytes") or MAX_FRAME_BYTES)
    except (TypeError, ValueError):
        max_frame = MAX_FRAME_BYTES

    socketio = SocketIO(
        app,
        async_mode=async_mode,
        cors_allowed_origins=cors_origins,
        logger=False,
        engineio_logger=False,
        ping_interval=int(settings.get("ping_interval") or 20),
        ping_timeout=int(settings.get("ping_timeout") or 15),
        max_http_buffer_size=max_frame,
        message_queue=message_queue,
    )

    # ───── Global Socket.IO Error Handler ─────
    # A bug in one handler must not take down the server thread; the sender
    # gets nothing back (fire-and-forget protocol), we keep the traceback.
    @socketio.on_error_default  # applies to all namespaces
    def _socketio_default_error_handler(e):
        try:
            sid = getattr(request, "sid", None)
        except RuntimeError:
            sid = None
        app.logger.exception("Socket.IO handler error (sid=%s): %s", sid, e)

    ctx = register_socketio_handlers(socketio, settings)
    app.config["ROOMRELAY_ROUTER"] = ctx.router

    register_main_routes(app, settings, ctx)

    return app, socketio


def run_web_server(
    settings: Dict[str, Any],
    settings_file: Optional[Path] | None = None,
) -> None:
    """Bootstrap the Flask-SocketIO app, attach handlers, then run it."""

    app, socketio = create_app(settings, settings_file=settings_file)
    _log_startup_banner(settings, settings_file)

    # ───── Run Server (dev / single-process) ─────
    host = settings.get("host") or "0.0.0.0"
    port = int(settings.get("port") or 5000)
    debug = bool(settings.get("debug") or False)

    print(f"🚀  Starting RoomRelay on http://{host}:{port} (debug={debug})")

    # Reduce console spam from long-polling by filtering Werkzeug access logs for /socket.io.
    class _SocketIOAccessFilter(logging.Filter):
        def filter(self, record: logging.LogRecord) -> bool:  # type: ignore
            return "/socket.io/" not in record.getMessage()

    logging.getLogger("werkzeug").addFilter(_SocketIOAccessFilter())

    use_reloader = bool(debug and app.config.get("ROOMRELAY_SOCKETIO_ASYNC_MODE") == "threading")
    socketio.run(
        app,
        host=host,
        port=port,
        debug=debug,
        use_reloader=use_reloader,
        log_output=False,
        allow_unsafe_werkzeug=True,
    )
