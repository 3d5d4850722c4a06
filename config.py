#!/usr/bin/env python3
"""config.py

Server settings: defaults, the plaintext JSON settings file, and environment
overrides. Settings are a plain dict passed to every component.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

from constants import (
    DEFAULT_ROOM,
    DEFAULT_ROOMS,
    MAX_FILE_BYTES,
    MAX_FRAME_BYTES,
    MAX_MESSAGE_LENGTH,
    MAX_ROOM_NAME_LENGTH,
    REACTION_TALLY_MAX_MESSAGES,
    TYPING_EXPIRY_SECONDS,
    TYPING_SCOPES,
)


def get_default_settings() -> Dict[str, Any]:
    """Return a compact set of defaults for RoomRelay."""
    return {
        # ── Core server ──────────────────────────────────────────────────
        "server_name": "RoomRelay",
        "host": "0.0.0.0",
        "port": 5000,
        "debug": False,
        # Generated at boot if empty (never persisted by the server).
        "secret_key": "",
        "cors_allowed_origins": ["http://localhost:3000"],

        # ── Socket.IO ────────────────────────────────────────────────────
        # threading | eventlet
        "async_mode": "threading",
        "socketio_message_queue": "",
        "ping_interval": 20,
        "ping_timeout": 15,
        "max_frame_bytes": MAX_FRAME_BYTES,

        # ── Rooms + routing ──────────────────────────────────────────────
        "default_room": DEFAULT_ROOM,
        "default_rooms": list(DEFAULT_ROOMS),
        "max_room_name_length": MAX_ROOM_NAME_LENGTH,
        "max_message_length": MAX_MESSAGE_LENGTH,
        "max_file_bytes": MAX_FILE_BYTES,
        # False: the server stamps every message (recommended).
        "trust_client_timestamps": False,
        # room | global (global = legacy behavior, typing leaks across rooms)
        "typing_scope": "room",
        "typing_timeout_seconds": TYPING_EXPIRY_SECONDS,
        # Keep authoritative reaction counts server-side and attach them.
        "reaction_tally_enabled": False,
        "reaction_tally_max_messages": REACTION_TALLY_MAX_MESSAGES,

        # ── Logging ──────────────────────────────────────────────────────
        "log_level": "INFO",
        "log_format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        "log_file_path": "logs/server.log",
    }


def load_settings(path: Path) -> dict:
    """Load settings from JSON over the defaults. Returns defaults if missing."""
    settings = get_default_settings()
    if not path.exists():
        return settings

    try:
        with path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
        if not isinstance(data, dict):
            raise ValueError("top-level JSON value must be an object")
    except Exception as exc:
        logging.warning("Could not parse %s as JSON: %s", path, exc)
        # Back up the broken file so --write-config can lay down a fresh one.
        ts = datetime.now().strftime("%Y%m%d-%H%M%S")
        bad_path = path.with_suffix(path.suffix + f".bad-{ts}")
        try:
            path.rename(bad_path)
            logging.warning("Backed up invalid settings file to: %s", bad_path)
        except OSError as e2:
            logging.warning("Could not back up invalid settings file: %s", e2)
        return settings

    settings.update(data)
    return settings


def save_settings(path: Path, settings: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    to_save = dict(settings)
    # Secrets belong in the environment, not in the JSON file.
    to_save["secret_key"] = ""
    with path.open("w", encoding="utf-8") as fp:
        json.dump(to_save, fp, indent=2)


def _bool_env(*names: str) -> bool | None:
    for n in names:
        v = os.getenv(n)
        if v is None:
            continue
        v = v.strip().lower()
        if v in ("1", "true", "yes", "y", "on"):
            return True
        if v in ("0", "false", "no", "n", "off"):
            return False
    return None


def _str_env(*names: str) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v.strip()
    return None


def _int_env(*names: str) -> int | None:
    v = _str_env(*names)
    if v is None:
        return None
    try:
        return int(v)
    except ValueError:
        return None


def apply_env_overrides(settings: dict) -> None:
    """Apply env overrides for secrets and runtime deployment."""
    host = _str_env("ROOMRELAY_HOST")
    if host:
        settings["host"] = host

    port = _int_env("ROOMRELAY_PORT", "PORT")
    if port:
        settings["port"] = port

    debug = _bool_env("ROOMRELAY_DEBUG")
    if debug is not None:
        settings["debug"] = debug

    secret = _str_env("SECRET_KEY")
    if secret:
        settings["secret_key"] = secret

    level = _str_env("ROOMRELAY_LOG_LEVEL")
    if level:
        settings["log_level"] = level

    async_mode = _str_env("ROOMRELAY_SOCKETIO_ASYNC")
    if async_mode:
        settings["async_mode"] = async_mode.lower()

    scope = _str_env("ROOMRELAY_TYPING_SCOPE")
    if scope:
        if scope.lower() in TYPING_SCOPES:
            settings["typing_scope"] = scope.lower()
        else:
            logging.warning("Ignoring ROOMRELAY_TYPING_SCOPE=%r (expected one of %s)", scope, TYPING_SCOPES)

    max_file = _int_env("ROOMRELAY_MAX_FILE_BYTES")
    if max_file is not None:
        settings["max_file_bytes"] = max_file

    trust_ts = _bool_env("ROOMRELAY_TRUST_CLIENT_TIMESTAMPS")
    if trust_ts is not None:
        settings["trust_client_timestamps"] = trust_ts

    origins = _str_env("ROOMRELAY_CORS_ORIGINS")
    if origins:
        settings["cors_allowed_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

    queue = _str_env("ROOMRELAY_SOCKETIO_MESSAGE_QUEUE", "SOCKETIO_MESSAGE_QUEUE")
    if queue:
        settings["socketio_message_queue"] = queue
