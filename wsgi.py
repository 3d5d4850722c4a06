"""wsgi.py

Gunicorn entrypoint for RoomRelay.

Run (example):
  ROOMRELAY_SOCKETIO_ASYNC=eventlet \
  ROOMRELAY_SOCKETIO_MESSAGE_QUEUE=redis://127.0.0.1:6379/0 \
  gunicorn -c gunicorn_conf.py wsgi:app

Notes:
- Presence and rooms are per process. With more than one worker, a Redis
  message queue is required and each worker only knows its own connections.
"""

from __future__ import annotations

import os

# ---- Ensure eventlet monkey_patch happens as early as possible ----
if (os.environ.get("ROOMRELAY_SOCKETIO_ASYNC", "") or "").strip().lower() == "eventlet":
    import eventlet  # type: ignore

    eventlet.monkey_patch()

from pathlib import Path

from config import apply_env_overrides, load_settings
from constants import CONFIG_FILE
from main import configure_logging
from server_init import create_app


def _resolve_config_path() -> Path:
    # Prefer explicit env path when running under systemd.
    p = (
        os.environ.get("ROOMRELAY_CONFIG")
        or os.environ.get("ROOMRELAY_CONFIG_FILE")
        or CONFIG_FILE
    )
    return Path(p)


_settings_path = _resolve_config_path()
_settings = load_settings(_settings_path)
apply_env_overrides(_settings)
configure_logging(_settings)

# Create the Flask app + Socket.IO integration.
app, socketio = create_app(_settings, settings_file=_settings_path)

# Expose these for tooling / introspection.
app.config["ROOMRELAY_GUNICORN"] = True
app.config["ROOMRELAY_SETTINGS_PATH"] = str(_settings_path)
