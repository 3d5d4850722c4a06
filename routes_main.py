#!/usr/bin/env python3
"""routes_main.py

HTTP routes next to the Socket.IO relay: health and the room directory.
Both read live router state; nothing here mutates it.
"""

from __future__ import annotations

from flask import jsonify

from constants import APP_VERSION, DEFAULT_ROOMS
from realtime.room_ids import is_private_room


def register_main_routes(app, settings, ctx):
    router = ctx.router
    named_rooms = [str(r) for r in (settings.get("default_rooms") or DEFAULT_ROOMS)]

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify(
            {
                "status": "ok",
                "version": APP_VERSION,
                "connections": router.connection_count(),
                "online": router.online_users(),
            }
        )

    @app.route("/rooms", methods=["GET"])
    def list_rooms():
        counts = router.room_counts()
        rooms = [{"name": name, "members": int(counts.get(name, 0))} for name in named_rooms]
        # Ad-hoc public rooms joined at runtime; private rooms stay unlisted.
        for name in sorted(counts):
            if name in named_rooms or is_private_room(name):
                continue
            rooms.append({"name": name, "members": int(counts[name])})
        return jsonify({"success": True, "rooms": rooms})
