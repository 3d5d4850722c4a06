"""Socket.IO handlers: in-line file sharing.

Files travel as base64 inside a single event. The engine.io buffer limit
(``max_frame_bytes``) caps the frame; the router caps the decoded file at
``max_file_bytes`` and tells the sender when it refuses one.
"""

from flask import request

from constants import EV_PRIVATE_FILE, EV_SEND_FILE


def register(socketio, settings, ctx):
    """Register Socket.IO event handlers for this module."""
    router = ctx.router

    @socketio.on(EV_SEND_FILE)
    def handle_send_file(data=None):
        router.handle(request.sid, EV_SEND_FILE, data)

    @socketio.on(EV_PRIVATE_FILE)
    def handle_private_file(data=None):
        router.handle(request.sid, EV_PRIVATE_FILE, data)
