"""Socket.IO handlers: connect, join_chat, disconnect."""

from flask import request

from constants import EV_CONNECT, EV_DISCONNECT, EV_JOIN_CHAT


def register(socketio, settings, ctx):
    """Register Socket.IO event handlers for this module."""
    router = ctx.router

    @socketio.on(EV_CONNECT)
    def handle_connect(auth=None):
        router.connect(request.sid)

    @socketio.on(EV_JOIN_CHAT)
    def handle_join_chat(data=None):
        router.handle(request.sid, EV_JOIN_CHAT, data)

    @socketio.on(EV_DISCONNECT)
    def handle_disconnect(*args, **kwargs):
        # Socket.IO may pass a reason or nothing depending on version.
        reason = args[0] if args else kwargs.get("reason")
        router.handle(request.sid, EV_DISCONNECT, reason)
