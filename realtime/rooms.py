"""Socket.IO handlers: rooms, room messages, typing, reactions."""

from flask import request

from constants import EV_JOIN_ROOM, EV_REACTION, EV_SEND_MESSAGE, EV_STOP_TYPING, EV_TYPING


def register(socketio, settings, ctx):
    """Register Socket.IO event handlers for this module."""
    router = ctx.router

    @socketio.on(EV_JOIN_ROOM)
    def handle_join_room(data=None):
        router.handle(request.sid, EV_JOIN_ROOM, data)

    @socketio.on(EV_SEND_MESSAGE)
    def handle_send_message(data=None):
        router.handle(request.sid, EV_SEND_MESSAGE, data)

    @socketio.on(EV_TYPING)
    def handle_typing(data=None):
        router.handle(request.sid, EV_TYPING, data)

    @socketio.on(EV_STOP_TYPING)
    def handle_stop_typing(data=None):
        router.handle(request.sid, EV_STOP_TYPING, data)

    @socketio.on(EV_REACTION)
    def handle_reaction(data=None):
        # Relay only; every client applies the toggle itself.
        router.handle(request.sid, EV_REACTION, data)
