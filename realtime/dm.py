"""Socket.IO handlers: private (1:1) messages.

The client derives the private room id (see ``realtime.room_ids``) and joins it
before sending; the server relays to that room as named.
"""

from flask import request

from constants import EV_PRIVATE_MESSAGE


def register(socketio, settings, ctx):
    """Register Socket.IO event handlers for this module."""
    router = ctx.router

    @socketio.on(EV_PRIVATE_MESSAGE)
    def handle_private_message(data=None):
        router.handle(request.sid, EV_PRIVATE_MESSAGE, data)
