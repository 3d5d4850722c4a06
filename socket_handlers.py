#!/usr/bin/env python3
"""
socket_handlers.py

Builds the event router for one Socket.IO server and registers the split
handler modules (see realtime/*.py) against it.
"""

from types import SimpleNamespace

from realtime.router import EventRouter
from realtime.transport import SocketIOTransport


def register_socketio_handlers(socketio, settings):
    """
    Registers all Socket.IO event handlers. Returns the shared handler context
    (``ctx.router`` is the live router) so HTTP routes and tests can read
    presence and membership.
    """
    router = EventRouter(SocketIOTransport(socketio), settings)
    ctx = SimpleNamespace(router=router)

    from realtime import presence, rooms, dm, files
    presence.register(socketio, settings, ctx)
    rooms.register(socketio, settings, ctx)
    dm.register(socketio, settings, ctx)
    files.register(socketio, settings, ctx)
    return ctx
