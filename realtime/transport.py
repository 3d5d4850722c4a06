"""Outbound transport seam.

The router writes one event to one connection at a time through ``send``.
``SocketIOTransport`` does that with Flask-SocketIO; ``RecordingTransport``
keeps the writes in memory for tests and tooling.
"""

from __future__ import annotations

import threading
from typing import Any


class TransportError(RuntimeError):
    """A write to a single connection failed."""


class SocketIOTransport:
    def __init__(self, socketio, namespace: str = "/") -> None:
        self.socketio = socketio
        self.namespace = namespace

    def send(self, sid: str, event: str, payload: Any) -> None:
        self.socketio.emit(event, payload, to=sid, namespace=self.namespace)


class RecordingTransport:
    """Collects (sid, event, payload) tuples. ``fail_for`` simulates dead peers."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, Any]] = []
        self.fail_for: set[str] = set()
        self._lock = threading.Lock()

    def send(self, sid: str, event: str, payload: Any) -> None:
        if sid in self.fail_for:
            raise TransportError(f"connection {sid} is gone")
        with self._lock:
            self.sent.append((sid, event, payload))

    def events_for(self, sid: str, event: str | None = None) -> list[tuple[str, Any]]:
        return [(e, p) for s, e, p in self.sent if s == sid and (event is None or e == event)]

    def payloads(self, sid: str, event: str) -> list[Any]:
        return [p for s, e, p in self.sent if s == sid and e == event]

    def recipients(self, event: str) -> set[str]:
        return {s for s, e, _ in self.sent if e == event}

    def clear(self) -> None:
        with self._lock:
            self.sent.clear()
