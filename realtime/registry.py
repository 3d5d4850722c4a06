"""Presence registry + room membership table.

Both are plain in-memory structures owned by the router. They hold no locks of
their own: the router serializes every event, so each method runs to
completion before the next event touches the same state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass


@dataclass
class Connection:
    sid: str
    username: str | None = None
    active_room: str | None = None


class PresenceRegistry:
    """Maps live connections to usernames."""

    def __init__(self) -> None:
        self._conns: dict[str, Connection] = {}

    def connect(self, sid: str) -> Connection:
        conn = self._conns.get(sid)
        if conn is None:
            conn = Connection(sid=sid)
            self._conns[sid] = conn
        return conn

    def join(self, sid: str, username: str) -> None:
        conn = self.connect(sid)
        if conn.username is not None and conn.username != username:
            # Protocol error: a connection joins once. Tolerated by overwrite.
            logging.warning(
                "[presence] connection %s re-joined as %r (was %r)", sid, username, conn.username
            )
        conn.username = username

    def leave(self, sid: str) -> str | None:
        conn = self._conns.pop(sid, None)
        return conn.username if conn else None

    def username_for(self, sid: str) -> str | None:
        conn = self._conns.get(sid)
        return conn.username if conn else None

    def set_active_room(self, sid: str, room: str) -> None:
        conn = self._conns.get(sid)
        if conn is not None:
            conn.active_room = room

    def active_room(self, sid: str) -> str | None:
        conn = self._conns.get(sid)
        return conn.active_room if conn else None

    def connections(self) -> list[str]:
        """All live connection ids, joined or not."""
        return list(self._conns)

    def connections_for(self, username: str) -> list[str]:
        return [sid for sid, c in self._conns.items() if c.username == username]

    def online_usernames(self) -> set[str]:
        return {c.username for c in self._conns.values() if c.username}

    def __len__(self) -> int:
        return len(self._conns)

    def __contains__(self, sid) -> bool:
        return sid in self._conns


class RoomMembership:
    """room id -> set of connection ids (plus the reverse index)."""

    def __init__(self) -> None:
        self._rooms: dict[str, set[str]] = {}
        self._by_sid: dict[str, set[str]] = {}

    def add_member(self, room: str, sid: str) -> bool:
        """Add a connection to a room. Returns False if it was already a member."""
        members = self._rooms.setdefault(room, set())
        if sid in members:
            return False
        members.add(sid)
        self._by_sid.setdefault(sid, set()).add(room)
        return True

    def remove_member(self, room: str, sid: str) -> bool:
        members = self._rooms.get(room)
        if not members or sid not in members:
            return False
        members.discard(sid)
        if not members:
            del self._rooms[room]
        rooms = self._by_sid.get(sid)
        if rooms is not None:
            rooms.discard(room)
            if not rooms:
                del self._by_sid[sid]
        return True

    def remove_connection(self, sid: str) -> set[str]:
        """Drop a connection from every room it joined. Returns those rooms."""
        rooms = self._by_sid.pop(sid, set())
        for room in rooms:
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(sid)
            if not members:
                del self._rooms[room]
        return rooms

    def members_of(self, room: str) -> set[str]:
        return set(self._rooms.get(room, ()))

    def rooms_of(self, sid: str) -> set[str]:
        return set(self._by_sid.get(sid, ()))

    def member_counts(self) -> dict[str, int]:
        return {room: len(members) for room, members in self._rooms.items()}
