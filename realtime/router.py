"""Event router: the authoritative half of the relay.

Each inbound event runs to completion (state change + fan-out) under one lock
before the next is looked at. Fan-out is per connection; a failed write to one
peer is logged and skipped so it never holds up the others or reaches the
sender.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from constants import (
    DEFAULT_ROOM,
    EV_ERROR,
    EV_ONLINE_USERS,
    EV_RECEIVE_FILE,
    EV_RECEIVE_MESSAGE,
    EV_RECEIVE_PRIVATE_MESSAGE,
    EV_REACTION,
    EV_USER_JOINED,
    EV_USER_LEFT,
    EV_USER_STOP_TYPING,
    EV_USER_TYPING,
    MAX_FILE_BYTES,
    MAX_MESSAGE_LENGTH,
    MAX_ROOM_NAME_LENGTH,
    REACTION_TALLY_MAX_MESSAGES,
    TYPING_EXPIRY_SECONDS,
)
from realtime.aggregators import ReactionTally, TypingSet
from realtime.events import (
    Disconnect,
    JoinChat,
    JoinRoom,
    MalformedEvent,
    Reaction,
    SendFile,
    SendMessage,
    SendPrivateFile,
    SendPrivateMessage,
    StopTyping,
    Typing,
    parse_inbound,
)
from realtime.registry import PresenceRegistry, RoomMembership


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _int_setting(settings: dict, key: str, default: int) -> int:
    try:
        return int(settings.get(key, default))
    except (TypeError, ValueError):
        return default


class EventRouter:
    def __init__(
        self,
        transport,
        settings: dict | None = None,
        registry: PresenceRegistry | None = None,
        membership: RoomMembership | None = None,
        clock=utc_now_iso,
    ) -> None:
        settings = settings or {}
        self.transport = transport
        self.registry = registry if registry is not None else PresenceRegistry()
        self.membership = membership if membership is not None else RoomMembership()
        self.clock = clock

        self.default_room = str(settings.get("default_room") or DEFAULT_ROOM)
        scope = str(settings.get("typing_scope") or "room").strip().lower()
        self.typing_scope = scope if scope in ("room", "global") else "room"
        self.trust_client_timestamps = bool(settings.get("trust_client_timestamps", False))
        self.max_file_bytes = _int_setting(settings, "max_file_bytes", MAX_FILE_BYTES)
        self.max_message_length = _int_setting(settings, "max_message_length", MAX_MESSAGE_LENGTH)
        self.max_room_name_length = _int_setting(settings, "max_room_name_length", MAX_ROOM_NAME_LENGTH)

        self.typing = TypingSet(
            timeout_seconds=float(settings.get("typing_timeout_seconds", TYPING_EXPIRY_SECONDS) or 0)
        )
        self.reactions = None
        if settings.get("reaction_tally_enabled"):
            self.reactions = ReactionTally(
                max_messages=_int_setting(settings, "reaction_tally_max_messages", REACTION_TALLY_MAX_MESSAGES)
            )

        self._lock = threading.RLock()
        self._handlers = {
            JoinChat: self._on_join_chat,
            JoinRoom: self._on_join_room,
            SendMessage: self._on_send_message,
            SendPrivateMessage: self._on_send_private_message,
            SendFile: self._on_send_file,
            SendPrivateFile: self._on_send_private_file,
            Reaction: self._on_reaction,
            Typing: self._on_typing,
            StopTyping: self._on_stop_typing,
            Disconnect: self._on_disconnect,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------
    def connect(self, sid: str) -> None:
        with self._lock:
            self.registry.connect(sid)
        logging.debug("[router] connect %s", sid)

    def handle(self, sid: str, event_name: str, payload: Any = None) -> bool:
        """Parse a raw wire payload and dispatch it. Returns False if it was dropped."""
        try:
            event = parse_inbound(
                event_name,
                payload,
                max_message_length=self.max_message_length,
                max_room_name_length=self.max_room_name_length,
            )
        except MalformedEvent as exc:
            logging.debug("[router] dropped %s from %s: %s", event_name, sid, exc)
            return False
        self.dispatch(sid, event)
        return True

    def dispatch(self, sid: str, event) -> None:
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"no handler for {type(event).__name__}")
        with self._lock:
            handler(sid, event)

    def online_users(self) -> list[str]:
        with self._lock:
            return sorted(self.registry.online_usernames())

    def room_counts(self) -> dict[str, int]:
        with self._lock:
            return self.membership.member_counts()

    def connection_count(self) -> int:
        with self._lock:
            return len(self.registry)

    # ------------------------------------------------------------------
    # Fan-out
    # ------------------------------------------------------------------
    def _send(self, sid: str, event: str, payload) -> bool:
        try:
            self.transport.send(sid, event, payload)
            return True
        except Exception as exc:
            logging.warning("[router] write %s to %s failed: %s", event, sid, exc)
            return False

    def _fanout(self, sids: Iterable[str], event: str, payload, exclude: str | None = None) -> int:
        delivered = 0
        for sid in sorted(sids):
            if sid == exclude:
                continue
            if self._send(sid, event, payload):
                delivered += 1
        return delivered

    def _to_room(self, room: str, event: str, payload, exclude: str | None = None) -> int:
        return self._fanout(self.membership.members_of(room), event, payload, exclude=exclude)

    def _to_all(self, event: str, payload, exclude: str | None = None) -> int:
        return self._fanout(self.registry.connections(), event, payload, exclude=exclude)

    def _broadcast_online_users(self) -> None:
        self._to_all(EV_ONLINE_USERS, sorted(self.registry.online_usernames()))

    # ------------------------------------------------------------------
    # Presence
    # ------------------------------------------------------------------
    def _on_join_chat(self, sid: str, ev: JoinChat) -> None:
        self.registry.join(sid, ev.username)
        logging.info("[presence] %s joined as %s", sid, ev.username)
        self._to_all(EV_USER_JOINED, ev.username, exclude=sid)
        self._broadcast_online_users()

    def _on_disconnect(self, sid: str, ev: Disconnect) -> None:
        username = self.registry.leave(sid)
        rooms = self.membership.remove_connection(sid)
        logging.info("[presence] disconnect %s (user=%s, rooms=%d)", sid, username, len(rooms))
        if not username:
            # Never joined: nobody was told about it, so nobody is told it left.
            return

        if not self.registry.connections_for(username):
            for scope in self.typing.remove_user(username):
                self._emit_stop_typing(sid, username, scope)

        self._to_all(EV_USER_LEFT, username, exclude=sid)
        self._broadcast_online_users()

    # ------------------------------------------------------------------
    # Rooms + messages
    # ------------------------------------------------------------------
    def _on_join_room(self, sid: str, ev: JoinRoom) -> None:
        self.registry.connect(sid)
        self.membership.add_member(ev.room, sid)
        self.registry.set_active_room(sid, ev.room)

    def _stamp(self, client_ts: str | None) -> str:
        if self.trust_client_timestamps and client_ts:
            return client_ts
        return self.clock()

    def _on_send_message(self, sid: str, ev: SendMessage) -> None:
        room = ev.room or self.default_room
        payload = {
            "id": ev.id or uuid.uuid4().hex,
            "text": ev.text,
            "sender": self.registry.username_for(sid),
            "room": room,
            "timestamp": self._stamp(ev.timestamp),
            "delivered": True,
        }
        self._to_room(room, EV_RECEIVE_MESSAGE, payload)

    def _on_send_private_message(self, sid: str, ev: SendPrivateMessage) -> None:
        # The room id is used verbatim; the client derived and joined it already.
        payload = {
            "id": ev.id or uuid.uuid4().hex,
            "text": ev.text,
            "sender": self.registry.username_for(sid),
            "recipient": ev.recipient,
            "room": ev.room,
            "timestamp": self._stamp(ev.timestamp),
            "delivered": True,
        }
        self._to_room(ev.room, EV_RECEIVE_PRIVATE_MESSAGE, payload)

    def _relay_file(self, sid: str, file_id: str | None, file, room: str, private: bool) -> None:
        size = file.decoded_size()
        if self.max_file_bytes > 0 and size > self.max_file_bytes:
            logging.info(
                "[files] rejected %r from %s (%d bytes > %d)", file.name, sid, size, self.max_file_bytes
            )
            self._send(sid, EV_ERROR, {
                "code": "file_too_large",
                "limit": self.max_file_bytes,
                "size": size,
                "id": file_id,
            })
            return
        payload = {
            "id": file_id or uuid.uuid4().hex,
            "sender": self.registry.username_for(sid),
            "file": file.to_wire(),
            "room": room,
            "timestamp": self.clock(),
            "isPrivate": private,
        }
        self._to_room(room, EV_RECEIVE_FILE, payload)

    def _on_send_file(self, sid: str, ev: SendFile) -> None:
        self._relay_file(sid, ev.id, ev.file, ev.room or self.default_room, private=False)

    def _on_send_private_file(self, sid: str, ev: SendPrivateFile) -> None:
        self._relay_file(sid, ev.id, ev.file, ev.room, private=True)

    # ------------------------------------------------------------------
    # Ephemeral: reactions + typing
    # ------------------------------------------------------------------
    def _on_reaction(self, sid: str, ev: Reaction) -> None:
        user = self.registry.username_for(sid)
        payload = {
            "messageId": ev.message_id,
            "reaction": ev.reaction,
            "user": user,
            "room": ev.room,
            "eventId": uuid.uuid4().hex,
        }
        if self.reactions is not None:
            self.reactions.toggle(ev.message_id, ev.reaction, user)
            payload["counts"] = self.reactions.counts(ev.message_id)
        self._to_room(ev.room, EV_REACTION, payload)

    def _typing_scope_for(self, sid: str, room: str | None):
        """Resolve where a typing signal goes. Returns (ok, scope)."""
        if self.typing_scope == "global":
            return True, None
        room = room or self.registry.active_room(sid)
        return (room is not None), room

    def _on_typing(self, sid: str, ev: Typing) -> None:
        username = self.registry.username_for(sid)
        ok, scope = self._typing_scope_for(sid, ev.room)
        if not ok:
            logging.debug("[typing] no room for %s; dropped", sid)
            return
        if username:
            self.typing.start(scope, username)
        if scope is None:
            self._to_all(EV_USER_TYPING, username, exclude=sid)
        else:
            self._to_room(scope, EV_USER_TYPING, {"username": username, "room": scope}, exclude=sid)

    def _on_stop_typing(self, sid: str, ev: StopTyping) -> None:
        username = self.registry.username_for(sid)
        ok, scope = self._typing_scope_for(sid, ev.room)
        if not ok:
            return
        if username:
            self.typing.stop(scope, username)
        self._emit_stop_typing(sid, username, scope)

    def _emit_stop_typing(self, sid: str, username, scope) -> None:
        if scope is None:
            self._to_all(EV_USER_STOP_TYPING, username, exclude=sid)
        else:
            self._to_room(scope, EV_USER_STOP_TYPING, {"username": username, "room": scope}, exclude=sid)
