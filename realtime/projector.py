"""Client session projector.

Folds the server's outbound event stream into the view state one client
renders: message log, online list, typing users, reactions. It never talks to
the server; ``chat_client.ChatClient`` feeds it.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from typing import Any, Callable

from constants import (
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
    TYPING_EXPIRY_SECONDS,
)
from realtime.aggregators import ReactionTally, TypingSet
from realtime.room_ids import is_private_room

# Reaction event ids remembered for duplicate suppression.
SEEN_EVENT_LIMIT = 2048


class SessionProjector:
    def __init__(
        self,
        username: str | None = None,
        typing_timeout_seconds: float = TYPING_EXPIRY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.username = username
        self.active_room: str | None = None
        self.online_users: list[str] = []
        self.errors: list[dict] = []
        self._log: list[dict] = []
        self._index: dict[str, int] = {}
        self._typing = TypingSet(timeout_seconds=typing_timeout_seconds, clock=clock)
        self._reactions = ReactionTally()
        self._seen_events: OrderedDict[str, None] = OrderedDict()
        self._reducers: dict[str, Callable[[Any], bool]] = {
            EV_RECEIVE_MESSAGE: self._on_message,
            EV_RECEIVE_PRIVATE_MESSAGE: self._on_private_message,
            EV_RECEIVE_FILE: self._on_file,
            EV_USER_JOINED: self._on_user_joined,
            EV_USER_LEFT: self._on_user_left,
            EV_ONLINE_USERS: self._on_online_users,
            EV_USER_TYPING: self._on_typing,
            EV_USER_STOP_TYPING: self._on_stop_typing,
            EV_REACTION: self._on_reaction,
            EV_ERROR: self._on_error,
        }

    @property
    def handled_events(self) -> tuple[str, ...]:
        return tuple(self._reducers)

    def apply(self, event: str, payload: Any = None) -> bool:
        """Fold one event. Returns True if the view state changed."""
        reducer = self._reducers.get(event)
        if reducer is None:
            return False
        return reducer(payload)

    # ── read views ─────────────────────────────────────────────────────
    @property
    def messages(self) -> list[dict]:
        return [self._with_reactions(m) for m in self._log]

    def messages_for(self, room: str) -> list[dict]:
        return [self._with_reactions(m) for m in self._log if m.get("room") == room]

    def typing_users(self, room: str | None = None) -> list[str]:
        """Users typing in ``room`` (or in the global set), minus ourselves."""
        users = self._typing.users(room)
        if room is not None:
            users |= self._typing.users(None)
        users.discard(self.username)
        return sorted(users)

    def reactions(self, message_id: str) -> dict[str, list]:
        return self._reactions.snapshot(str(message_id))

    def add_local_echo(self, message: dict) -> None:
        """Show an outgoing message before the server echo arrives."""
        entry = dict(message)
        entry["delivered"] = False
        self._append(entry)

    # ── internals ──────────────────────────────────────────────────────
    def _with_reactions(self, msg: dict) -> dict:
        out = dict(msg)
        mid = msg.get("id")
        if mid is not None:
            rx = self._reactions.snapshot(str(mid))
            if rx:
                out["reactions"] = rx
        return out

    def _append(self, entry: dict) -> bool:
        mid = entry.get("id")
        if mid is not None and mid in self._index:
            pos = self._index[mid]
            existing = self._log[pos]
            if existing.get("sender") == entry.get("sender"):
                if existing.get("delivered") is False and entry.get("sender") == self.username:
                    # Server echo of our own pending message.
                    self._log[pos] = entry
                    return True
                return False
            # Same id from someone else: a separate message, never a rewrite.
            self._log.append(entry)
            return True
        if mid is not None:
            self._index[mid] = len(self._log)
        self._log.append(entry)
        return True

    def _on_message(self, payload) -> bool:
        if not isinstance(payload, dict):
            return False
        entry = dict(payload)
        entry["delivered"] = True
        entry.setdefault("isPrivate", is_private_room(entry.get("room")))
        return self._append(entry)

    def _on_private_message(self, payload) -> bool:
        if not isinstance(payload, dict):
            return False
        entry = dict(payload)
        entry["delivered"] = True
        entry["isPrivate"] = True
        return self._append(entry)

    def _on_file(self, payload) -> bool:
        if not isinstance(payload, dict) or not isinstance(payload.get("file"), dict):
            return False
        entry = dict(payload)
        entry["delivered"] = True
        entry.setdefault("isPrivate", is_private_room(entry.get("room")))
        return self._append(entry)

    def _on_user_joined(self, username) -> bool:
        self._log.append({"system": True, "text": f"{username} joined the chat"})
        return True

    def _on_user_left(self, username) -> bool:
        self._log.append({"system": True, "text": f"{username} left the chat"})
        self._typing.remove_user(username)
        return True

    def _on_online_users(self, users) -> bool:
        if not isinstance(users, (list, tuple)):
            return False
        self.online_users = [str(u) for u in users]
        return True

    @staticmethod
    def _typing_target(payload):
        # Room-scoped servers send {"username", "room"}; global mode sends the bare name.
        if isinstance(payload, dict):
            return payload.get("room"), payload.get("username")
        return None, payload

    def _on_typing(self, payload) -> bool:
        room, username = self._typing_target(payload)
        if not username:
            return False
        self._typing.start(room, username)
        return True

    def _on_stop_typing(self, payload) -> bool:
        room, username = self._typing_target(payload)
        if not username:
            return False
        return self._typing.stop(room, username)

    def _on_reaction(self, payload) -> bool:
        if not isinstance(payload, dict):
            return False
        mid = payload.get("messageId")
        symbol = payload.get("reaction")
        if mid is None or not symbol:
            return False
        event_id = payload.get("eventId")
        if event_id:
            if event_id in self._seen_events:
                return False
            self._seen_events[event_id] = None
            while len(self._seen_events) > SEEN_EVENT_LIMIT:
                self._seen_events.popitem(last=False)
        self._reactions.toggle(str(mid), str(symbol), payload.get("user"))
        return True

    def _on_error(self, payload) -> bool:
        self.errors.append(payload if isinstance(payload, dict) else {"code": str(payload)})
        return True
