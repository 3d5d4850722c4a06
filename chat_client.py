#!/usr/bin/env python3
"""chat_client.py

A RoomRelay client: one Socket.IO connection, a ``SessionProjector`` holding
the local view, and a ``TypingDebouncer`` for outgoing typing signals.

Usage (interactive demo):
  python chat_client.py --url http://127.0.0.1:5000 --username alice
"""

from __future__ import annotations

import argparse
import base64
import logging
import mimetypes
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

import socketio
from socketio.exceptions import BadNamespaceError

from constants import (
    DEFAULT_ROOM,
    DEFAULT_ROOMS,
    EV_JOIN_CHAT,
    EV_JOIN_ROOM,
    EV_PRIVATE_FILE,
    EV_PRIVATE_MESSAGE,
    EV_REACTION,
    EV_SEND_FILE,
    EV_SEND_MESSAGE,
    EV_STOP_TYPING,
    EV_TYPING,
)
from realtime.aggregators import TypingDebouncer
from realtime.projector import SessionProjector
from realtime.room_ids import derive_private_room, is_private_room


class ChatClient:
    def __init__(
        self,
        username: str,
        sio: socketio.Client | None = None,
        typing_timer_factory=threading.Timer,
        named_rooms=DEFAULT_ROOMS,
    ) -> None:
        self.username = username
        self.sio = sio if sio is not None else socketio.Client(logger=False, engineio_logger=False)
        self.named_rooms = tuple(named_rooms)
        self.active_room = DEFAULT_ROOM
        self.projector = SessionProjector(username=username)
        self.changed = threading.Event()
        self._lock = threading.Lock()
        self.typing = TypingDebouncer(
            emit_typing=lambda: self._emit(EV_TYPING, {"room": self.active_room}),
            emit_stop=lambda: self._emit(EV_STOP_TYPING, {"room": self.active_room}),
            timer_factory=typing_timer_factory,
        )
        for event in self.projector.handled_events:
            self.sio.on(event, self._make_reducer(event))
        self.sio.on("connect", self._on_connect)

    # ── wiring ─────────────────────────────────────────────────────────
    def _make_reducer(self, event: str):
        def _handler(data=None):
            with self._lock:
                changed = self.projector.apply(event, data)
            if changed:
                self.changed.set()
        return _handler

    def _on_connect(self):
        # Reconnects start from scratch: no history backfill, just re-announce.
        self._emit(EV_JOIN_CHAT, self.username)
        self._emit(EV_JOIN_ROOM, self.active_room)

    def _emit(self, event: str, payload=None) -> None:
        try:
            self.sio.emit(event, payload)
        except BadNamespaceError as exc:
            logging.debug("[client] %s not sent (not connected): %s", event, exc)

    def connect(self, url: str, **kwargs) -> None:
        self.sio.connect(url, **kwargs)

    def close(self) -> None:
        """Tear down: no typing timer may fire after this."""
        self.typing.cancel()
        if self.sio.connected:
            self.sio.disconnect()

    # ── outward intents ────────────────────────────────────────────────
    def join_room(self, room: str) -> None:
        if room != self.active_room:
            # End a burst in the old room before the typing callbacks follow us.
            self.typing.flush()
        self.active_room = room
        self.projector.active_room = room
        self._emit(EV_JOIN_ROOM, room)

    def _new_message(self, room: str, **fields) -> dict:
        msg = {
            "id": uuid.uuid4().hex,
            "sender": self.username,
            "room": room,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        msg.update(fields)
        return msg

    def send_message(self, text: str) -> dict:
        room = self.active_room
        msg = self._new_message(room, text=text)
        with self._lock:
            self.projector.add_local_echo(msg)
        if room in self.named_rooms or not is_private_room(room):
            self._emit(EV_SEND_MESSAGE, msg)
        else:
            self._emit(EV_PRIVATE_MESSAGE, msg)
        self.typing.flush()
        return msg

    def open_private_chat(self, recipient: str) -> str:
        room = derive_private_room(self.username, recipient)
        self.join_room(room)
        return room

    def send_private_message(self, recipient: str, text: str) -> dict:
        room = self.open_private_chat(recipient)
        msg = self._new_message(room, text=text, recipient=recipient, isPrivate=True)
        with self._lock:
            self.projector.add_local_echo(msg)
        self._emit(EV_PRIVATE_MESSAGE, msg)
        self.typing.flush()
        return msg

    @staticmethod
    def encode_file(path: str | Path) -> dict:
        p = Path(path)
        mime = mimetypes.guess_type(p.name)[0] or "application/octet-stream"
        data = base64.b64encode(p.read_bytes()).decode("ascii")
        return {"name": p.name, "type": mime, "data": f"data:{mime};base64,{data}"}

    def send_file(self, path: str | Path, recipient: str | None = None) -> dict:
        room = self.open_private_chat(recipient) if recipient else self.active_room
        msg = self._new_message(room, file=self.encode_file(path))
        if recipient or (is_private_room(room) and room not in self.named_rooms):
            self._emit(EV_PRIVATE_FILE, msg)
        else:
            self._emit(EV_SEND_FILE, msg)
        return msg

    def react(self, message_id: str, reaction: str, room: str | None = None) -> None:
        self._emit(EV_REACTION, {
            "messageId": message_id,
            "reaction": reaction,
            "user": self.username,
            "room": room or self.active_room,
        })

    def keystroke(self) -> None:
        self.typing.keystroke()


def _print_state(client: ChatClient) -> None:
    p = client.projector
    print(f"\n[{client.active_room}] online: {', '.join(p.online_users)}")
    for m in p.messages_for(client.active_room)[-10:]:
        if m.get("file"):
            print(f"  {m.get('sender')}: <file {m['file'].get('name')}>")
        else:
            print(f"  {m.get('sender')}: {m.get('text')}  {m.get('reactions') or ''}")
    typing = p.typing_users(client.active_room)
    if typing:
        print(f"  {', '.join(typing)} {'is' if len(typing) == 1 else 'are'} typing...")


def main() -> None:
    ap = argparse.ArgumentParser(description="RoomRelay demo client")
    ap.add_argument("--url", default="http://127.0.0.1:5000")
    ap.add_argument("--username", required=True)
    args = ap.parse_args()

    logging.basicConfig(level=logging.INFO)
    client = ChatClient(args.username)
    client.connect(args.url)
    print("Commands: /join <room>, /pm <user> <text>, /react <id> <emoji>, /file <path>, /quit")
    try:
        while True:
            line = input("> ").strip()
            if not line:
                _print_state(client)
                continue
            if line == "/quit":
                break
            cmd, _, rest = line.partition(" ")
            if cmd == "/join" and rest:
                client.join_room(rest.strip())
            elif cmd == "/pm":
                to, _, text = rest.partition(" ")
                if to and text:
                    client.send_private_message(to, text)
            elif cmd == "/react":
                mid, _, emoji = rest.partition(" ")
                if mid and emoji:
                    client.react(mid, emoji)
            elif cmd == "/file" and rest:
                client.send_file(rest.strip())
            else:
                client.keystroke()
                client.send_message(line)
            client.changed.wait(0.5)
            client.changed.clear()
            _print_state(client)
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        client.close()


if __name__ == "__main__":
    main()
