"""Inbound event variants + wire parsing.

Every event a client may send is one frozen dataclass below; ``parse_inbound``
turns a raw Socket.IO payload into one of them or raises ``MalformedEvent``.
The router dispatches on the variant type, so an unhandled variant is a
missing key in one table rather than a silent string mismatch.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Optional, Union

from constants import (
    EV_DISCONNECT,
    EV_JOIN_CHAT,
    EV_JOIN_ROOM,
    EV_PRIVATE_FILE,
    EV_PRIVATE_MESSAGE,
    EV_REACTION,
    EV_SEND_FILE,
    EV_SEND_MESSAGE,
    EV_STOP_TYPING,
    EV_TYPING,
    MAX_MESSAGE_LENGTH,
    MAX_ROOM_NAME_LENGTH,
)
from realtime.room_ids import normalize_username


class MalformedEvent(ValueError):
    """Raised when a wire payload is missing required fields or has bad types."""


@dataclass(frozen=True)
class FileRef:
    name: str
    type: str
    data: str

    def to_wire(self) -> dict:
        return {"name": self.name, "type": self.type, "data": self.data}

    def decoded_size(self) -> int:
        """Size in bytes of the payload once base64-decoded."""
        return decoded_base64_size(self.data)


@dataclass(frozen=True)
class JoinChat:
    username: str


@dataclass(frozen=True)
class JoinRoom:
    room: str


@dataclass(frozen=True)
class SendMessage:
    text: str
    id: Optional[str] = None
    room: Optional[str] = None
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class SendPrivateMessage:
    text: str
    room: str
    id: Optional[str] = None
    recipient: Optional[str] = None
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class SendFile:
    file: FileRef
    id: Optional[str] = None
    room: Optional[str] = None


@dataclass(frozen=True)
class SendPrivateFile:
    file: FileRef
    room: str
    id: Optional[str] = None


@dataclass(frozen=True)
class Reaction:
    message_id: str
    reaction: str
    room: str


@dataclass(frozen=True)
class Typing:
    room: Optional[str] = None


@dataclass(frozen=True)
class StopTyping:
    room: Optional[str] = None


@dataclass(frozen=True)
class Disconnect:
    reason: Optional[str] = None


InboundEvent = Union[
    JoinChat,
    JoinRoom,
    SendMessage,
    SendPrivateMessage,
    SendFile,
    SendPrivateFile,
    Reaction,
    Typing,
    StopTyping,
    Disconnect,
]


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

def decoded_base64_size(data: str) -> int:
    """Byte length of a base64 string or ``data:`` URL without decoding it all."""
    s = data
    if s.startswith("data:") and "," in s:
        s = s.split(",", 1)[1]
    s = s.strip()
    if not s:
        return 0
    padding = len(s) - len(s.rstrip("="))
    return (len(s) * 3) // 4 - padding


def _as_dict(payload: Any, key: str) -> dict:
    """Accept either a bare scalar (legacy clients) or a dict payload."""
    if isinstance(payload, dict):
        return payload
    if isinstance(payload, str):
        return {key: payload}
    raise MalformedEvent(f"expected object or string, got {type(payload).__name__}")


def _opt_str(data: dict, key: str) -> Optional[str]:
    val = data.get(key)
    if val is None:
        return None
    if isinstance(val, bool) or not isinstance(val, (str, int, float)):
        raise MalformedEvent(f"{key} must be a string")
    s = str(val).strip()
    return s or None


def _req_str(data: dict, key: str) -> str:
    val = _opt_str(data, key)
    if val is None:
        raise MalformedEvent(f"missing {key}")
    return val


def validate_room_name(room: Optional[str], max_length: int = MAX_ROOM_NAME_LENGTH) -> str:
    room = (room or "").strip()
    if not room:
        raise MalformedEvent("room name missing")
    if len(room) > max_length:
        raise MalformedEvent(f"room name too long (max {max_length})")
    # Keep permissive, but disallow control chars.
    if any(ord(c) < 32 for c in room):
        raise MalformedEvent("invalid room name")
    return room


def _opt_room(data: dict, max_length: int) -> Optional[str]:
    room = _opt_str(data, "room")
    return validate_room_name(room, max_length) if room is not None else None


def _text(data: dict, max_length: int) -> str:
    text = data.get("text")
    if not isinstance(text, str) or not text.strip():
        raise MalformedEvent("missing text")
    if len(text) > max_length:
        raise MalformedEvent(f"text too long (max {max_length})")
    return text


def _file(data: dict) -> FileRef:
    meta = data.get("file")
    if not isinstance(meta, dict):
        raise MalformedEvent("missing file")
    name = str(meta.get("name") or "").strip()[:200]
    mime = str(meta.get("type") or meta.get("mime") or "application/octet-stream").strip()[:100]
    blob = meta.get("data")
    if not name or not isinstance(blob, str) or not blob:
        raise MalformedEvent("file needs name and data")
    raw = blob.split(",", 1)[1] if blob.startswith("data:") and "," in blob else blob
    try:
        # Validate only the first block; full decode happens on the receiver.
        head = raw[:1024]
        base64.b64decode(head + "=" * (-len(head) % 4), validate=True)
    except (binascii.Error, ValueError):
        raise MalformedEvent("file data is not base64")
    return FileRef(name=name, type=mime, data=blob)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

def parse_inbound(
    event_name: str,
    payload: Any = None,
    *,
    max_message_length: int = MAX_MESSAGE_LENGTH,
    max_room_name_length: int = MAX_ROOM_NAME_LENGTH,
) -> InboundEvent:
    if event_name == EV_JOIN_CHAT:
        data = _as_dict(payload, "username")
        username = normalize_username(data.get("username"))
        if username is None:
            raise MalformedEvent("invalid username")
        return JoinChat(username=username)

    if event_name == EV_JOIN_ROOM:
        data = _as_dict(payload, "room")
        return JoinRoom(room=validate_room_name(_opt_str(data, "room"), max_room_name_length))

    if event_name in (EV_TYPING, EV_STOP_TYPING):
        room = None
        if payload is not None:
            room = _opt_room(_as_dict(payload, "room"), max_room_name_length)
        return Typing(room=room) if event_name == EV_TYPING else StopTyping(room=room)

    if event_name == EV_DISCONNECT:
        return Disconnect(reason=str(payload) if payload is not None else None)

    if not isinstance(payload, dict):
        raise MalformedEvent(f"{event_name} expects an object payload")
    data = payload

    if event_name == EV_SEND_MESSAGE:
        return SendMessage(
            text=_text(data, max_message_length),
            id=_opt_str(data, "id"),
            room=_opt_room(data, max_room_name_length),
            timestamp=_opt_str(data, "timestamp"),
        )

    if event_name == EV_PRIVATE_MESSAGE:
        return SendPrivateMessage(
            text=_text(data, max_message_length),
            room=validate_room_name(_opt_str(data, "room"), max_room_name_length),
            id=_opt_str(data, "id"),
            recipient=_opt_str(data, "recipient"),
            timestamp=_opt_str(data, "timestamp"),
        )

    if event_name == EV_SEND_FILE:
        return SendFile(
            file=_file(data),
            id=_opt_str(data, "id"),
            room=_opt_room(data, max_room_name_length),
        )

    if event_name == EV_PRIVATE_FILE:
        return SendPrivateFile(
            file=_file(data),
            room=validate_room_name(_opt_str(data, "room"), max_room_name_length),
            id=_opt_str(data, "id"),
        )

    if event_name == EV_REACTION:
        return Reaction(
            message_id=_req_str(data, "messageId"),
            reaction=_req_str(data, "reaction"),
            room=validate_room_name(_opt_str(data, "room"), max_room_name_length),
        )

    raise MalformedEvent(f"unknown event {event_name!r}")
