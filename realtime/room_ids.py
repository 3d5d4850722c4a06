"""Private room naming.

A private room id is the two participant usernames, sorted, joined with
``PRIVATE_ROOM_SEPARATOR``. Either side can compute it without asking the
server, so two conversations opened independently end up in the same room.
"""

from __future__ import annotations

from constants import PRIVATE_ROOM_SEPARATOR, USERNAME_RE


def normalize_username(value) -> str | None:
    """Trim + validate a username. Returns None if it is not legal."""
    if not isinstance(value, str):
        return None
    name = value.strip()
    if not name or not USERNAME_RE.match(name):
        return None
    return name


def derive_private_room(user_a: str, user_b: str) -> str:
    a = normalize_username(user_a)
    b = normalize_username(user_b)
    if a is None or b is None:
        raise ValueError(f"invalid username pair: {user_a!r}, {user_b!r}")
    first, second = sorted((a, b))
    return f"{first}{PRIVATE_ROOM_SEPARATOR}{second}"


def is_private_room(room) -> bool:
    return private_room_members(room) is not None


def private_room_members(room) -> tuple[str, str] | None:
    """Return the (sorted) participant pair of a private room id, else None."""
    if not isinstance(room, str) or PRIVATE_ROOM_SEPARATOR not in room:
        return None
    a, _, b = room.partition(PRIVATE_ROOM_SEPARATOR)
    if not a or not b or PRIVATE_ROOM_SEPARATOR in b:
        return None
    return a, b
