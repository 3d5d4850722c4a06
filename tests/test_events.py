import base64

import pytest

from realtime.events import (
    Disconnect,
    FileRef,
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
    decoded_base64_size,
    parse_inbound,
)


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def test_join_chat_accepts_bare_string_or_object():
    assert parse_inbound("join_chat", "alice") == JoinChat("alice")
    assert parse_inbound("join_chat", {"username": " bob "}) == JoinChat("bob")


def test_join_room_accepts_bare_string_or_object():
    assert parse_inbound("join_room", "general") == JoinRoom("general")
    assert parse_inbound("join_room", {"room": "random"}) == JoinRoom("random")


def test_send_message_fields():
    ev = parse_inbound("send_message", {"id": "m1", "text": "hi", "room": "random", "timestamp": "t0"})
    assert ev == SendMessage(text="hi", id="m1", room="random", timestamp="t0")


def test_send_message_room_is_optional():
    ev = parse_inbound("send_message", {"text": "hi"})
    assert ev.room is None and ev.id is None


def test_sender_in_payload_is_ignored():
    ev = parse_inbound("send_message", {"text": "hi", "sender": "mallory"})
    assert not hasattr(ev, "sender")


def test_private_message_requires_room():
    ev = parse_inbound("private_message", {"text": "psst", "room": "alice|bob", "recipient": "bob"})
    assert ev == SendPrivateMessage(text="psst", room="alice|bob", recipient="bob")
    with pytest.raises(MalformedEvent):
        parse_inbound("private_message", {"text": "psst"})


def test_file_events():
    data = "data:text/plain;base64," + _b64(b"hello")
    ev = parse_inbound("send_file", {"id": "f1", "file": {"name": "a.txt", "type": "text/plain", "data": data}})
    assert isinstance(ev, SendFile)
    assert ev.file.decoded_size() == 5

    ev = parse_inbound("private_file", {"file": {"name": "a.bin", "data": _b64(b"\x00\x01")}, "room": "a|b"})
    assert isinstance(ev, SendPrivateFile)
    assert ev.file.type == "application/octet-stream"


def test_reaction_requires_message_room_and_symbol():
    ev = parse_inbound("reaction", {"messageId": "m1", "reaction": "👍", "user": "x", "room": "general"})
    assert ev == Reaction(message_id="m1", reaction="👍", room="general")
    with pytest.raises(MalformedEvent):
        parse_inbound("reaction", {"messageId": "m1", "reaction": "👍"})


def test_typing_payload_is_optional():
    assert parse_inbound("typing") == Typing()
    assert parse_inbound("typing", {"room": "general"}) == Typing(room="general")
    assert parse_inbound("stop_typing", "random") == StopTyping(room="random")


def test_disconnect():
    assert parse_inbound("disconnect", "transport close") == Disconnect("transport close")
    assert parse_inbound("disconnect") == Disconnect()


@pytest.mark.parametrize(
    "event, payload",
    [
        ("join_chat", None),
        ("join_chat", ""),
        ("join_chat", "bad|name"),
        ("join_chat", {"username": 5}),
        ("join_room", {"room": ""}),
        ("join_room", "x" * 65),
        ("join_room", "tab\there"),
        ("send_message", "just a string"),
        ("send_message", {"room": "general"}),
        ("send_message", {"text": "   "}),
        ("send_message", {"text": ["list"]}),
        ("send_message", {"text": "x" * 4001}),
        ("send_file", {"file": {"name": "a.txt"}}),
        ("send_file", {"file": {"data": _b64(b"x")}}),
        ("send_file", {"file": {"name": "a.txt", "data": "***not base64***"}}),
        ("send_file", {"file": "a.txt"}),
        ("reaction", {"reaction": "👍", "room": "general"}),
        ("unknown_event", {}),
    ],
)
def test_malformed_payloads_raise(event, payload):
    with pytest.raises(MalformedEvent):
        parse_inbound(event, payload)


def test_max_message_length_is_configurable():
    with pytest.raises(MalformedEvent):
        parse_inbound("send_message", {"text": "hello"}, max_message_length=3)


def test_decoded_base64_size():
    assert decoded_base64_size(_b64(b"")) == 0
    assert decoded_base64_size(_b64(b"a")) == 1
    assert decoded_base64_size(_b64(b"ab")) == 2
    assert decoded_base64_size(_b64(b"abc")) == 3
    assert decoded_base64_size("data:image/png;base64," + _b64(b"x" * 1000)) == 1000


def test_file_ref_to_wire():
    ref = FileRef(name="a.txt", type="text/plain", data="aGk=")
    assert ref.to_wire() == {"name": "a.txt", "type": "text/plain", "data": "aGk="}
