from realtime.projector import SessionProjector


def _msg(mid, text="hi", room="general", sender="bob"):
    return {"id": mid, "text": text, "room": room, "sender": sender, "timestamp": "t"}


def test_unknown_event_is_ignored():
    p = SessionProjector("alice")
    assert p.apply("something_else", {}) is False
    assert p.messages == []


def test_messages_keep_arrival_order():
    p = SessionProjector("alice")
    p.apply("receive_message", _msg("m1", "one"))
    p.apply("receive_message", _msg("m2", "two", room="random"))
    assert [m["text"] for m in p.messages] == ["one", "two"]
    assert [m["id"] for m in p.messages_for("random")] == ["m2"]
    assert p.messages[0]["delivered"] is True
    assert p.messages[0]["isPrivate"] is False


def test_local_echo_is_replaced_by_server_echo():
    p = SessionProjector("alice")
    p.add_local_echo(_msg("m1", sender="alice"))
    assert p.messages[0]["delivered"] is False

    p.apply("receive_message", _msg("m1", sender="alice"))
    assert len(p.messages) == 1
    assert p.messages[0]["delivered"] is True


def test_private_message_marked_private():
    p = SessionProjector("alice")
    p.apply("receive_private_message", _msg("p1", room="alice|bob"))
    assert p.messages[0]["isPrivate"] is True


def test_file_requires_file_object():
    p = SessionProjector("alice")
    assert p.apply("receive_file", {"id": "f0", "file": "nope"}) is False
    assert p.apply("receive_file", {"id": "f1", "room": "general", "file": {"name": "a.txt"}}) is True
    assert p.messages[0]["file"] == {"name": "a.txt"}


def test_presence_events_add_system_lines():
    p = SessionProjector("alice")
    p.apply("user_joined", "bob")
    p.apply("user_left", "bob")
    assert [m["text"] for m in p.messages] == ["bob joined the chat", "bob left the chat"]
    assert all(m["system"] for m in p.messages)


def test_online_users_replaced_wholesale():
    p = SessionProjector("alice")
    p.apply("online_users", ["alice", "bob"])
    p.apply("online_users", ["alice"])
    assert p.online_users == ["alice"]
    assert p.apply("online_users", "bob") is False


def test_room_typing_is_scoped_and_excludes_self(clock):
    p = SessionProjector("alice", clock=clock)
    p.apply("user_typing", {"username": "bob", "room": "general"})
    p.apply("user_typing", {"username": "alice", "room": "general"})
    p.apply("user_typing", {"username": "carol", "room": "random"})

    assert p.typing_users("general") == ["bob"]
    assert p.typing_users("random") == ["carol"]

    p.apply("user_stop_typing", {"username": "bob", "room": "general"})
    assert p.typing_users("general") == []


def test_global_typing_shows_in_every_room(clock):
    p = SessionProjector("alice", clock=clock)
    p.apply("user_typing", "bob")
    assert p.typing_users("general") == ["bob"]
    assert p.typing_users() == ["bob"]
    p.apply("user_stop_typing", "bob")
    assert p.typing_users() == []


def test_typing_indicator_expires(clock):
    p = SessionProjector("alice", typing_timeout_seconds=5, clock=clock)
    p.apply("user_typing", {"username": "bob", "room": "general"})
    clock.advance(6)
    assert p.typing_users("general") == []


def test_user_left_clears_typing(clock):
    p = SessionProjector("alice", clock=clock)
    p.apply("user_typing", {"username": "bob", "room": "general"})
    p.apply("user_left", "bob")
    assert p.typing_users("general") == []


def test_reaction_toggle_and_dedupe():
    p = SessionProjector("alice")
    p.apply("receive_message", _msg("m1"))
    ev = {"messageId": "m1", "reaction": "👍", "user": "bob", "room": "general", "eventId": "e1"}

    assert p.apply("reaction", ev) is True
    assert p.apply("reaction", ev) is False  # same event delivered twice
    assert p.reactions("m1") == {"👍": ["bob"]}
    assert p.messages[0]["reactions"] == {"👍": ["bob"]}

    p.apply("reaction", dict(ev, eventId="e2"))
    assert p.reactions("m1") == {}
    assert "reactions" not in p.messages[0]


def test_reaction_on_numeric_message_id():
    p = SessionProjector("alice")
    p.apply("receive_message", _msg(1700000000000))
    p.apply("reaction", {"messageId": 1700000000000, "reaction": "😂", "user": "bob"})
    assert p.reactions(1700000000000) == {"😂": ["bob"]}
    assert p.messages[0]["reactions"] == {"😂": ["bob"]}


def test_error_events_are_collected():
    p = SessionProjector("alice")
    p.apply("error", {"code": "file_too_large", "limit": 10, "size": 11, "id": "f1"})
    assert p.errors[0]["code"] == "file_too_large"


def test_same_id_from_another_sender_does_not_rewrite():
    p = SessionProjector("carol")
    p.apply("receive_message", _msg("m1", "pay invoice 42", sender="alice"))
    p.apply("receive_message", _msg("m1", "ignore that", sender="bob"))
    assert [(m["sender"], m["text"]) for m in p.messages] == [
        ("alice", "pay invoice 42"),
        ("bob", "ignore that"),
    ]


def test_other_sender_cannot_replace_local_echo():
    p = SessionProjector("alice")
    p.add_local_echo(_msg("m1", "mine", sender="alice"))
    p.apply("receive_message", _msg("m1", "theirs", sender="bob"))
    assert [m["text"] for m in p.messages] == ["mine", "theirs"]
    assert p.messages[0]["delivered"] is False


def test_redelivered_message_is_dropped():
    p = SessionProjector("carol")
    assert p.apply("receive_message", _msg("m1", sender="alice")) is True
    assert p.apply("receive_message", _msg("m1", "edited", sender="alice")) is False
    assert [m["text"] for m in p.messages] == ["hi"]
