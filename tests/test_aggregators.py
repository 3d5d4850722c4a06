from realtime.aggregators import ReactionTally, TypingDebouncer, TypingSet


# -----------------------------
# Reactions
# -----------------------------

def test_reaction_toggle_pair_restores_state():
    tally = ReactionTally()
    tally.toggle("m1", "👍", "bob")
    before = tally.snapshot("m1")

    assert tally.toggle("m1", "👍", "alice") is True
    assert tally.users("m1", "👍") == {"alice", "bob"}
    assert tally.toggle("m1", "👍", "alice") is False
    assert tally.snapshot("m1") == before


def test_reaction_user_counted_once_per_symbol():
    tally = ReactionTally()
    tally.toggle("m1", "❤️", "alice")
    tally.toggle("m1", "😂", "alice")
    tally.toggle("m1", "❤️", "bob")
    assert tally.counts("m1") == {"❤️": 2, "😂": 1}


def test_reaction_empty_entries_are_dropped():
    tally = ReactionTally()
    tally.toggle("m1", "👍", "alice")
    tally.toggle("m1", "👍", "alice")
    assert tally.counts("m1") == {}
    assert tally.snapshot("m1") == {}


def test_reaction_forget():
    tally = ReactionTally()
    tally.toggle("m1", "👍", "alice")
    tally.forget("m1")
    assert tally.users("m1", "👍") == set()


# -----------------------------
# Typing set
# -----------------------------

def test_typing_start_then_stop(clock):
    ts = TypingSet(timeout_seconds=5, clock=clock)
    assert ts.start("general", "alice") is True
    assert ts.users("general") == {"alice"}
    clock.advance(0.5)
    assert ts.stop("general", "alice") is True
    assert ts.users("general") == set()


def test_typing_start_twice_is_not_new(clock):
    ts = TypingSet(timeout_seconds=5, clock=clock)
    ts.start("general", "alice")
    assert ts.start("general", "alice") is False


def test_typing_expires_without_renewal(clock):
    ts = TypingSet(timeout_seconds=5, clock=clock)
    ts.start("general", "alice")
    clock.advance(4)
    ts.start("general", "alice")  # renewal
    clock.advance(4)
    assert ts.users("general") == {"alice"}
    clock.advance(2)
    assert ts.users("general") == set()


def test_typing_scopes_are_independent(clock):
    ts = TypingSet(timeout_seconds=5, clock=clock)
    ts.start("general", "alice")
    ts.start("random", "bob")
    assert ts.users("general") == {"alice"}
    assert ts.users("random") == {"bob"}
    assert ts.users(None) == set()


def test_typing_remove_user_everywhere(clock):
    ts = TypingSet(timeout_seconds=5, clock=clock)
    ts.start("general", "alice")
    ts.start(None, "alice")
    assert ts.remove_user("alice") == {"general", None}
    assert ts.users("general") == set()


# -----------------------------
# Debouncer
# -----------------------------

def _debouncer(timers, clock, calls, renew=3.0):
    return TypingDebouncer(
        emit_typing=lambda: calls.append("typing"),
        emit_stop=lambda: calls.append("stop"),
        idle_seconds=1.0,
        renew_seconds=renew,
        timer_factory=timers,
        clock=clock,
    )


def test_debouncer_one_pair_per_burst(timers, clock):
    calls = []
    deb = _debouncer(timers, clock, calls)
    for _ in range(5):
        deb.keystroke()
        clock.advance(0.2)

    assert calls == ["typing"]
    assert len(timers.live) == 1
    assert timers.last.interval == 1.0

    timers.last.fire()
    assert calls == ["typing", "stop"]
    assert not deb.active


def test_debouncer_resets_timer_on_each_keystroke(timers, clock):
    calls = []
    deb = _debouncer(timers, clock, calls)
    deb.keystroke()
    first = timers.last
    deb.keystroke()
    assert first.cancelled
    # The replaced timer must not end the burst even if it fires late.
    first.cancelled = False
    first.fire()
    assert calls == ["typing"]


def test_debouncer_renews_long_bursts(timers, clock):
    calls = []
    deb = _debouncer(timers, clock, calls, renew=3.0)
    deb.keystroke()
    for _ in range(8):
        clock.advance(0.5)
        deb.keystroke()
    assert calls == ["typing", "typing"]


def test_debouncer_flush_emits_stop_once(timers, clock):
    calls = []
    deb = _debouncer(timers, clock, calls)
    deb.flush()
    assert calls == []
    deb.keystroke()
    deb.flush()
    deb.flush()
    assert calls == ["typing", "stop"]
    assert timers.live == []


def test_debouncer_cancel_is_silent(timers, clock):
    calls = []
    deb = _debouncer(timers, clock, calls)
    deb.keystroke()
    deb.cancel()
    timers.last.fire()
    assert calls == ["typing"]
    assert timers.live == []


def test_reaction_tally_is_bounded():
    tally = ReactionTally(max_messages=3)
    for i in range(10):
        tally.toggle(f"m{i}", "👍", "alice")
    assert len(tally) == 3
    assert tally.users("m0", "👍") == set()
    assert tally.users("m9", "👍") == {"alice"}


def test_reaction_tally_keeps_recently_used():
    tally = ReactionTally(max_messages=2)
    tally.toggle("m1", "👍", "alice")
    tally.toggle("m2", "👍", "alice")
    tally.toggle("m1", "❤️", "bob")
    tally.toggle("m3", "👍", "alice")
    assert tally.counts("m1") == {"👍": 1, "❤️": 1}
    assert tally.counts("m2") == {}
