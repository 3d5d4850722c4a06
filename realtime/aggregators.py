"""Ephemeral state: reaction tallies, typing sets, and the client typing debounce.

None of this is authoritative. Every projector derives the same values from the
same event stream; the router keeps its own copies only for cleanup and the
optional server-side reaction counts.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from typing import Callable, Hashable, Optional

from constants import TYPING_EXPIRY_SECONDS, TYPING_IDLE_SECONDS, TYPING_RENEW_SECONDS


class ReactionTally:
    """(message id, symbol) -> usernames, with toggle semantics.

    With ``max_messages`` set, only that many messages are tracked; the one
    reacted to least recently is forgotten first.
    """

    def __init__(self, max_messages: int | None = None) -> None:
        self.max_messages = max_messages
        self._by_message: OrderedDict[str, dict[str, set[str]]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._by_message)

    def toggle(self, message_id: str, symbol: str, username) -> bool:
        """Add the user if absent, remove if present. Returns True when added."""
        per_symbol = self._by_message.setdefault(message_id, {})
        self._by_message.move_to_end(message_id)
        users = per_symbol.setdefault(symbol, set())
        if username in users:
            users.discard(username)
            if not users:
                del per_symbol[symbol]
            if not per_symbol:
                del self._by_message[message_id]
            return False
        users.add(username)
        if self.max_messages and self.max_messages > 0:
            while len(self._by_message) > self.max_messages:
                oldest = next(iter(self._by_message))
                self.forget(oldest)
        return True

    def users(self, message_id: str, symbol: str) -> set:
        return set(self._by_message.get(message_id, {}).get(symbol, ()))

    def counts(self, message_id: str) -> dict[str, int]:
        return {s: len(u) for s, u in self._by_message.get(message_id, {}).items()}

    def snapshot(self, message_id: str) -> dict[str, list]:
        return {
            s: sorted(u, key=lambda x: (x is None, x or ""))
            for s, u in self._by_message.get(message_id, {}).items()
        }

    def forget(self, message_id: str) -> None:
        self._by_message.pop(message_id, None)


class TypingSet:
    """Per-scope typing users, present until stop or until the timeout lapses.

    The scope key is a room id, or None for the global (compatibility) set.
    """

    def __init__(
        self,
        timeout_seconds: float = TYPING_EXPIRY_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.timeout_seconds = float(timeout_seconds)
        self._clock = clock
        self._seen: dict[Optional[Hashable], dict[str, float]] = {}

    def start(self, scope, username: str) -> bool:
        """Mark a user typing (or renew). Returns True if they were not already typing."""
        self._prune(scope)
        users = self._seen.setdefault(scope, {})
        added = username not in users
        users[username] = self._clock()
        return added

    def stop(self, scope, username: str) -> bool:
        users = self._seen.get(scope)
        if not users or username not in users:
            return False
        del users[username]
        if not users:
            del self._seen[scope]
        return True

    def users(self, scope=None) -> set[str]:
        self._prune(scope)
        return set(self._seen.get(scope, ()))

    def remove_user(self, username: str) -> set:
        """Drop a user from every scope. Returns the scopes they were typing in."""
        scopes = set()
        for scope in list(self._seen):
            if self.stop(scope, username):
                scopes.add(scope)
        return scopes

    def _prune(self, scope) -> None:
        users = self._seen.get(scope)
        if not users or self.timeout_seconds <= 0:
            return
        cutoff = self._clock() - self.timeout_seconds
        for name, ts in list(users.items()):
            if ts < cutoff:
                del users[name]
        if not users:
            del self._seen[scope]


class TypingDebouncer:
    """Edge-triggered typing signals for one client.

    ``keystroke()`` emits ``typing`` on the first keystroke of a burst and
    arms one timer that emits ``stop_typing`` once ``idle_seconds`` pass
    without another keystroke. While a burst lasts longer than
    ``renew_seconds`` the typing signal is re-sent so remote expiry does not
    drop it.
    """

    def __init__(
        self,
        emit_typing: Callable[[], None],
        emit_stop: Callable[[], None],
        idle_seconds: float = TYPING_IDLE_SECONDS,
        renew_seconds: float = TYPING_RENEW_SECONDS,
        timer_factory: Callable[[float, Callable[[], None]], object] = threading.Timer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._emit_typing = emit_typing
        self._emit_stop = emit_stop
        self.idle_seconds = float(idle_seconds)
        self.renew_seconds = float(renew_seconds)
        self._timer_factory = timer_factory
        self._clock = clock
        self._timer = None
        self._last_signal: float | None = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._timer is not None

    def keystroke(self) -> None:
        with self._lock:
            now = self._clock()
            first = self._timer is None
            if first or (
                self.renew_seconds > 0
                and self._last_signal is not None
                and (now - self._last_signal) >= self.renew_seconds
            ):
                self._last_signal = now
                self._emit_typing()
            self._rearm()

    def flush(self) -> None:
        """End the burst now (e.g. the message was sent)."""
        with self._lock:
            if self._timer is None:
                return
            self._cancel_timer()
            self._last_signal = None
        self._emit_stop()

    def cancel(self) -> None:
        """Teardown: clear the timer without emitting anything."""
        with self._lock:
            self._cancel_timer()
            self._last_signal = None

    def _rearm(self) -> None:
        self._cancel_timer()
        self._generation += 1
        gen = self._generation
        timer = self._timer_factory(self.idle_seconds, lambda: self._on_idle(gen))
        if hasattr(timer, "daemon"):
            timer.daemon = True
        self._timer = timer
        timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_idle(self, gen: int) -> None:
        with self._lock:
            # A replaced or cancelled timer may still fire once.
            if self._timer is None or gen != self._generation:
                return
            self._timer = None
            self._last_signal = None
        self._emit_stop()
