import pytest

from config import get_default_settings
from realtime.router import EventRouter
from realtime.transport import RecordingTransport


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTimer:
    def __init__(self, interval, fn):
        self.interval = interval
        self.fn = fn
        self.started = False
        self.cancelled = False
        self.daemon = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.fn()


class TimerFactory:
    def __init__(self):
        self.timers: list[FakeTimer] = []

    def __call__(self, interval, fn):
        t = FakeTimer(interval, fn)
        self.timers.append(t)
        return t

    @property
    def live(self) -> list[FakeTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]

    @property
    def last(self) -> FakeTimer:
        return self.timers[-1]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers():
    return TimerFactory()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def make_router(transport):
    """Router over the recording transport with a fixed server clock."""

    def _make(**overrides):
        settings = get_default_settings()
        settings.update(overrides)
        return EventRouter(transport, settings, clock=lambda: "2024-01-01T00:00:00Z")

    return _make


@pytest.fixture
def router(make_router):
    return make_router()


@pytest.fixture
def joined(router, transport):
    """Connect and join c1=alice, c2=bob, c3=carol; clear the setup traffic."""

    def _join(*pairs):
        for sid, name in pairs:
            router.connect(sid)
            if name is not None:
                router.handle(sid, "join_chat", name)
        transport.clear()

    return _join
