import itertools

import pytest

from strangerchat.core import ChatService


class ManualClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class ManualTimer:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Timers that only fire when the test advances the clock."""

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self.timers = []

    def call_later(self, delay, callback):
        timer = ManualTimer(self.clock.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    async def advance(self, seconds: float):
        target = self.clock.now + seconds
        while True:
            due = [t for t in self.pending if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.timers.remove(timer)
            self.clock.now = timer.due
            await timer.callback()
        self.clock.now = target


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, participant_id, event):
        self.sent.append((participant_id, event))

    def broadcast(self, participant_ids, event):
        for pid in participant_ids:
            self.notify(pid, event)

    def broadcast_all(self, event):
        self.sent.append(("*", event))

    def events_for(self, participant_id, event_type=None):
        return [e for pid, e in self.sent
                if pid == participant_id and (event_type is None or e.type == event_type)]

    def of_type(self, event_type):
        return [(pid, e) for pid, e in self.sent if e.type == event_type]

    def clear(self):
        self.sent.clear()


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def room_ids():
    counter = itertools.count(1)
    return lambda: f"room-{next(counter)}"


@pytest.fixture
def chat(notifier, clock, scheduler, room_ids):
    return ChatService(notifier, clock=clock, scheduler=scheduler, room_id_factory=room_ids,
                       search_timeout_seconds=30, room_max_age_seconds=3600)


@pytest.fixture
def connect(chat):
    async def _connect(*participant_ids):
        for pid in participant_ids:
            await chat.connect(pid)
    return _connect
