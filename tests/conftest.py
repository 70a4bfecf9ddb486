import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from meeting_reminder.board import Board
from meeting_reminder.errors import DeviceFault
from meeting_reminder.events import Event
from meeting_reminder.race import Signal


def utc_now():
    return datetime.now(timezone.utc)


def make_event(event_id="E1", start_in=60.0, length=1800.0, title="Standup", status="confirmed",
               now=None):
    now = now or utc_now()
    start = now + timedelta(seconds=start_in)
    return Event(id=event_id, start=start, end=start + timedelta(seconds=length),
                 title=title, status=status)


class ScriptedSource:
    """Returns queued results one poll at a time, then repeats the last one."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def next_event(self, now, mode):
        self.calls.append((now, mode))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        if callable(result):
            return result(now)
        return result


class FakeAlertDevice:
    """Records arm/disarm times; the test fires the acknowledge signal."""

    def __init__(self, fail_arm=False, fail_disarm=False):
        self.fail_arm = fail_arm
        self.fail_disarm = fail_disarm
        self.armed_at = []
        self.deadlines = []
        self.disarmed_at = []
        self.signals = []
        self.armed_event = threading.Event()

    def arm(self, deadline):
        self.armed_at.append(time.monotonic())
        self.deadlines.append(deadline)
        if self.fail_arm:
            self.armed_event.set()
            raise DeviceFault("board offline")
        signal = Signal("acknowledge")
        self.signals.append(signal)
        self.armed_event.set()
        return signal

    def disarm(self):
        self.disarmed_at.append(time.monotonic())
        if self.fail_disarm:
            raise DeviceFault("board offline")

    def close(self):
        self.disarm()


class FakeBoard(Board):
    """In-memory board: pin writes are recorded, the button counter is settable."""

    def __init__(self, counter=0, fail_pins=False, fail_reads=0):
        self.counter = counter
        self.fail_pins = fail_pins
        self.fail_reads = fail_reads
        self.writes = []
        self.pins = {}
        self.closed = False
        self._lock = threading.Lock()

    def set_pin(self, name, high):
        if self.fail_pins:
            raise DeviceFault(f"pin {name} unavailable")
        with self._lock:
            self.writes.append((name, high))
            self.pins[name] = high

    def read_interrupt(self, name):
        with self._lock:
            if self.fail_reads:
                self.fail_reads -= 1
                raise DeviceFault("read failed")
            return self.counter

    def press(self, amount=10):
        with self._lock:
            self.counter += amount

    def close(self):
        self.closed = True


def wait_until(predicate, timeout=2.0, interval=0.005):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fake_device():
    return FakeAlertDevice()


@pytest.fixture
def fake_board():
    return FakeBoard()
