import threading
import time

import pytest

from meeting_reminder.race import RepeatingTask, Signal, after, race


def test_signal_fires_once():
    signal = Signal("ack")
    assert signal.fire("first") is True
    assert signal.fire("second") is False
    assert signal.is_set()
    assert signal.value == "first"


def test_listener_added_after_fire_runs_immediately():
    signal = Signal()
    signal.fire()
    seen = []
    signal.add_listener(seen.append)
    assert seen == [signal]


def test_race_returns_first_timer_and_cancels_loser():
    fast = after(0.02, "fast")
    slow = after(5, "slow")
    started = time.monotonic()
    assert race(fast, slow) is fast
    assert time.monotonic() - started < 1.0
    time.sleep(0.05)
    assert not slow.is_set()


def test_race_already_fired_contenders_win_in_order():
    first, second = Signal("a"), Signal("b")
    second.fire()
    first.fire()
    assert race(first, second) is first


def test_race_signal_beats_timer():
    ack = Signal("ack")
    deadline = after(5, "deadline")
    threading.Timer(0.02, ack.fire).start()
    assert race(ack, deadline) is ack
    assert not deadline.is_set()


def test_race_stop_wins():
    stop = Signal("stop")
    timer = after(5)
    threading.Timer(0.02, stop.fire).start()
    assert race(timer, stop=stop) is stop


def test_race_requires_contenders():
    with pytest.raises(ValueError):
        race()


def test_repeating_task_runs_until_stopped_and_cleans_up():
    stop = Signal()
    ticks = []
    cleaned = []
    task = RepeatingTask(0.01, ticks.append, stop, finally_action=lambda: cleaned.append(True)).start()
    time.sleep(0.08)
    stop.fire()
    task.join(1)
    assert not task.running
    assert len(ticks) >= 3
    assert ticks[:3] == [0, 1, 2]
    assert cleaned == [True]


def test_repeating_task_stops_when_action_returns_false():
    stop = Signal()
    ticks = []

    def action(tick):
        ticks.append(tick)
        return tick < 2

    task = RepeatingTask(0.005, action, stop).start()
    task.join(1)
    assert ticks == [0, 1, 2]
    assert not stop.is_set()


def test_repeating_task_survives_failing_action():
    stop = Signal()
    ticks = []

    def action(tick):
        ticks.append(tick)
        if tick == 0:
            raise RuntimeError("flaky")

    task = RepeatingTask(0.005, action, stop).start()
    time.sleep(0.05)
    stop.fire()
    task.join(1)
    assert len(ticks) >= 2
