"""
Race Primitives

One-shot signals, cancellable timers and a "first to fire wins" race.

The reminder scheduler races at two levels: the re-poll interval against
the wait until a reminder is due, and the acknowledge button against the
alert deadline. Both go through race(); losing timers are cancelled.
RepeatingTask drives fixed-cadence work (the LED/buzzer pattern, the
button poller) until a stop signal fires.
"""

import threading
from typing import Any, Callable, List, Optional

from meeting_reminder.logger import get_logger


class Signal:
    """One-shot signal: fires at most once, optionally carrying a value."""

    def __init__(self, name: str = ""):
        self.name = name
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._value = None
        self._listeners: List[Callable[["Signal"], None]] = []

    def fire(self, value: Any = None) -> bool:
        """Fire the signal. Returns False if it had already fired."""
        with self._lock:
            if self._event.is_set():
                return False
            self._value = value
            self._event.set()
            listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(self)
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    @property
    def value(self) -> Any:
        return self._value

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)

    def add_listener(self, listener: Callable[["Signal"], None]) -> None:
        """Call ``listener(signal)`` once when the signal fires (now if it already has)."""
        with self._lock:
            if not self._event.is_set():
                self._listeners.append(listener)
                return
        listener(self)

    def remove_listener(self, listener: Callable[["Signal"], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def cancel(self) -> None:
        """Plain signals have nothing to cancel; timers override this."""

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r}, fired={self.is_set()})"


class TimerSignal(Signal):
    """Signal fired by a daemon timer after ``seconds``."""

    def __init__(self, seconds: float, name: str = ""):
        super().__init__(name)
        self.seconds = max(0.0, float(seconds))
        self._timer = threading.Timer(self.seconds, self.fire)
        self._timer.daemon = True
        self._timer.name = f"timer-{name}" if name else "timer"
        self._timer.start()

    def cancel(self) -> None:
        self._timer.cancel()


def after(seconds: float, name: str = "") -> TimerSignal:
    """Return a signal that fires once ``seconds`` have elapsed."""
    return TimerSignal(seconds, name)


def race(*contenders: Signal, stop: Optional[Signal] = None) -> Signal:
    """Block until the first contender fires and return it.

    Contenders that have already fired win in argument order. Losing
    contenders are cancelled (a no-op for plain signals). If ``stop``
    fires first, ``stop`` is returned and is left untouched.
    """
    if not contenders:
        raise ValueError("race() needs at least one contender")

    finished = threading.Event()
    winner: List[Signal] = []
    lock = threading.Lock()

    def _on_fire(signal: Signal):
        with lock:
            if not winner:
                winner.append(signal)
        finished.set()

    entrants = list(contenders)
    if stop is not None:
        entrants.append(stop)

    try:
        for signal in entrants:
            signal.add_listener(_on_fire)
            if finished.is_set():
                break
        finished.wait()
    finally:
        for signal in entrants:
            signal.remove_listener(_on_fire)
        for signal in contenders:
            if not winner or signal is not winner[0]:
                signal.cancel()
    return winner[0]


class RepeatingTask:
    """Run ``action(tick)`` every ``interval`` seconds until ``stop`` fires.

    The action returns False to end the task early. ``finally_action``
    runs exactly once when the task ends, whatever the reason.
    """

    def __init__(self, interval: float, action: Callable[[int], Optional[bool]],
                 stop: Signal, finally_action: Optional[Callable[[], None]] = None,
                 name: str = "repeating-task", config=None):
        self.interval = float(interval)
        self.name = name
        self._action = action
        self._stop = stop
        self._finally_action = finally_action
        self._thread: Optional[threading.Thread] = None
        self.logger = get_logger(__name__, config)

    def start(self) -> "RepeatingTask":
        self._thread = threading.Thread(target=self._run, daemon=True, name=self.name)
        self._thread.start()
        return self

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    @property
    def running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def _run(self):
        tick = 0
        try:
            while not self._stop.is_set():
                try:
                    if self._action(tick) is False:
                        break
                except Exception as e:
                    self.logger.error(f"{self.name} tick {tick} failed: {e}")
                tick += 1
                if self._stop.wait(self.interval):
                    break
        finally:
            if self._finally_action:
                try:
                    self._finally_action()
                except Exception as e:
                    self.logger.error(f"{self.name} cleanup failed: {e}")
