"""
Alert Device

Blinks an LED and pulses a buzzer until a deadline, and reports a single
acknowledgement when the button is pressed.

arm() starts two tasks that share one stop signal: the pattern driver
(toggles LED and buzzer every pattern_interval) and the button poller
(samples the button counter every button_poll_interval). The stop signal
fires at the deadline or on disarm(); both tasks then turn the outputs off
and exit. Board faults are logged and never raised to the caller.
"""

import threading
from datetime import datetime, timezone
from typing import Callable, List, Optional

from meeting_reminder.board import Board
from meeting_reminder.errors import DeviceFault
from meeting_reminder.logger import get_logger
from meeting_reminder.race import RepeatingTask, Signal, TimerSignal, after


class AlertDevice:
    """Contract the scheduler drives during an alert session."""

    def arm(self, deadline: datetime) -> Signal:
        """Start alerting until ``deadline``; return the acknowledge signal."""
        raise NotImplementedError

    def disarm(self) -> None:
        """Stop alerting now. Safe to call at any time, any number of times."""
        raise NotImplementedError

    def close(self) -> None:
        self.disarm()


class RisingEdgeDetector:
    """Debounced press detection over a raw, increasing sample counter.

    The first sample only primes the detector. A later sample counts as a
    press when it exceeds the previous one by more than ``threshold``,
    which filters out sensor jitter.
    """

    def __init__(self, threshold: int = 5):
        self.threshold = threshold
        self._last: Optional[int] = None

    def update(self, value: int) -> bool:
        if self._last is None:
            self._last = value
            return False
        pressed = value > self._last + self.threshold
        self._last = value
        return pressed

    def reset(self) -> None:
        self._last = None


class BoardAlertDevice(AlertDevice):
    """LED + buzzer + button wired to a Board."""

    def __init__(self, board: Board, config=None,
                 led_pin: str = "8", buzzer_pin: str = "10", button: str = "button",
                 pattern_interval: float = 0.25, button_poll_interval: float = 0.025,
                 noise_threshold: int = 5,
                 now_fn: Optional[Callable[[], datetime]] = None):
        self.board = board
        self._config = config
        self.logger = get_logger(__name__, config)

        if config is not None:
            led_pin = str(config.get("device.led_pin", led_pin))
            buzzer_pin = str(config.get("device.buzzer_pin", buzzer_pin))
            button = str(config.get("device.button", button))
            pattern_interval = config.get_duration("device.pattern_interval", pattern_interval).total_seconds()
            button_poll_interval = config.get_duration(
                "device.button_poll_interval", button_poll_interval).total_seconds()
            noise_threshold = int(config.get("device.noise_threshold", noise_threshold))

        self.led_pin = led_pin
        self.buzzer_pin = buzzer_pin
        self.button = button
        self.pattern_interval = pattern_interval
        self.button_poll_interval = button_poll_interval
        self.noise_threshold = noise_threshold
        self._now = now_fn or (lambda: datetime.now(timezone.utc))

        self._lock = threading.Lock()
        self._stop: Optional[Signal] = None
        self._deadline_timer: Optional[TimerSignal] = None
        self._tasks: List[RepeatingTask] = []

        # reset
        self._set_outputs(False)

    # ------------------------------------------------------------------
    # Alert lifecycle
    # ------------------------------------------------------------------

    def arm(self, deadline: datetime) -> Signal:
        self.disarm()

        stop = Signal("alert-stop")
        acknowledged = Signal("acknowledge")
        remaining = (deadline - self._now()).total_seconds()
        deadline_timer = after(remaining, "alert-deadline")
        deadline_timer.add_listener(lambda _: stop.fire())

        detector = RisingEdgeDetector(self.noise_threshold)

        def _drive_pattern(tick: int):
            self._set_outputs(tick % 2 == 0)

        def _poll_button(tick: int):
            try:
                value = self.board.read_interrupt(self.button)
            except DeviceFault as e:
                self.logger.error(f"failed to get button value {e}")
                return True
            if detector.update(value):
                self.logger.info("Acknowledge button pressed")
                acknowledged.fire(True)
                return False
            return True

        pattern = RepeatingTask(self.pattern_interval, _drive_pattern, stop,
                                finally_action=lambda: self._set_outputs(False),
                                name="alert-pattern", config=self._config)
        poller = RepeatingTask(self.button_poll_interval, _poll_button, stop,
                               name="button-poll", config=self._config)

        with self._lock:
            self._stop = stop
            self._deadline_timer = deadline_timer
            self._tasks = [pattern, poller]

        self.logger.info(f"Alert armed for {max(remaining, 0.0):.1f}s")
        pattern.start()
        poller.start()
        return acknowledged

    def disarm(self) -> None:
        with self._lock:
            stop, timer, tasks = self._stop, self._deadline_timer, self._tasks
            self._stop, self._deadline_timer, self._tasks = None, None, []

        if stop is not None:
            stop.fire()
            timer.cancel()
            for task in tasks:
                task.join(timeout=1.0)
            self.logger.info("Alert disarmed")

        self._set_outputs(False)

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._stop is not None and not self._stop.is_set()

    def close(self) -> None:
        self.disarm()
        self.board.close()

    # ------------------------------------------------------------------
    # Pins
    # ------------------------------------------------------------------

    def _set_outputs(self, high: bool) -> None:
        state = "on" if high else "off"
        for label, pin in (("LED", self.led_pin), ("Buzzer", self.buzzer_pin)):
            self.logger.debug(f"Turning {label} {state}")
            try:
                self.board.set_pin(pin, high)
            except DeviceFault as e:
                self.logger.error(f"failed to set {label.lower()}: {e}")
