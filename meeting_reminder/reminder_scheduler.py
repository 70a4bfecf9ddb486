"""
Reminder Scheduler

Control loop of the meeting reminder. Each poll asks the event source for
the next relevant meeting, skips it if it was already notified, and
otherwise races two timers: the wait until the reminder is due and the
poll interval. If the reminder comes due first the alert device is armed;
if the poll interval wins the decision is recomputed from fresh calendar
data, so edits and cancellations are picked up within one poll interval.

An alert session races the acknowledge button against the notification
deadline; whichever comes first disarms the device. Event ids are marked
notified before the device is touched, so a flaky device never causes a
second alert for the same meeting.
"""

import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Callable, Deque, Optional

from meeting_reminder.alert_device import AlertDevice
from meeting_reminder.calendar_source import EventSource
from meeting_reminder.config import ReminderSettings, format_duration
from meeting_reminder.errors import SourceUnavailable
from meeting_reminder.events import (
    AlertOutcome, AlertSession, Event, ReminderMode, SchedulerState,
)
from meeting_reminder.logger import get_logger
from meeting_reminder.notification_tracker import NotificationTracker
from meeting_reminder.race import Signal, after, race


def compute_wait(event: Event, now: datetime, mode: ReminderMode,
                 lead_time: timedelta) -> timedelta:
    """Time left until the reminder for ``event`` should fire (may be negative)."""
    return (mode.anchor(event) - now) - lead_time


class ReminderScheduler:
    """Polls the event source and drives the alert device."""

    def __init__(self, source: EventSource, device: Optional[AlertDevice],
                 settings: Optional[ReminderSettings] = None,
                 tracker: Optional[NotificationTracker] = None,
                 now_fn: Optional[Callable[[], datetime]] = None,
                 config=None, history_size: int = 20):
        self.source = source
        self.device = device
        self.settings = (settings or ReminderSettings()).validate()
        self.tracker = tracker if tracker is not None else NotificationTracker()
        self.logger = get_logger(__name__, config)
        self._now = now_fn or (lambda: datetime.now(timezone.utc))

        self._state = SchedulerState.IDLE
        self._current_event: Optional[Event] = None
        self.sessions: Deque[AlertSession] = deque(maxlen=history_size)

        # Background thread state
        self._stop = Signal("scheduler-stop")
        self._thread: Optional[threading.Thread] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def current_event(self) -> Optional[Event]:
        return self._current_event

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    # ------------------------------------------------------------------
    # Poll step
    # ------------------------------------------------------------------

    def poll_step(self) -> Optional[AlertSession]:
        """Run one poll iteration.

        Returns the alert session if a notification fired during this
        step, otherwise None.
        """
        self.logger.info("Checking for new calendar meetings")
        poll_seconds = self.settings.poll_interval.total_seconds()
        now = self._now()

        try:
            event = self.source.next_event(now, self.settings.mode)
        except SourceUnavailable as e:
            self.logger.error(f"Failed to get meetings: {e}")
            event = None

        if event is None:
            self._enter_idle()
            self.logger.info("None detected waiting...")
            self._sleep(poll_seconds)
            return None

        if event.id in self.tracker:
            self._enter_idle()
            self.logger.info(f"Event [{event.title}] already processed, skipping")
            self._sleep(poll_seconds)
            return None

        wait = compute_wait(event, now, self.settings.mode, self.settings.lead_time)
        self._state = SchedulerState.WAITING
        self._current_event = event
        self.logger.info(f"Found one [{event.title}] waiting for {format_duration(wait)}")

        if wait <= timedelta(0):
            return self.notify(event)

        due = after(wait.total_seconds(), "reminder-due")
        repoll = after(poll_seconds, "re-poll")
        winner = race(due, repoll, stop=self._stop)
        if winner is due:
            return self.notify(event)
        return None

    # ------------------------------------------------------------------
    # Notify
    # ------------------------------------------------------------------

    def notify(self, event: Event) -> AlertSession:
        """Alert for ``event`` until acknowledged or the deadline passes."""
        self.tracker.mark_notified(event.id)
        opened_at = self._now()
        session = AlertSession(
            event=event,
            opened_at=opened_at,
            deadline=opened_at + self.settings.notification_duration,
        )
        self._state = SchedulerState.NOTIFYING
        self._current_event = event
        self.logger.info(f"Notifying for event {event.title}")

        try:
            if self.device is None:
                session.close(AlertOutcome.SKIPPED, opened_at)
                return session

            try:
                acknowledged = self.device.arm(session.deadline)
            except Exception as e:
                self.logger.error(f"Failed to arm alert device: {e}")
                session.faults.append(f"arm: {e}")
                acknowledged = Signal("acknowledge")

            expired = after(self.settings.notification_duration.total_seconds(), "alert-deadline")
            winner = race(acknowledged, expired, stop=self._stop)
            if winner is acknowledged:
                self.logger.info("Silence event")
                outcome = AlertOutcome.ACKNOWLEDGED
            elif winner is expired:
                self.logger.info("Event self silenced")
                outcome = AlertOutcome.EXPIRED
            else:
                self.logger.info("Alert interrupted by shutdown")
                outcome = AlertOutcome.STOPPED

            try:
                self.device.disarm()
            except Exception as e:
                self.logger.error(f"Failed to disarm alert device: {e}")
                session.faults.append(f"disarm: {e}")

            session.close(outcome, self._now())
            return session
        finally:
            self.sessions.append(session)
            self._enter_idle()

    # ------------------------------------------------------------------
    # Loop control
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Poll until stop() is called. Never raises past one iteration."""
        self.logger.info(
            f"Reminder scheduler running (mode={self.settings.mode.value}, "
            f"lead={format_duration(self.settings.lead_time)}, "
            f"poll={format_duration(self.settings.poll_interval)})"
        )
        while not self._stop.is_set():
            try:
                self.poll_step()
            except Exception as e:
                self.logger.error(f"Reminder poll error: {e}")
                self._enter_idle()
                self._sleep(self.settings.poll_interval.total_seconds())
        self.logger.info("Reminder scheduler stopped")

    def start(self) -> None:
        """Run the loop on a background thread."""
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self.run, daemon=True, name="reminder-poll")
        self._thread.start()

    def stop(self, timeout: float = 10) -> None:
        """Stop the loop, interrupting any sleep, wait or active alert."""
        self._stop.fire()
        if self._thread:
            self._thread.join(timeout=timeout)

    def _enter_idle(self) -> None:
        self._state = SchedulerState.IDLE
        self._current_event = None

    def _sleep(self, seconds: float) -> None:
        self._stop.wait(seconds)
