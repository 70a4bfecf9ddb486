"""
Event Types

Value types shared by the calendar source, the alert device and the
reminder scheduler: calendar events, the reminder mode, scheduler states
and alert sessions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, auto
from typing import List, Optional

from meeting_reminder.errors import MalformedEvent


class ReminderMode(Enum):
    """Which end of an event the lead time is measured against."""

    BEFORE_START = "before_start"
    BEFORE_END = "before_end"

    def anchor(self, event: "Event") -> datetime:
        """Return the instant the reminder is anchored to."""
        if self is ReminderMode.BEFORE_END:
            return event.end
        return event.start


class SchedulerState(Enum):
    """State machine of the reminder scheduler."""

    IDLE = auto()           # No qualifying event tracked
    WAITING = auto()        # Event known, sleeping until due or next poll
    NOTIFYING = auto()      # Alert device armed, waiting for resolution


class AlertOutcome(Enum):
    """How an alert session ended."""

    ACKNOWLEDGED = auto()   # Button pressed before the deadline
    EXPIRED = auto()        # Self-silenced at the deadline
    SKIPPED = auto()        # No alert device attached
    STOPPED = auto()        # Scheduler shut down mid-alert


@dataclass(frozen=True)
class Event:
    """A single concrete calendar occurrence."""

    id: str
    start: datetime
    end: datetime
    title: str = ""
    status: str = ""
    location: str = ""

    def __post_init__(self):
        if not self.id:
            raise MalformedEvent("event has no id")
        for name in ("start", "end"):
            value = getattr(self, name)
            if not isinstance(value, datetime) or value.tzinfo is None:
                raise MalformedEvent(
                    f"event {self.id} has no timezone-aware {name} time", self.id
                )
        if self.start > self.end:
            raise MalformedEvent(
                f"event {self.id} starts after it ends ({self.start} > {self.end})",
                self.id,
            )

    def __str__(self):
        return f"[{self.title}] {self.start.isoformat()} - {self.end.isoformat()}"


@dataclass
class AlertSession:
    """One armed-device episode tied to one notification."""

    event: Event
    opened_at: datetime
    deadline: datetime
    outcome: Optional[AlertOutcome] = None
    closed_at: Optional[datetime] = None
    faults: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.outcome is not None

    @property
    def duration(self) -> Optional[timedelta]:
        if self.closed_at is None:
            return None
        return self.closed_at - self.opened_at

    def close(self, outcome: AlertOutcome, at: datetime):
        if self.resolved:
            raise RuntimeError(f"alert session for {self.event.id} already closed")
        self.outcome = outcome
        self.closed_at = at
