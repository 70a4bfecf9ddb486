"""
Notification Tracker

In-memory record of the calendar event ids that have already been
notified. Grows for the life of the process and is never persisted, so an
event id is reminded about at most once per run.
"""

from typing import FrozenSet, Set


class NotificationTracker:
    """Set of notified event ids, owned by a single scheduler."""

    def __init__(self):
        self._notified: Set[str] = set()

    def contains(self, event_id: str) -> bool:
        return event_id in self._notified

    def mark_notified(self, event_id: str) -> bool:
        """Record ``event_id``. Returns False if it was already recorded."""
        if event_id in self._notified:
            return False
        self._notified.add(event_id)
        return True

    def snapshot(self) -> FrozenSet[str]:
        return frozenset(self._notified)

    def __contains__(self, event_id: str) -> bool:
        return self.contains(event_id)

    def __len__(self) -> int:
        return len(self._notified)
