"""
Error Types

Every failure the reminder loop knows how to absorb derives from
ReminderError. Only ConfigInvalid is allowed to stop the process, and only
before the loop starts.
"""


class ReminderError(Exception):
    """Base class for meeting reminder errors."""


class SourceUnavailable(ReminderError):
    """The calendar backend could not be queried this cycle."""


class MalformedEvent(ReminderError):
    """A calendar entry has missing or unparseable timestamps."""

    def __init__(self, message: str, event_id: str = ""):
        super().__init__(message)
        self.event_id = event_id


class DeviceFault(ReminderError):
    """A board or pin call on the alert device failed."""


class ConfigInvalid(ReminderError):
    """Configuration was rejected at startup."""
