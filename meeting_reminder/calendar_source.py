"""
Calendar Event Source

Finds the next relevant meeting: the soonest-anchored event inside the
lookahead horizon that is not cancelled and whose anchor (start or end,
per ReminderMode) has not already passed. Recurring entries come back
from the API already expanded into single occurrences.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from dateutil import parser as dateutil_parser
from google.auth.exceptions import GoogleAuthError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from meeting_reminder.calendar_auth import load_credentials
from meeting_reminder.errors import MalformedEvent, SourceUnavailable
from meeting_reminder.events import Event, ReminderMode
from meeting_reminder.logger import get_logger

CANCELLED = "cancelled"


class EventSource:
    """Anything that can answer "what is the next meeting?"."""

    def next_event(self, now: datetime, mode: ReminderMode) -> Optional[Event]:
        raise NotImplementedError


def parse_timestamp(value: Any, field: str = "time", event_id: str = "") -> datetime:
    """Parse an RFC3339 timestamp into an aware UTC datetime."""
    if not value or not isinstance(value, str):
        raise MalformedEvent(f"missing {field} timestamp", event_id)
    try:
        parsed = dateutil_parser.isoparse(value)
    except (ValueError, OverflowError) as e:
        raise MalformedEvent(f"unparseable {field} timestamp {value!r}: {e}", event_id) from e
    if parsed.tzinfo is None:
        raise MalformedEvent(f"{field} timestamp {value!r} has no UTC offset", event_id)
    return parsed.astimezone(timezone.utc)


def parse_event(item: Dict[str, Any]) -> Event:
    """Convert a Google Calendar API event resource into an Event.

    All-day entries only carry a ``date`` and are rejected like any other
    entry without a usable ``dateTime``.
    """
    event_id = item.get("id", "")
    start = parse_timestamp((item.get("start") or {}).get("dateTime"), "start", event_id)
    end = parse_timestamp((item.get("end") or {}).get("dateTime"), "end", event_id)
    return Event(
        id=event_id,
        start=start,
        end=end,
        title=item.get("summary", ""),
        status=item.get("status", ""),
        location=item.get("location", ""),
    )


def select_next(events: Iterable[Event], now: datetime, mode: ReminderMode,
                logger=None) -> Optional[Event]:
    """Pick the qualifying event whose anchor comes first."""
    candidates = []
    for event in events:
        if event.status == CANCELLED:
            if logger:
                logger.debug(f" - [{event.title}] skipping, cancelled")
            continue
        anchor = mode.anchor(event)
        if anchor < now:
            if logger:
                logger.debug(f" - [{event.title}] {anchor} skipping, anchor before now")
            continue
        candidates.append(event)
    if not candidates:
        return None
    return min(candidates, key=lambda e: (mode.anchor(e), e.start))


class StaticEventSource(EventSource):
    """Fixed list of events; backs the --dry-run mode of the daemon."""

    def __init__(self, events: Optional[List[Event]] = None,
                 horizon: timedelta = timedelta(minutes=60)):
        self.events = list(events or [])
        self.horizon = horizon

    def next_event(self, now: datetime, mode: ReminderMode) -> Optional[Event]:
        window_end = now + self.horizon
        in_window = [e for e in self.events if e.end > now and e.start < window_end]
        return select_next(in_window, now, mode)


class GoogleCalendarSource(EventSource):
    """Google Calendar API v3 backed event source."""

    def __init__(self, service, calendar_id: str = "primary", query: str = "",
                 horizon: timedelta = timedelta(minutes=60), config=None):
        self.service = service
        self.calendar_id = calendar_id
        self.query = query
        self.horizon = horizon
        self.logger = get_logger(__name__, config)

    @classmethod
    def from_config(cls, config, horizon: Optional[timedelta] = None) -> "GoogleCalendarSource":
        creds = load_credentials(
            config.get("calendar.credentials_file", "calendar_oauth_creds.json"),
            config.get("calendar.token_file", "token.json"),
            port=int(config.get("calendar.oauth_port", 0)),
            config=config,
        )
        service = build("calendar", "v3", credentials=creds, cache_discovery=False)
        return cls(
            service,
            calendar_id=config.get("calendar.id", "primary"),
            query=config.get("calendar.query", ""),
            horizon=horizon if horizon is not None else config.get_duration("calendar.horizon", "60m"),
            config=config,
        )

    def _list_items(self, now: datetime) -> List[Dict[str, Any]]:
        params = {
            "calendarId": self.calendar_id,
            "timeMin": now.isoformat(),
            "timeMax": (now + self.horizon).isoformat(),
            "singleEvents": True,
            "showDeleted": False,
            "orderBy": "startTime",
        }
        if self.query:
            params["q"] = self.query

        items: List[Dict[str, Any]] = []
        page_token = None
        try:
            while True:
                if page_token:
                    params["pageToken"] = page_token
                result = self.service.events().list(**params).execute()
                items.extend(result.get("items", []))
                page_token = result.get("nextPageToken")
                if not page_token:
                    return items
        except HttpError as e:
            raise SourceUnavailable(f"calendar API error: {e}") from e
        except (GoogleAuthError, OSError) as e:
            raise SourceUnavailable(f"calendar unreachable: {e}") from e

    def next_event(self, now: datetime, mode: ReminderMode) -> Optional[Event]:
        self.logger.debug(f"next_event mode={mode.value}")
        events = []
        for item in self._list_items(now):
            try:
                events.append(parse_event(item))
            except MalformedEvent as e:
                self.logger.warning(f"Discarding calendar entry {e.event_id or '?'}: {e}")
        return select_next(events, now, mode, self.logger)
