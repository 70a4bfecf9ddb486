#!/usr/bin/env python3
"""Quick calendar query tool for testing/debugging.

Shows which event the reminder would pick right now, and when it would fire.

Usage:
    python3 scripts/query_calendar.py              # Next event for both modes
    python3 scripts/query_calendar.py start        # Next event by start time
    python3 scripts/query_calendar.py end          # Next event by end time
    python3 scripts/query_calendar.py all          # Every entry in the horizon
"""
import sys
from datetime import datetime, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from meeting_reminder.calendar_source import GoogleCalendarSource, parse_event
from meeting_reminder.config import ReminderSettings, format_duration, load_config
from meeting_reminder.errors import MalformedEvent, ReminderError
from meeting_reminder.events import ReminderMode
from meeting_reminder.reminder_scheduler import compute_wait


def fmt(event, mode, settings, now):
    if event is None:
        print("  (none)")
        return
    wait = compute_wait(event, now, mode, settings.lead_time)
    local = event.start.astimezone()
    print(f"  {event.id[:26]:26s} | {event.status or '?':9s} | {local:%Y-%m-%d %H:%M} | {event.title}")
    if event.location:
        print(f"        where: {event.location}")
    print(f"        fires in: {format_duration(wait)}")


def main():
    arg = sys.argv[1] if len(sys.argv) > 1 else "both"
    config = load_config()
    settings = ReminderSettings.from_config(config)
    now = datetime.now(timezone.utc)

    try:
        source = GoogleCalendarSource.from_config(config, horizon=settings.horizon)
        if arg == "all":
            print(f"=== Entries in the next {format_duration(settings.horizon)} ===")
            items = source._list_items(now)
            if not items:
                print("  (none)")
            for item in items:
                try:
                    event = parse_event(item)
                    print(f"  {event.start.astimezone():%H:%M}-{event.end.astimezone():%H:%M} | {event.title}")
                except MalformedEvent as e:
                    print(f"  (malformed) {item.get('summary', '?')}: {e}")
            return
        modes = {
            "start": [ReminderMode.BEFORE_START],
            "end": [ReminderMode.BEFORE_END],
            "both": [ReminderMode.BEFORE_START, ReminderMode.BEFORE_END],
        }.get(arg)
        if modes is None:
            print(__doc__)
            return
        for mode in modes:
            print(f"=== Next event ({mode.value}) ===")
            fmt(source.next_event(now, mode), mode, settings, now)
    except ReminderError as e:
        print(f"Calendar query failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
