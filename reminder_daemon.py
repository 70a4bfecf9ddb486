#!/usr/bin/env python3
"""
Meeting Reminder Daemon

Polls Google Calendar and blinks/buzzes the reminder board before each
meeting. Press the board's button to silence an alert early.

Usage:
    python3 reminder_daemon.py                          # remind 2m before start
    python3 reminder_daemon.py --remind-end --reminder-time 5m
    python3 reminder_daemon.py --no-robot --debug       # calendar only, log alerts
    python3 reminder_daemon.py --calendar-query location=NYC-1900-6-E7
    python3 reminder_daemon.py --dry-run --no-robot     # fake meeting, no calendar
"""

import argparse
import sys
from datetime import datetime, timedelta, timezone

from meeting_reminder.alert_device import BoardAlertDevice
from meeting_reminder.board import RemoteBoard
from meeting_reminder.calendar_source import GoogleCalendarSource, StaticEventSource
from meeting_reminder.config import Config, ReminderSettings, parse_duration
from meeting_reminder.errors import ConfigInvalid, ReminderError
from meeting_reminder.events import Event
from meeting_reminder.logger import get_logger, set_debug
from meeting_reminder.reminder_scheduler import ReminderScheduler


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Calendar-driven meeting reminder")
    parser.add_argument("--config", help="path to config.yaml")
    parser.add_argument("--calendar", help='calendar ID to use, defaults to "primary"')
    parser.add_argument("--calendar-query",
                        help="extra query to send when retrieving the calendar, e.g. location=NYC-1900-6-E7")
    parser.add_argument("--debug", action="store_true", help="run in debug mode")
    parser.add_argument("--no-robot", action="store_true", help="run without a robot")
    parser.add_argument("--remind-end", action="store_true",
                        help="remind at the end of events instead of the start")
    parser.add_argument("--reminder-time",
                        help="notify this long before the start/end of an event, e.g. 2m")
    parser.add_argument("--dry-run", action="store_true",
                        help="skip the calendar and remind about one fake meeting starting shortly")
    return parser


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Fold command-line flags into the loaded configuration."""
    if args.calendar:
        config.set("calendar.id", args.calendar)
    if args.calendar_query:
        config.set("calendar.query", args.calendar_query)
    if args.debug:
        config.set("logging.level", "DEBUG")
    if args.no_robot:
        config.set("device.enabled", False)
    if args.remind_end:
        config.set("reminders.remind_end", True)
    if args.reminder_time:
        config.set("reminders.lead_time", str(parse_duration(args.reminder_time).total_seconds()))
    return config


def build_device(config: Config):
    if not config.get("device.enabled", True):
        return None
    board = RemoteBoard.from_credentials_file(
        config.get("device.credentials_file", "robot-config.json"),
        board_name=config.get("device.board", "board"),
        timeout=config.get_duration("device.request_timeout", "2s").total_seconds(),
        secret=config.get_env(config.get("device.secret_env")),
        config=config,
    )
    return BoardAlertDevice(board, config=config)


def build_source(config: Config, settings: ReminderSettings, dry_run: bool = False):
    if not dry_run:
        return GoogleCalendarSource.from_config(config, horizon=settings.horizon)
    start = datetime.now(timezone.utc) + settings.lead_time + 2 * settings.poll_interval
    event = Event("dry-run", start, start + timedelta(minutes=30),
                  title="Dry run meeting", status="confirmed")
    return StaticEventSource([event], horizon=settings.horizon)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.debug:
        set_debug(True)

    try:
        config = apply_overrides(Config(args.config), args)
        settings = ReminderSettings.from_config(config)
    except ConfigInvalid as e:
        get_logger("meeting_reminder").critical(f"Invalid configuration: {e}")
        return 2

    logger = get_logger("meeting_reminder", config)

    try:
        device = build_device(config)
    except ReminderError as e:
        logger.critical(f"unable to connect to robot: {e}")
        return 1

    try:
        source = build_source(config, settings, args.dry_run)
    except Exception as e:
        logger.critical(f"unable to connect to calendar: {e}")
        if device:
            device.close()
        return 1

    scheduler = ReminderScheduler(source, device, settings, config=config)
    try:
        scheduler.run()
    except KeyboardInterrupt:
        logger.info("Shutting down")
    finally:
        scheduler.stop(timeout=2)
        if device:
            device.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
