import json
from datetime import datetime, timedelta, timezone

from meeting_reminder.alert_device import BoardAlertDevice
from meeting_reminder.calendar_source import GoogleCalendarSource, StaticEventSource
from meeting_reminder.config import Config, ReminderSettings
from meeting_reminder.events import ReminderMode

import reminder_daemon


def parse(*argv):
    return reminder_daemon.build_parser().parse_args(list(argv))


def test_flags_override_config():
    config = reminder_daemon.apply_overrides(
        Config(data={}),
        parse("--calendar", "team@example.com", "--calendar-query", "location=NYC-1900-6-E7",
              "--remind-end", "--reminder-time", "5m", "--no-robot"),
    )
    settings = ReminderSettings.from_config(config)
    assert settings.mode is ReminderMode.BEFORE_END
    assert settings.lead_time == timedelta(minutes=5)
    assert config.get("calendar.id") == "team@example.com"
    assert config.get("calendar.query") == "location=NYC-1900-6-E7"
    assert config.get("device.enabled") is False


def test_defaults_without_flags():
    config = reminder_daemon.apply_overrides(Config(data={}), parse())
    settings = ReminderSettings.from_config(config)
    assert settings.mode is ReminderMode.BEFORE_START
    assert settings.lead_time == timedelta(minutes=2)
    assert config.get("calendar.id") == "primary"


def test_no_robot_builds_no_device():
    config = Config(data={"device": {"enabled": False}})
    assert reminder_daemon.build_device(config) is None


def test_device_built_from_credentials(tmp_path, monkeypatch):
    creds = tmp_path / "robot-config.json"
    creds.write_text(json.dumps({"robot": "desk.local", "secret": "abc"}))
    config = Config(data={"device": {"credentials_file": str(creds)}})
    monkeypatch.setattr(BoardAlertDevice, "_set_outputs", lambda self, high: None)
    device = reminder_daemon.build_device(config)
    assert isinstance(device, BoardAlertDevice)
    assert device.board.base_url == "https://desk.local/api/v1/components/board"
    device.board.close()


def test_missing_robot_credentials_exit_nonzero(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"device:\n  credentials_file: {tmp_path / 'missing.json'}\n")
    assert reminder_daemon.main(["--config", str(config_path)]) == 1


def test_invalid_config_exits_before_loop(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("reminders:\n  notification_duration: -30s\n")
    assert reminder_daemon.main(["--config", str(config_path)]) == 2


def test_robot_secret_from_environment(tmp_path, monkeypatch):
    creds = tmp_path / "robot-config.json"
    creds.write_text(json.dumps({"robot": "desk.local", "secret": "abc"}))
    config = Config(data={"device": {"credentials_file": str(creds)}})
    monkeypatch.setenv("MEETING_REMINDER_ROBOT_SECRET", "from-env")
    monkeypatch.setattr(BoardAlertDevice, "_set_outputs", lambda self, high: None)
    device = reminder_daemon.build_device(config)
    assert device.board.session.headers["Authorization"] == "Bearer from-env"
    device.board.close()


def test_dry_run_source_has_one_upcoming_event():
    config = Config(data={"reminders": {"lead_time": "1m", "poll_interval": "5s"}})
    settings = ReminderSettings.from_config(config)
    before = datetime.now(timezone.utc)
    source = reminder_daemon.build_source(config, settings, dry_run=True)
    assert isinstance(source, StaticEventSource)
    event = source.next_event(before, ReminderMode.BEFORE_START)
    assert event.id == "dry-run"
    assert event.start > before + settings.lead_time


def test_calendar_source_gets_validated_horizon(monkeypatch):
    seen = {}

    def fake_from_config(config, horizon=None):
        seen["horizon"] = horizon
        return "source"

    monkeypatch.setattr(GoogleCalendarSource, "from_config", fake_from_config)
    config = Config(data={"calendar": {"horizon": "15m"}})
    settings = ReminderSettings.from_config(config)
    assert reminder_daemon.build_source(config, settings) == "source"
    assert seen["horizon"] == settings.horizon == timedelta(minutes=15)


def test_infinite_duration_exits_before_loop(tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("reminders:\n  lead_time: .inf\n")
    assert reminder_daemon.main(["--config", str(config_path)]) == 2
