"""
Configuration

YAML-backed configuration with dotted-key access (``config.get("a.b")``)
and the validated ReminderSettings the scheduler runs with.

The file path defaults to config.yaml in the project root and can be
overridden with MEETING_REMINDER_CONFIG or the --config flag.
"""

import copy
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from meeting_reminder.errors import ConfigInvalid
from meeting_reminder.events import ReminderMode


PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_CONFIG_PATH = PROJECT_ROOT / "config.yaml"

DEFAULTS: Dict[str, Any] = {
    "reminders": {
        "poll_interval": "5s",
        "lead_time": "2m",
        "notification_duration": "30s",
        "remind_end": False,
    },
    "calendar": {
        "id": "primary",
        "query": "",
        "horizon": "60m",
        "credentials_file": "calendar_oauth_creds.json",
        "token_file": "token.json",
        "oauth_port": 0,
    },
    "device": {
        "enabled": True,
        "credentials_file": "robot-config.json",
        "secret_env": "MEETING_REMINDER_ROBOT_SECRET",
        "board": "board",
        "led_pin": "8",
        "buzzer_pin": "10",
        "button": "button",
        "pattern_interval": "250ms",
        "button_poll_interval": "25ms",
        "noise_threshold": 5,
        "request_timeout": "2s",
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "console": True,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Dotted-key view over the YAML configuration merged onto DEFAULTS."""

    def __init__(self, path: Optional[Union[str, Path]] = None,
                 data: Optional[Dict[str, Any]] = None):
        if data is None:
            path = Path(path or os.environ.get("MEETING_REMINDER_CONFIG") or DEFAULT_CONFIG_PATH)
            data = self._read(path)
        self.path = Path(path) if path else None
        self._data = _merge(DEFAULTS, data)

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigInvalid(f"Unable to read config file {path}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigInvalid(f"Config file {path} must contain a mapping")
        return data

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``reminders.lead_time``."""
        node: Any = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return default if node is None else node

    def set(self, key: str, value: Any) -> None:
        """Override a dotted key (used for command-line flags)."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value

    def get_env(self, name: Optional[str], default: Optional[str] = None) -> Optional[str]:
        """Read a secret from the environment by variable name."""
        if not name:
            return default
        return os.environ.get(name, default)

    def get_duration(self, key: str, default: Any = None) -> timedelta:
        value = self.get(key, default)
        try:
            return parse_duration(value)
        except ConfigInvalid as e:
            raise ConfigInvalid(f"{key}: {e}") from e


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """Load configuration from ``path`` (or the default location)."""
    return Config(path)


_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_FULL = re.compile(r"(?:\d+(?:\.\d+)?(?:ms|h|m|s))+")


def _to_timedelta(seconds: float, original: Any) -> timedelta:
    try:
        return timedelta(seconds=seconds)
    except (OverflowError, ValueError) as e:
        raise ConfigInvalid(f"duration {original!r} out of range") from e


def parse_duration(value: Any) -> timedelta:
    """Parse ``5``, ``"5s"``, ``"2m"``, ``"1h30m"`` or ``"250ms"`` into a timedelta.

    Bare numbers are seconds. A leading ``-`` is kept so that negative
    values reach validation instead of being silently dropped.
    """
    if isinstance(value, timedelta):
        return value
    if isinstance(value, bool) or value is None:
        raise ConfigInvalid(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return _to_timedelta(value, value)

    text = str(value).strip().lower()
    sign = 1
    if text.startswith("-"):
        sign = -1
        text = text[1:]
    try:
        return timedelta(seconds=sign * float(text))
    except (ValueError, OverflowError):
        pass
    if not text or not _DURATION_FULL.fullmatch(text):
        raise ConfigInvalid(f"invalid duration {value!r}")
    seconds = sum(float(amount) * _DURATION_UNITS[unit]
                  for amount, unit in _DURATION_PART.findall(text))
    return _to_timedelta(sign * seconds, value)


def format_duration(delta: timedelta) -> str:
    """Render a timedelta the way the log lines read it, e.g. ``1m30.5s``."""
    seconds = delta.total_seconds()
    sign = "-" if seconds < 0 else ""
    seconds = abs(seconds)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    out = ""
    if hours:
        out += f"{int(hours)}h"
    if hours or minutes:
        out += f"{int(minutes)}m"
    out += f"{secs:.3g}s" if secs < 10 else f"{secs:.1f}s"
    return sign + out


@dataclass
class ReminderSettings:
    """Timing and mode the reminder scheduler runs with."""

    poll_interval: timedelta = timedelta(seconds=5)
    lead_time: timedelta = timedelta(minutes=2)
    notification_duration: timedelta = timedelta(seconds=30)
    mode: ReminderMode = ReminderMode.BEFORE_START
    horizon: timedelta = timedelta(minutes=60)

    def validate(self) -> "ReminderSettings":
        if self.poll_interval <= timedelta(0):
            raise ConfigInvalid(f"poll interval must be positive, got {self.poll_interval}")
        if self.lead_time < timedelta(0):
            raise ConfigInvalid(f"lead time must not be negative, got {self.lead_time}")
        if self.notification_duration < timedelta(0):
            raise ConfigInvalid(
                f"notification duration must not be negative, got {self.notification_duration}"
            )
        if self.horizon <= timedelta(0):
            raise ConfigInvalid(f"calendar horizon must be positive, got {self.horizon}")
        if not isinstance(self.mode, ReminderMode):
            raise ConfigInvalid(f"unknown reminder mode {self.mode!r}")
        return self

    @classmethod
    def from_config(cls, config: Config) -> "ReminderSettings":
        mode = ReminderMode.BEFORE_END if config.get("reminders.remind_end", False) else ReminderMode.BEFORE_START
        return cls(
            poll_interval=config.get_duration("reminders.poll_interval", "5s"),
            lead_time=config.get_duration("reminders.lead_time", "2m"),
            notification_duration=config.get_duration("reminders.notification_duration", "30s"),
            mode=mode,
            horizon=config.get_duration("calendar.horizon", "60m"),
        ).validate()
