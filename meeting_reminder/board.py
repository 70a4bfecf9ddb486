"""
Board Access

The alert device drives two output pins (LED, buzzer) and reads one
digital interrupt counter (the acknowledge button) on a board controller.

RemoteBoard does not speak a robot SDK protocol. It needs a small HTTP
bridge running next to the board that serves:

    PUT {robot}/api/v1/components/{board}/gpio/{pin}          {"high": true}
    GET {robot}/api/v1/components/{board}/digital_interrupts/{name}
        -> {"value": 42}

with the secret sent as a bearer token. Any other transport plugs in by
implementing Board.
"""

import json
from pathlib import Path
from typing import Dict, Optional, Union

import requests

from meeting_reminder.errors import DeviceFault
from meeting_reminder.logger import get_logger


class Board:
    """Minimal board contract used by the alert device."""

    def set_pin(self, name: str, high: bool) -> None:
        raise NotImplementedError

    def read_interrupt(self, name: str) -> int:
        """Return the raw tick counter of a digital interrupt."""
        raise NotImplementedError

    def close(self) -> None:
        pass


def load_board_credentials(cred_file: Union[str, Path]) -> Dict[str, str]:
    """Read ``{"robot": <address>, "secret": <secret>}`` from a JSON file."""
    try:
        with open(cred_file) as f:
            creds = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DeviceFault(f"unable to read robot credentials {cred_file}: {e}") from e
    if not isinstance(creds, dict) or not creds.get("robot"):
        raise DeviceFault(f"robot credentials {cred_file} have no 'robot' address")
    return creds


class RemoteBoard(Board):
    """Board reached through an HTTP bridge (see module docstring)."""

    def __init__(self, address: str, secret: str = "", board_name: str = "board",
                 timeout: float = 2.0, session: Optional[requests.Session] = None,
                 config=None):
        if "://" not in address:
            address = f"https://{address}"
        self.base_url = f"{address.rstrip('/')}/api/v1/components/{board_name}"
        self.timeout = timeout
        self.session = session or requests.Session()
        if secret:
            self.session.headers["Authorization"] = f"Bearer {secret}"
        self.logger = get_logger(__name__, config)

    @classmethod
    def from_credentials_file(cls, cred_file: Union[str, Path], board_name: str = "board",
                              timeout: float = 2.0, secret: Optional[str] = None,
                              config=None) -> "RemoteBoard":
        """Build from the credentials file; ``secret`` overrides the stored one."""
        creds = load_board_credentials(cred_file)
        return cls(creds["robot"], secret or creds.get("secret", ""), board_name=board_name,
                   timeout=timeout, config=config)

    def set_pin(self, name: str, high: bool) -> None:
        url = f"{self.base_url}/gpio/{name}"
        try:
            response = self.session.put(url, json={"high": bool(high)}, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DeviceFault(f"failed to set pin {name}: {e}") from e

    def read_interrupt(self, name: str) -> int:
        url = f"{self.base_url}/digital_interrupts/{name}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return int(response.json()["value"])
        except requests.RequestException as e:
            raise DeviceFault(f"failed to get {name} value: {e}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise DeviceFault(f"unexpected {name} payload: {e}") from e

    def close(self) -> None:
        self.session.close()
