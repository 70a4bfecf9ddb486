import json

import pytest
import requests

from meeting_reminder.board import RemoteBoard, load_board_credentials
from meeting_reminder.errors import DeviceFault


class FakeResponse:
    def __init__(self, status=200, payload=None):
        self.status_code = status
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []
        self.closed = False

    def _handle(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response

    def put(self, url, **kwargs):
        return self._handle("PUT", url, **kwargs)

    def get(self, url, **kwargs):
        return self._handle("GET", url, **kwargs)

    def close(self):
        self.closed = True


def test_load_credentials(tmp_path):
    path = tmp_path / "robot-config.json"
    path.write_text(json.dumps({"robot": "desk.local", "secret": "abc"}))
    assert load_board_credentials(path) == {"robot": "desk.local", "secret": "abc"}


@pytest.mark.parametrize("content", ["not json", json.dumps({"secret": "abc"}), "[]"])
def test_load_credentials_rejects_bad_files(tmp_path, content):
    path = tmp_path / "robot-config.json"
    path.write_text(content)
    with pytest.raises(DeviceFault):
        load_board_credentials(path)


def test_missing_credentials_file(tmp_path):
    with pytest.raises(DeviceFault):
        load_board_credentials(tmp_path / "nope.json")


def test_set_pin_sends_state_with_auth():
    session = FakeSession()
    board = RemoteBoard("desk.local", "abc", session=session, timeout=1.5)
    board.set_pin("8", True)
    method, url, kwargs = session.calls[0]
    assert method == "PUT"
    assert url == "https://desk.local/api/v1/components/board/gpio/8"
    assert kwargs == {"json": {"high": True}, "timeout": 1.5}
    assert session.headers["Authorization"] == "Bearer abc"


def test_read_interrupt_returns_counter():
    session = FakeSession(FakeResponse(payload={"value": 42}))
    board = RemoteBoard("http://10.0.0.5:8080/", session=session)
    assert board.read_interrupt("button") == 42
    assert session.calls[0][1] == "http://10.0.0.5:8080/api/v1/components/board/digital_interrupts/button"


@pytest.mark.parametrize("session", [
    FakeSession(error=requests.ConnectionError("refused")),
    FakeSession(FakeResponse(status=500)),
    FakeSession(FakeResponse(payload={"unexpected": 1})),
])
def test_read_interrupt_faults(session):
    board = RemoteBoard("desk.local", session=session)
    with pytest.raises(DeviceFault):
        board.read_interrupt("button")


def test_set_pin_fault():
    board = RemoteBoard("desk.local", session=FakeSession(error=requests.Timeout("slow")))
    with pytest.raises(DeviceFault):
        board.set_pin("10", False)


def test_close_closes_session():
    session = FakeSession()
    RemoteBoard("desk.local", session=session).close()
    assert session.closed


def test_secret_argument_overrides_file(tmp_path):
    path = tmp_path / "robot-config.json"
    path.write_text(json.dumps({"robot": "desk.local", "secret": "abc"}))
    board = RemoteBoard.from_credentials_file(path, secret="override")
    assert board.session.headers["Authorization"] == "Bearer override"
    board.close()

    board = RemoteBoard.from_credentials_file(path, secret=None)
    assert board.session.headers["Authorization"] == "Bearer abc"
    board.close()
