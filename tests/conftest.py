import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
import requests

ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


class FakeResponse:
    def __init__(self, payload: Any = None, *, status_code: int = 200, text: str = ""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload


class FakeSession:
    """Replays canned responses; an exception in the list is raised instead."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self._responses = list(responses or [])
        self.request_calls: List[tuple] = []

    def request(self, method, url, **kwargs):
        self.request_calls.append((method, url, kwargs))
        if not self._responses:
            raise AssertionError("No more fake responses configured")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class RecordingNotifier:
    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    def send(self, title, message, *, url=None, url_title=None):
        self.sent.append({"title": title, "message": message, "url": url, "url_title": url_title})
        return True


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def make_response():
    return FakeResponse
