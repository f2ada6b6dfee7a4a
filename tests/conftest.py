from __future__ import annotations

import json
import os
from typing import Any, List, Optional

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest  # noqa: E402
from PyQt5 import QtWidgets  # noqa: E402

from racetimer.controller.race_controller import RaceController  # noqa: E402
from racetimer.core.config_store import ConfigModel  # noqa: E402
from racetimer.net.authority_client import AuthorityClient  # noqa: E402
from racetimer.net.transport import HttpReply  # noqa: E402
from racetimer.updater.clock import LocalClock  # noqa: E402


def _as_bytes(body: Any) -> bytes:
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


class FakeRequest:
    def __init__(self, method, path, body, content_type, on_reply, on_error):
        self.method = method
        self.path = path
        self.body = body
        self.content_type = content_type
        self._on_reply = on_reply
        self._on_error = on_error
        self.done = False

    def reply(self, status: int = 200, body: Any = b"") -> None:
        assert not self.done, f"{self.method} {self.path} already answered"
        self.done = True
        self._on_reply(HttpReply(status, _as_bytes(body)))

    def fail(self, message: str = "Connection refused") -> None:
        assert not self.done, f"{self.method} {self.path} already answered"
        self.done = True
        self._on_error(message)


class FakeTransport:
    """Records requests; answers from ``auto`` immediately or leaves them pending."""

    def __init__(self):
        self.sent: List[FakeRequest] = []
        self.auto = {}

    def send(self, method, path, body, content_type, on_reply, on_error):
        request = FakeRequest(method, path, body, content_type, on_reply, on_error)
        self.sent.append(request)
        canned = self.auto.get((method, path))
        if canned is not None:
            status, payload = canned
            request.reply(status, payload)

    def pending(self, path: Optional[str] = None) -> List[FakeRequest]:
        return [r for r in self.sent if not r.done and (path is None or r.path == path)]

    def requests(self, path: str, method: Optional[str] = None) -> List[FakeRequest]:
        return [
            r for r in self.sent
            if r.path == path and (method is None or r.method == method)
        ]

    def respond(self, path: str, status: int = 200, body: Any = b"") -> FakeRequest:
        """Answer the oldest pending request for *path*."""
        request = self.pending(path)[0]
        request.reply(status, body)
        return request


class FakeNow:
    def __init__(self, value: int = 0):
        self.value = value

    def __call__(self) -> int:
        return self.value


class SignalRecorder:
    def __init__(self, signal):
        self.calls = []
        signal.connect(self._record)

    def _record(self, *args):
        self.calls.append(args)

    @property
    def last(self):
        return self.calls[-1] if self.calls else None


@pytest.fixture(scope="session")
def qapp():
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication([])


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def client(transport) -> AuthorityClient:
    return AuthorityClient(transport)


@pytest.fixture()
def fake_now() -> FakeNow:
    return FakeNow(1_000)


@pytest.fixture()
def recorder():
    return SignalRecorder


@pytest.fixture()
def make_controller(qapp, client, fake_now):
    created = []

    def factory(cfg: Optional[ConfigModel] = None) -> RaceController:
        cfg = cfg or ConfigModel()
        clock = LocalClock(tick_ms=cfg.clock_ms, now_ms=fake_now)
        controller = RaceController(client, cfg, clock=clock, wall_clock=lambda: "12:34:56")
        created.append(controller)
        return controller

    yield factory
    for controller in created:
        controller.shutdown()
