"""
authority_client.py

Typed endpoints of the timing authority on top of a callback transport.

Each call reports exactly once: on_success(value) for a 2xx whose body
decodes, otherwise on_failure(RaceTimerError). Exceptions raised inside the
callbacks are logged here and never propagate into the event loop.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Protocol

from racetimer.core import payloads
from racetimer.core.errors import MalformedResponse, RaceTimerError, TransportFailure
from racetimer.core.model import RaceMode, Racer, Result
from racetimer.net.transport import ErrorCallback, HttpReply, ReplyCallback

log = logging.getLogger(__name__)

JSON_CONTENT = "application/json"
TEXT_CONTENT = "text/plain"

SuccessCallback = Callable[[Any], None]
FailureCallback = Callable[[RaceTimerError], None]
Decoder = Callable[[bytes], Any]


class Transport(Protocol):
    def send(
        self,
        method: str,
        path: str,
        body: Optional[bytes],
        content_type: Optional[str],
        on_reply: ReplyCallback,
        on_error: ErrorCallback,
    ) -> None:
        ...


def _ignore_body(_body: bytes) -> None:
    return None


def _no_failure_handler(_exc: RaceTimerError) -> None:
    return None


class AuthorityClient:
    """Requests against ``/start``, ``/stop``, ``/racers``, ``/mode`` and ``/results``."""

    def __init__(self, transport: Transport):
        self._transport = transport

    # --- Commands ---------------------------------------------------------
    def start(self, on_success: SuccessCallback, on_failure: FailureCallback) -> None:
        self._request("GET", "/start", None, None, _ignore_body, on_success, on_failure)

    def stop(self, on_success: SuccessCallback, on_failure: FailureCallback) -> None:
        self._request("GET", "/stop", None, None, _ignore_body, on_success, on_failure)

    def set_mode(
        self,
        mode: RaceMode,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        self._request(
            "POST", "/mode", payloads.encode_mode(mode), TEXT_CONTENT,
            _ignore_body, on_success, on_failure,
        )

    def rename_racer(
        self,
        racer: Racer,
        on_success: SuccessCallback,
        on_failure: FailureCallback,
    ) -> None:
        self._request(
            "POST", "/racers", payloads.encode_racer(racer), JSON_CONTENT,
            _ignore_body, on_success, on_failure,
        )

    # --- Queries ------------------------------------------------------------
    def fetch_racers(self, on_success: Callable[[List[Racer]], None], on_failure: FailureCallback) -> None:
        self._request("GET", "/racers", None, None, payloads.decode_racers, on_success, on_failure)

    def fetch_mode(self, on_success: Callable[[RaceMode], None], on_failure: FailureCallback) -> None:
        self._request("GET", "/mode", None, None, payloads.decode_mode, on_success, on_failure)

    def fetch_results(
        self,
        on_success: Callable[[List[Result]], None],
        on_failure: FailureCallback,
    ) -> None:
        self._request("GET", "/results", None, None, payloads.decode_results, on_success, on_failure)

    # --- Plumbing -----------------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        body: Optional[bytes],
        content_type: Optional[str],
        decode: Decoder,
        on_success: SuccessCallback,
        on_failure: Optional[FailureCallback],
    ) -> None:
        on_failure = on_failure or _no_failure_handler

        def on_reply(reply: HttpReply) -> None:
            if not 200 <= reply.status < 300:
                self._dispatch(
                    on_failure,
                    TransportFailure(f"{method} {path} returned HTTP {reply.status}", status=reply.status),
                    path,
                )
                return
            try:
                value = decode(reply.body)
            except MalformedResponse as exc:
                self._dispatch(on_failure, exc, path)
                return
            self._dispatch(on_success, value, path)

        def on_error(message: str) -> None:
            self._dispatch(on_failure, TransportFailure(f"{method} {path} failed: {message}"), path)

        try:
            self._transport.send(method, path, body, content_type, on_reply, on_error)
        except Exception as exc:
            log.exception("Could not issue %s %s", method, path)
            self._dispatch(on_failure, TransportFailure(f"{method} {path} not sent: {exc}"), path)

    @staticmethod
    def _dispatch(callback: Callable[[Any], None], value: Any, path: str) -> None:
        try:
            callback(value)
        except Exception:
            log.exception("Unhandled error in %s callback", path)
