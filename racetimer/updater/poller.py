"""
poller.py

ResultsPoller fetches ``/results`` and ``/mode`` on a fixed QTimer period,
whether or not a race is running, and emits what comes back.

Each request is tagged with an increasing request id, one sequence per
endpoint. Responses complete in whatever order the network delivers them;
with ``discard_stale`` enabled a response older than the last one applied is
dropped, otherwise the last completion wins even if it carries older data.
"""

import logging
from typing import List, Optional

from PyQt5 import QtCore

from racetimer.core.errors import RaceTimerError
from racetimer.core.model import RaceMode, Result
from racetimer.net.authority_client import AuthorityClient

log = logging.getLogger(__name__)

MIN_POLL_MS = 20


class ResultsPoller(QtCore.QObject):
    """
    Usage:
      - poller = ResultsPoller(client, poll_ms=250)
      - connect signals: results_received (list of Result), poll_failed (str),
        mode_received (RaceMode)
      - start() / stop()
    """
    results_received = QtCore.pyqtSignal(object)
    poll_failed = QtCore.pyqtSignal(str)
    mode_received = QtCore.pyqtSignal(object)

    def __init__(
        self,
        client: AuthorityClient,
        poll_ms: int = 250,
        discard_stale: bool = True,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._client = client
        self._poll_ms = max(MIN_POLL_MS, int(poll_ms))
        self._discard_stale = discard_stale
        self._timer: Optional[QtCore.QTimer] = None
        self._running = False
        self._next_request_id = 0
        self._last_applied_id = -1
        self._last_error_msg: Optional[str] = None
        self._next_mode_id = 0
        self._mode_floor = -1
        self._last_mode_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._running

    @property
    def poll_ms(self) -> int:
        return self._poll_ms

    def start(self) -> None:
        """Start the periodic timer and fire one fetch immediately."""
        if self._running:
            return
        self._running = True
        self._last_error_msg = None
        self._timer = QtCore.QTimer(self)
        self._timer.setTimerType(QtCore.Qt.PreciseTimer)
        self._timer.setInterval(self._poll_ms)
        self._timer.timeout.connect(self._on_tick)
        self._timer.start()
        self._on_tick()

    def stop(self) -> None:
        """Stop ticking. Requests already in flight still complete and are emitted."""
        self._running = False
        if self._timer is not None:
            self._timer.stop()
            self._timer.deleteLater()
            self._timer = None

    def set_poll_interval(self, ms: int) -> None:
        self._poll_ms = max(MIN_POLL_MS, int(ms))
        if self._timer is not None:
            self._timer.setInterval(self._poll_ms)

    def set_discard_stale(self, enabled: bool) -> None:
        self._discard_stale = bool(enabled)

    def fetch_mode(self) -> None:
        """Ask the authority for its mode; the answer arrives on ``mode_received``."""
        request_id = self._next_mode_id
        self._next_mode_id += 1
        self._client.fetch_mode(
            lambda mode: self._on_mode(request_id, mode),
            lambda exc: self._on_mode_failure(request_id, exc),
        )

    def invalidate_mode(self) -> None:
        """Drop every mode reply requested so far; used once a mode write succeeds."""
        self._mode_floor = self._next_mode_id - 1

    def _on_tick(self) -> None:
        request_id = self._next_request_id
        self._next_request_id += 1
        self._client.fetch_results(
            lambda results: self._on_results(request_id, results),
            lambda exc: self._on_failure(request_id, exc),
        )
        self.fetch_mode()

    def _on_results(self, request_id: int, results: List[Result]) -> None:
        if self._discard_stale and request_id < self._last_applied_id:
            log.debug(
                "Dropping results of poll %d; poll %d already applied",
                request_id, self._last_applied_id,
            )
            return
        self._last_applied_id = max(self._last_applied_id, request_id)
        self._last_error_msg = None
        self.results_received.emit(results)

    def _on_failure(self, request_id: int, exc: RaceTimerError) -> None:
        msg = str(exc)
        # log each distinct failure once
        if msg != self._last_error_msg:
            log.warning("Results poll %d failed: %s", request_id, msg)
            self._last_error_msg = msg
        self.poll_failed.emit(msg)

    def _on_mode(self, request_id: int, mode: RaceMode) -> None:
        if request_id <= self._mode_floor:
            log.debug("Dropping mode of poll %d; newer mode already known", request_id)
            return
        if self._discard_stale:
            self._mode_floor = request_id
        self._last_mode_error = None
        self.mode_received.emit(mode)

    def _on_mode_failure(self, request_id: int, exc: RaceTimerError) -> None:
        msg = str(exc)
        if msg != self._last_mode_error:
            log.warning("Mode poll %d failed: %s", request_id, msg)
            self._last_mode_error = msg
