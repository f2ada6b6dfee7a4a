"""
race_controller.py

RaceController owns the RaceModel and is the only thing that mutates it.
It turns user intents into authority requests, arms/disarms the LocalClock,
reconciles ResultsPoller output through the renderer, and publishes every
visible change as a Qt signal for the view.

All handlers run on the Qt event loop. Command responses and poll responses
interleave in whatever order the network delivers them; no in-flight request
is ever cancelled.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from PyQt5 import QtCore

from racetimer.core.config_store import ConfigModel
from racetimer.core.errors import RaceTimerError
from racetimer.core.model import (
    ACTIVE_CARD,
    RaceMode,
    RaceModel,
    Racer,
    Result,
    StatusLine,
)
from racetimer.core.time_format import format_time
from racetimer.net.authority_client import AuthorityClient
from racetimer.render.results_renderer import (
    IN_PROGRESS_TEXT,
    NO_RESULTS_TEXT,
    placeholder_output,
    render_results,
    results_title,
)
from racetimer.updater.clock import LocalClock
from racetimer.updater.poller import ResultsPoller

log = logging.getLogger(__name__)

NameAnswers = Mapping[int, Optional[str]]


class NamePrompt(Protocol):
    def request(self, racers: Sequence[Racer], on_complete: Callable[[NameAnswers], None]) -> None:
        """Ask for a new name per racer; call *on_complete* once with ``{id: answer}``."""


def wall_clock_text() -> str:
    return datetime.now().strftime("%H:%M:%S")


class RaceController(QtCore.QObject):
    status_changed = QtCore.pyqtSignal(str, str)        # text, color
    clock_changed = QtCore.pyqtSignal(str)
    results_changed = QtCore.pyqtSignal(object)         # RenderOutput
    cards_changed = QtCore.pyqtSignal(object)           # Dict[int, RacerCard]
    racers_changed = QtCore.pyqtSignal(object)          # List[Racer]
    mode_changed = QtCore.pyqtSignal(str, str)          # mode value, results title
    race_active_changed = QtCore.pyqtSignal(bool)
    connection_changed = QtCore.pyqtSignal(bool, str)   # healthy, color
    last_update_changed = QtCore.pyqtSignal(str)

    def __init__(
        self,
        client: AuthorityClient,
        cfg: ConfigModel,
        clock: Optional[LocalClock] = None,
        poller: Optional[ResultsPoller] = None,
        wall_clock: Callable[[], str] = wall_clock_text,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._client = client
        self._cfg = cfg
        self._wall_clock = wall_clock
        self.model = RaceModel()

        self._clock = clock or LocalClock(tick_ms=cfg.clock_ms, parent=self)
        self._clock.ticked.connect(self.clock_changed.emit)

        self._poller = poller or ResultsPoller(
            client,
            poll_ms=cfg.poll_ms,
            discard_stale=cfg.discard_stale_results,
            parent=self,
        )
        self._poller.results_received.connect(self._on_results)
        self._poller.poll_failed.connect(self._on_poll_failed)
        self._poller.mode_received.connect(self._on_mode_polled)

        self._status_colors: Dict[StatusLine, str] = {}
        self.update_config(cfg)

    # --- Wiring helpers -------------------------------------------------
    @property
    def clock(self) -> LocalClock:
        return self._clock

    @property
    def poller(self) -> ResultsPoller:
        return self._poller

    def update_config(self, cfg: ConfigModel) -> None:
        self._cfg = cfg
        self._status_colors = {
            StatusLine.IDLE: cfg.idle_color,
            StatusLine.RACING: cfg.racing_color,
            StatusLine.STOPPED: cfg.stopped_color,
            StatusLine.ERROR: cfg.error_color,
        }
        self._clock.set_tick_interval(cfg.clock_ms)
        self._poller.set_poll_interval(cfg.poll_ms)
        self._poller.set_discard_stale(cfg.discard_stale_results)

    def start(self) -> None:
        """Publish the idle view, fetch the roster, and begin polling results and mode."""
        self._set_status(StatusLine.IDLE)
        self.clock_changed.emit(format_time(0))
        self.results_changed.emit(placeholder_output(NO_RESULTS_TEXT))
        self.mode_changed.emit(self.model.mode.value, results_title(self.model.mode))
        self.race_active_changed.emit(False)
        self.load_racers()
        self._poller.start()

    def shutdown(self) -> None:
        self._poller.stop()
        self._clock.disarm()

    # --- Queries ---------------------------------------------------------
    def load_racers(self) -> None:
        self._client.fetch_racers(self._on_racers_loaded, self._log_failure("load racers"))

    def load_mode(self) -> None:
        self._poller.fetch_mode()

    # --- Commands ---------------------------------------------------------
    def start_race(self) -> None:
        self._client.start(self._on_race_started, self._on_start_failed)

    def stop_race(self, then: Optional[Callable[[], None]] = None) -> None:
        """Request a stop; *then* runs after the response, whatever its outcome."""

        def on_success(_value) -> None:
            self._on_race_stopped()
            if then is not None:
                then()

        def on_failure(exc: RaceTimerError) -> None:
            log.warning("Failed to stop race: %s", exc)
            if then is not None:
                then()

        self._client.stop(on_success, on_failure)

    def reset_race(self) -> None:
        self._disarm_session()
        self.stop_race(then=self._apply_clean_slate)

    def set_mode(self, mode: RaceMode) -> None:
        mode = RaceMode(mode)
        self._client.set_mode(
            mode,
            lambda _value: self._on_mode_set(mode),
            self._log_failure(f"set mode to {mode.value}"),
        )

    def edit_racers(self, prompt: NamePrompt) -> None:
        roster = list(self.model.racers)
        if not roster:
            log.info("No racers loaded; nothing to rename")
            return
        prompt.request(roster, lambda answers: self._persist_names(roster, answers))

    # --- Command completions ----------------------------------------------
    def _on_race_started(self, _value) -> None:
        start_ms = self._clock.now_ms()
        self.model.session.begin(start_ms)
        self._set_status(StatusLine.RACING)
        self._clear_results(IN_PROGRESS_TEXT)
        if self.model.mode == RaceMode.RACE:
            for racer_id in self.model.racer_ids():
                self.model.cards.apply(racer_id, ACTIVE_CARD)
            self.cards_changed.emit(self.model.cards.snapshot())
        self._clock.arm(start_ms)
        self.race_active_changed.emit(True)

    def _on_start_failed(self, exc: RaceTimerError) -> None:
        log.warning("Failed to start race: %s", exc)
        self._set_status(StatusLine.ERROR)

    def _on_race_stopped(self) -> None:
        self._disarm_session()
        self._set_status(StatusLine.STOPPED)

    def _on_mode_set(self, mode: RaceMode) -> None:
        self._poller.invalidate_mode()
        self._apply_mode(mode)
        self.reset_race()

    def _on_mode_polled(self, mode: RaceMode) -> None:
        if mode == self.model.mode:
            return
        log.info("Authority reports %s mode; following it", mode.value)
        self._apply_mode(mode)

    def _apply_mode(self, mode: RaceMode) -> None:
        self.model.mode = mode
        self.mode_changed.emit(mode.value, results_title(mode))

    def _on_racers_loaded(self, racers: List[Racer]) -> None:
        self.model.racers = list(racers)
        self.model.cards.sync_roster(self.model.racer_ids())
        self.racers_changed.emit(list(self.model.racers))
        self.cards_changed.emit(self.model.cards.snapshot())

    def _persist_names(self, roster: Sequence[Racer], answers: NameAnswers) -> None:
        changed: List[Racer] = []
        for racer in roster:
            answer = answers.get(racer.id)
            name = answer.strip() if answer else ""
            if name and name != racer.name:
                changed.append(Racer(id=racer.id, name=name))

        if not changed:
            self.load_racers()
            return

        outstanding = len(changed)

        def settle() -> None:
            nonlocal outstanding
            outstanding -= 1
            if outstanding == 0:
                self.load_racers()

        def on_failure(racer: Racer) -> Callable[[RaceTimerError], None]:
            def handler(exc: RaceTimerError) -> None:
                log.warning("Failed to rename racer %s: %s", racer.id, exc)
                settle()
            return handler

        for racer in changed:
            self._client.rename_racer(racer, lambda _value: settle(), on_failure(racer))

    # --- Poll reconciliation ----------------------------------------------
    def _on_results(self, results: Sequence[Result]) -> None:
        self.model.results = tuple(results)
        output = render_results(self.model.results, self.model.mode, self.model.racers)

        cards_touched = False
        for update in output.card_updates:
            cards_touched = self.model.cards.apply(update.racer_id, update.card) or cards_touched
        if cards_touched:
            self.cards_changed.emit(self.model.cards.snapshot())

        self.results_changed.emit(output)
        self._set_connection(True)
        self.model.last_update = self._wall_clock()
        self.last_update_changed.emit(self.model.last_update)

    def _on_poll_failed(self, _msg: str) -> None:
        self._set_connection(False)

    # --- Internal helpers ---------------------------------------------------
    def _disarm_session(self) -> None:
        self.model.session.end()
        self._clock.disarm()
        self.race_active_changed.emit(False)

    def _apply_clean_slate(self) -> None:
        self._disarm_session()
        self.clock_changed.emit(format_time(0))
        self._set_status(StatusLine.IDLE)
        self._clear_results(NO_RESULTS_TEXT)

    def _clear_results(self, placeholder: str) -> None:
        self.model.results = ()
        self.results_changed.emit(placeholder_output(placeholder))
        self.model.cards.reset()
        self.cards_changed.emit(self.model.cards.snapshot())

    def _set_status(self, status: StatusLine) -> None:
        self.model.status = status
        self.status_changed.emit(status.value, self._status_colors[status])

    def _set_connection(self, healthy: bool) -> None:
        if self.model.connected == healthy:
            return
        self.model.connected = healthy
        color = self._cfg.connected_color if healthy else self._cfg.disconnected_color
        self.connection_changed.emit(healthy, color)

    @staticmethod
    def _log_failure(action: str) -> Callable[[RaceTimerError], None]:
        def handler(exc: RaceTimerError) -> None:
            log.warning("Failed to %s: %s", action, exc)
        return handler
