"""
main_window.py

Race timer window: command buttons, status line, clock, racer cards, results
table and connection footer. Renders whatever RaceController publishes and
forwards button clicks to it; holds no race state of its own.
"""

import logging
from typing import Dict, List, Optional

from PyQt5 import QtCore, QtGui, QtWidgets

from racetimer.controller.race_controller import RaceController
from racetimer.core.config_store import ConfigModel, get_config_store
from racetimer.core.model import RaceMode, Racer, RacerCard
from racetimer.render.results_renderer import RenderOutput
from racetimer.ui.racer_card import RacerCardWidget
from racetimer.ui.racer_prompt import RacerNamePrompt
from racetimer.ui.results_table import ResultsTable

log = logging.getLogger(__name__)


class RaceTimerWindow(QtWidgets.QMainWindow):
    def __init__(
        self,
        controller: RaceController,
        cfg: Optional[ConfigModel] = None,
        prompt: Optional[RacerNamePrompt] = None,
    ):
        super().__init__()
        self.controller = controller
        self._cfg = cfg or get_config_store().config
        self.prompt = prompt or RacerNamePrompt(self)
        self._cards: Dict[int, RacerCardWidget] = {}

        self.setWindowTitle("Race Timer")
        self._build_ui()
        self._connect_controller()

    # --- Layout -------------------------------------------------------------
    def _build_ui(self) -> None:
        central = QtWidgets.QWidget(self)
        layout = QtWidgets.QVBoxLayout(central)

        controls = QtWidgets.QHBoxLayout()
        self.btnStart = QtWidgets.QPushButton("Start")
        self.btnStop = QtWidgets.QPushButton("Stop")
        self.btnReset = QtWidgets.QPushButton("Reset")
        self.btnModeRace = QtWidgets.QPushButton("Race")
        self.btnModeLap = QtWidgets.QPushButton("Lap Timer")
        self.btnEditRacers = QtWidgets.QPushButton("Edit Racers")
        for btn in (self.btnModeRace, self.btnModeLap):
            btn.setCheckable(True)
            btn.setAutoExclusive(False)
        self.btnStop.setEnabled(False)
        for btn in (
            self.btnStart, self.btnStop, self.btnReset,
            self.btnModeRace, self.btnModeLap, self.btnEditRacers,
        ):
            controls.addWidget(btn)
        layout.addLayout(controls)

        self.statusLabel = QtWidgets.QLabel("IDLE")
        self.statusLabel.setAlignment(QtCore.Qt.AlignCenter)
        layout.addWidget(self.statusLabel)

        self.timerLabel = QtWidgets.QLabel("00:00.000")
        self.timerLabel.setAlignment(QtCore.Qt.AlignCenter)
        clock_font = QtGui.QFont(self._cfg.font_family)
        clock_font.setPointSize(self._cfg.clock_font_size)
        self.timerLabel.setFont(clock_font)
        layout.addWidget(self.timerLabel)

        self.cardsLayout = QtWidgets.QHBoxLayout()
        layout.addLayout(self.cardsLayout)

        self.resultsTitle = QtWidgets.QLabel("Race Results")
        layout.addWidget(self.resultsTitle)
        self.resultsTable = ResultsTable(self._cfg)
        layout.addWidget(self.resultsTable, 1)

        footer = QtWidgets.QHBoxLayout()
        self.connectionLabel = QtWidgets.QLabel("●")
        self.lastUpdateLabel = QtWidgets.QLabel("")
        footer.addWidget(QtWidgets.QLabel("Connection:"))
        footer.addWidget(self.connectionLabel)
        footer.addStretch(1)
        footer.addWidget(QtWidgets.QLabel("Last update:"))
        footer.addWidget(self.lastUpdateLabel)
        layout.addLayout(footer)

        self.setCentralWidget(central)

    def _connect_controller(self) -> None:
        c = self.controller
        self.btnStart.clicked.connect(c.start_race)
        self.btnStop.clicked.connect(lambda: c.stop_race())
        self.btnReset.clicked.connect(c.reset_race)
        self.btnModeRace.clicked.connect(lambda: self._on_mode_clicked(RaceMode.RACE))
        self.btnModeLap.clicked.connect(lambda: self._on_mode_clicked(RaceMode.LAP))
        self.btnEditRacers.clicked.connect(lambda: c.edit_racers(self.prompt))

        c.status_changed.connect(self.set_status)
        c.clock_changed.connect(self.timerLabel.setText)
        c.results_changed.connect(self.show_results)
        c.cards_changed.connect(self.show_cards)
        c.racers_changed.connect(self.show_racers)
        c.mode_changed.connect(self.show_mode)
        c.race_active_changed.connect(self.set_race_active)
        c.connection_changed.connect(self.set_connection)
        c.last_update_changed.connect(self.lastUpdateLabel.setText)

    # --- Slots --------------------------------------------------------------
    def _on_mode_clicked(self, mode: RaceMode) -> None:
        # button check state follows the authority, not the click
        self.show_mode(self.controller.model.mode.value, self.resultsTitle.text())
        self.controller.set_mode(mode)

    def set_status(self, text: str, color: str) -> None:
        self.statusLabel.setText(text)
        self.statusLabel.setStyleSheet(f"color: {color}; font-weight: bold;")

    def show_results(self, output: RenderOutput) -> None:
        self.resultsTable.apply(output)

    def show_mode(self, mode: str, title: str) -> None:
        self.btnModeRace.setChecked(mode == RaceMode.RACE.value)
        self.btnModeLap.setChecked(mode == RaceMode.LAP.value)
        self.resultsTitle.setText(title)

    def set_race_active(self, active: bool) -> None:
        self.btnStart.setEnabled(not active)
        self.btnStop.setEnabled(active)

    def set_connection(self, healthy: bool, color: str) -> None:
        self.connectionLabel.setStyleSheet(f"color: {color};")
        self.connectionLabel.setToolTip("Connected" if healthy else "Disconnected")

    def show_racers(self, racers: List[Racer]) -> None:
        wanted = [r.id for r in racers]
        for racer_id in list(self._cards):
            if racer_id not in wanted:
                widget = self._cards.pop(racer_id)
                self.cardsLayout.removeWidget(widget)
                widget.deleteLater()
        for racer in racers:
            widget = self._cards.get(racer.id)
            if widget is None:
                widget = RacerCardWidget(racer.id, racer.name, self._cfg)
                self._cards[racer.id] = widget
                self.cardsLayout.addWidget(widget)
            else:
                widget.set_name(racer.name)

    def show_cards(self, cards: Dict[int, RacerCard]) -> None:
        for racer_id, card in cards.items():
            widget = self._cards.get(racer_id)
            if widget is not None:
                widget.set_card(card)

    def card_widget(self, racer_id: int) -> Optional[RacerCardWidget]:
        return self._cards.get(racer_id)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:
        log.info("Race timer window closing")
        self.controller.shutdown()
        super().closeEvent(event)
