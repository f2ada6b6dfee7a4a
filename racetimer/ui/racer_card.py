"""Per-racer status card: name on top, waiting/racing/finished label below."""

from typing import Optional

from PyQt5 import QtCore, QtWidgets

from racetimer.core.config_store import ConfigModel
from racetimer.core.model import CardState, RacerCard, WAITING_CARD


class RacerCardWidget(QtWidgets.QFrame):
    def __init__(self, racer_id: int, name: str, cfg: ConfigModel, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent)
        self.racer_id = racer_id
        self._cfg = cfg
        self.setFrameShape(QtWidgets.QFrame.StyledPanel)
        self.setObjectName(f"racerCard{racer_id}")

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(8, 6, 8, 6)
        self.name_label = QtWidgets.QLabel(name)
        self.name_label.setAlignment(QtCore.Qt.AlignCenter)
        self.status_label = QtWidgets.QLabel()
        self.status_label.setAlignment(QtCore.Qt.AlignCenter)
        layout.addWidget(self.name_label)
        layout.addWidget(self.status_label)

        self._card = WAITING_CARD
        self.set_card(WAITING_CARD)

    @property
    def card(self) -> RacerCard:
        return self._card

    def set_name(self, name: str) -> None:
        self.name_label.setText(name)

    def set_card(self, card: RacerCard) -> None:
        self._card = card
        self.status_label.setText(card.label)
        if card.state == CardState.FINISHED:
            border = self._cfg.finished_card_color
        elif card.state == CardState.ACTIVE:
            border = self._cfg.active_card_color
        else:
            border = "transparent"
        self.setStyleSheet(f"#{self.objectName()} {{ border: 2px solid {border}; }}")
