"""
racer_prompt.py

Non-blocking rename prompt. Asks for each racer's name in turn through a
window-modal QInputDialog opened with ``open()``, so the event loop (and with
it the clock and the poller) keeps running while the operator types.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Sequence

from PyQt5 import QtCore, QtWidgets

from racetimer.core.model import Racer

log = logging.getLogger(__name__)


class RacerNamePrompt(QtCore.QObject):
    """Collects ``{racer_id: new name or None}`` and hands it to a callback once."""

    def __init__(self, parent_widget: Optional[QtWidgets.QWidget] = None):
        super().__init__(parent_widget)
        self._parent_widget = parent_widget
        self._queue: List[Racer] = []
        self._answers: Dict[int, Optional[str]] = {}
        self._on_complete: Optional[Callable[[Dict[int, Optional[str]]], None]] = None
        self._dialog: Optional[QtWidgets.QInputDialog] = None

    @property
    def busy(self) -> bool:
        return self._on_complete is not None

    def request(
        self,
        racers: Sequence[Racer],
        on_complete: Callable[[Dict[int, Optional[str]]], None],
    ) -> None:
        if self.busy:
            log.info("Rename prompt already open; ignoring request")
            return
        self._queue = list(racers)
        self._answers = {}
        self._on_complete = on_complete
        self._ask_next()

    def _ask_next(self) -> None:
        if not self._queue:
            self._finish()
            return

        racer = self._queue[0]
        dialog = QtWidgets.QInputDialog(self._parent_widget)
        dialog.setWindowTitle("Edit Racers")
        dialog.setLabelText(f"Enter name for Racer {racer.id}:")
        dialog.setTextValue(racer.name)
        dialog.setAttribute(QtCore.Qt.WA_DeleteOnClose, True)
        dialog.finished.connect(self._on_dialog_finished)
        self._dialog = dialog
        dialog.open()

    def _on_dialog_finished(self, result: int) -> None:
        dialog, self._dialog = self._dialog, None
        racer = self._queue.pop(0)
        if result == QtWidgets.QDialog.Accepted and dialog is not None:
            self._answers[racer.id] = dialog.textValue() or None
        else:
            self._answers[racer.id] = None
        self._ask_next()

    def _finish(self) -> None:
        on_complete, self._on_complete = self._on_complete, None
        answers, self._answers = self._answers, {}
        if on_complete is not None:
            on_complete(answers)
