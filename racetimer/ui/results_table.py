"""
results_table.py

Pure UI container: a three-column table showing a RenderOutput.
No race-specific logic.
"""

from typing import Optional

from PyQt5 import QtCore, QtGui, QtWidgets

from racetimer.core.config_store import ConfigModel
from racetimer.render.results_renderer import RenderOutput

HEADERS = ["Pos", "Racer", "Time"]


class ResultsTable(QtWidgets.QTableWidget):
    def __init__(self, cfg: ConfigModel, parent: Optional[QtWidgets.QWidget] = None):
        super().__init__(0, len(HEADERS), parent)
        self._configure(cfg)

    def _configure(self, cfg: ConfigModel) -> None:
        f = QtGui.QFont(cfg.font_family)
        f.setPointSize(cfg.font_size)
        self.setFont(f)
        self.horizontalHeader().setFont(f)

        self.setHorizontalHeaderLabels(HEADERS)
        header = self.horizontalHeader()
        header.setSectionResizeMode(0, QtWidgets.QHeaderView.ResizeToContents)
        header.setSectionResizeMode(1, QtWidgets.QHeaderView.Stretch)
        header.setSectionResizeMode(2, QtWidgets.QHeaderView.ResizeToContents)
        self.setShowGrid(False)
        self.verticalHeader().setVisible(False)
        self.setSelectionMode(QtWidgets.QAbstractItemView.NoSelection)
        self.setEditTriggers(QtWidgets.QAbstractItemView.NoEditTriggers)
        self.setWordWrap(True)

    def _item(self, text: str, tooltip: str = "") -> QtWidgets.QTableWidgetItem:
        item = QtWidgets.QTableWidgetItem(text)
        if tooltip:
            item.setToolTip(tooltip)
        return item

    def apply(self, output: RenderOutput) -> None:
        self.clearSpans()
        if output.placeholder is not None:
            self.setRowCount(1)
            placeholder = self._item(output.placeholder)
            placeholder.setTextAlignment(QtCore.Qt.AlignCenter)
            self.setItem(0, 0, placeholder)
            self.setSpan(0, 0, 1, len(HEADERS))
            return

        self.setRowCount(len(output.rows))
        for row, result in enumerate(output.rows):
            position = self._item(result.position)
            position.setTextAlignment(QtCore.Qt.AlignCenter)
            self.setItem(row, 0, position)
            self.setItem(row, 1, self._item(result.name))
            time_text = result.time if not result.detail else f"{result.time}\n{result.detail}"
            self.setItem(row, 2, self._item(time_text))
        self.resizeRowsToContents()

    def cell_text(self, row: int, col: int) -> str:
        item = self.item(row, col)
        return item.text() if item is not None else ""
