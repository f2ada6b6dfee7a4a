"""
clock.py

LocalClock is the cosmetic race clock. While armed it ticks on a QTimer and
emits the formatted elapsed time since the recorded start instant. It is never
a source of truth for results.
"""

import time
from typing import Callable, Optional

from PyQt5 import QtCore

from racetimer.core.time_format import format_time


def monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class LocalClock(QtCore.QObject):
    """
    Usage:
      - clock = LocalClock(tick_ms=10)
      - clock.ticked.connect(label.setText)
      - clock.arm(clock.now_ms()) on race start, clock.disarm() on any exit
    """
    ticked = QtCore.pyqtSignal(str)

    def __init__(
        self,
        tick_ms: int = 10,
        now_ms: Callable[[], int] = monotonic_ms,
        parent: Optional[QtCore.QObject] = None,
    ):
        super().__init__(parent)
        self._now_ms = now_ms
        self._start_ms: Optional[int] = None
        self._timer = QtCore.QTimer(self)
        self._timer.setTimerType(QtCore.Qt.PreciseTimer)
        self._timer.setInterval(max(1, int(tick_ms)))
        self._timer.timeout.connect(self._on_tick)

    def now_ms(self) -> int:
        return self._now_ms()

    @property
    def armed(self) -> bool:
        return self._start_ms is not None

    def set_tick_interval(self, ms: int) -> None:
        self._timer.setInterval(max(1, int(ms)))

    def arm(self, start_ms: int) -> None:
        self._start_ms = start_ms
        self._timer.start()

    def disarm(self) -> None:
        self._timer.stop()
        self._start_ms = None

    def elapsed_ms(self) -> int:
        if self._start_ms is None:
            return 0
        return self._now_ms() - self._start_ms

    def _on_tick(self) -> None:
        if self._start_ms is None:
            return
        self.ticked.emit(format_time(self.elapsed_ms()))
