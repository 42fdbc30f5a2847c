from __future__ import annotations
from typing import Optional
from PySide6.QtCore import QObject, QTimer, Signal

from .engine import TimerEngine
from .models import TimerState

TICK_MS = 1_000


class TickScheduler(QObject):
    state_changed = Signal(object)  # TimerState

    def __init__(self, engine: TimerEngine, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.engine = engine
        # one pending shot at a time; every engine change re-arms from scratch
        self.timer = QTimer(self)
        self.timer.setSingleShot(True)
        self.timer.setInterval(TICK_MS)
        self.timer.timeout.connect(self.tick)
        engine.add_listener(self._on_engine_changed)

    def start(self) -> None:
        self.arm()
        self.state_changed.emit(self.engine.state())

    def arm(self) -> None:
        # drop any stale shot before scheduling the next one
        self.timer.stop()
        if self.engine.running and self.engine.seconds_left > 0:
            self.timer.start()

    def is_armed(self) -> bool:
        return self.timer.isActive()

    def tick(self) -> None:
        self.engine.tick()

    def shutdown(self) -> None:
        self.timer.stop()
        self.engine.tasks.flush()

    def _on_engine_changed(self, state: TimerState) -> None:
        self.arm()
        self.state_changed.emit(state)
