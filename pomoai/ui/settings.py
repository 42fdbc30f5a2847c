from __future__ import annotations
from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QLabel, QCheckBox, QHBoxLayout, QPushButton, QSpinBox, QSlider
)
from ..engine import TimerEngine
from ..models import Settings


class SettingsDialog(QDialog):
    def __init__(self, engine: TimerEngine, parent=None):
        super().__init__(parent)
        self.engine = engine
        self.setWindowTitle("Timer Settings")
        self.setMinimumWidth(360)

        s = engine.settings
        layout = QVBoxLayout(self)

        self.work = self._minutes_box(layout, "Pomodoro (work) duration (minutes)", s.work, 999)
        self.short_break = self._minutes_box(layout, "Short break duration (minutes)", s.short_break, 99)
        self.long_break = self._minutes_box(layout, "Long break duration (minutes)", s.long_break, 99)
        self.long_break_interval = self._minutes_box(
            layout, "Long break after how many work sessions?", s.long_break_interval, 99
        )

        self.sound_enabled = QCheckBox("Play sound when a phase ends")
        self.sound_enabled.setChecked(s.sound_enabled)
        layout.addWidget(self.sound_enabled)

        layout.addWidget(QLabel("Volume"))
        self.volume = QSlider(Qt.Horizontal)
        self.volume.setRange(0, 100)
        self.volume.setValue(round(s.sound_volume * 100))
        layout.addWidget(self.volume)

        note = QLabel("Duration changes apply to every task that hasn't completed a pomodoro yet.")
        note.setWordWrap(True)
        layout.addWidget(note)

        self.warning = QLabel("")
        self.warning.setStyleSheet("QLabel { color: #ef4444; }")
        layout.addWidget(self.warning)

        btns = QHBoxLayout()
        save = QPushButton("Save")
        save.clicked.connect(self.save)
        btns.addWidget(save)

        cancel = QPushButton("Cancel")
        cancel.clicked.connect(self.reject)
        btns.addWidget(cancel)

        layout.addLayout(btns)

    def _minutes_box(self, layout: QVBoxLayout, label: str, value: int, maximum: int) -> QSpinBox:
        layout.addWidget(QLabel(label))
        box = QSpinBox()
        box.setRange(1, maximum)
        box.setValue(value)
        layout.addWidget(box)
        return box

    def save(self) -> None:
        if self.engine.running:
            self.warning.setText("Pause the timer to save settings.")
            return

        self.engine.apply_settings(
            Settings(
                work=int(self.work.value()),
                short_break=int(self.short_break.value()),
                long_break=int(self.long_break.value()),
                long_break_interval=int(self.long_break_interval.value()),
                sound_enabled=self.sound_enabled.isChecked(),
                sound_volume=self.volume.value() / 100,
            )
        )
        self.accept()
