from __future__ import annotations
from typing import Optional
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QLabel, QLineEdit, QPushButton, QCheckBox, QSpinBox
)

from ..models import ActionRejected
from ..tasks import TaskStore


class TaskEditor(QDialog):
    """Add a task, or change the estimate of an existing one."""

    def __init__(self, tasks: TaskStore, task_id: Optional[str] = None, parent=None):
        super().__init__(parent)
        self.tasks = tasks
        self.task_id = task_id
        self.setWindowTitle("Edit Task" if task_id else "Add Task")
        self.setMinimumWidth(380)

        layout = QVBoxLayout(self)

        self.name = QLineEdit()
        self.name.setPlaceholderText("Enter a task...")
        layout.addWidget(QLabel("Task"))
        layout.addWidget(self.name)

        self.has_estimate = QCheckBox("Estimate pomodoros")
        self.has_estimate.toggled.connect(self._toggle_fields)
        layout.addWidget(self.has_estimate)

        self.estimate = QSpinBox()
        self.estimate.setRange(0, 99)
        self.estimate.setValue(1)
        layout.addWidget(self.estimate)

        self.error = QLabel("")
        self.error.setStyleSheet("QLabel { color: #ef4444; }")
        layout.addWidget(self.error)

        btns = QHBoxLayout()
        self.btn_cancel = QPushButton("Cancel")
        self.btn_cancel.clicked.connect(self.reject)
        btns.addWidget(self.btn_cancel)

        self.btn_save = QPushButton("Save")
        self.btn_save.clicked.connect(self.save)
        btns.addWidget(self.btn_save)
        layout.addLayout(btns)

        if task_id is not None:
            self._load(task_id)

        self._toggle_fields()

    def _toggle_fields(self) -> None:
        self.estimate.setEnabled(self.has_estimate.isChecked())

    def _load(self, task_id: str) -> None:
        t = self.tasks.get(task_id)
        self.name.setText(t.name)
        self.name.setReadOnly(True)
        if t.estimated_pomos is not None:
            self.has_estimate.setChecked(True)
            self.estimate.setValue(t.estimated_pomos)

    def save(self) -> None:
        estimate = int(self.estimate.value()) if self.has_estimate.isChecked() else None
        try:
            if self.task_id is None:
                self.tasks.add(self.name.text(), estimate)
            else:
                self.tasks.update_estimate(self.task_id, estimate)
        except ActionRejected as e:
            self.error.setText(str(e))
            return
        self.accept()
