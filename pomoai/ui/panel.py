from __future__ import annotations
import logging
from typing import Callable, Optional

from PySide6.QtCore import Qt, QTimer
from PySide6.QtGui import QFont
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QListWidget, QListWidgetItem,
    QMessageBox, QMenu
)

from ..assistant import ReflectionChat
from ..engine import TimerEngine
from ..models import ActionRejected, Task, TimerState
from ..resources import PHASE_COLORS, PHASE_LABELS, format_seconds
from ..scheduler import TickScheduler
from .chat import ChatDialog
from .settings import SettingsDialog
from .task_editor import TaskEditor

logger = logging.getLogger(__name__)

NOTICE_MS = 4_000


class TimerPanel(QDialog):
    def __init__(self, engine: TimerEngine, scheduler: TickScheduler, chat: ReflectionChat, parent=None):
        super().__init__(parent)
        self.engine = engine
        self.tasks = engine.tasks
        self.chat = chat
        self.setWindowTitle("PomoAI")
        self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)
        self.setMinimumWidth(460)
        self.setAttribute(Qt.WA_DeleteOnClose, False)

        self._chat_dialog: Optional[ChatDialog] = None
        self._notice_timer = QTimer(self)
        self._notice_timer.setSingleShot(True)
        self._notice_timer.timeout.connect(lambda: self.notice.setText(""))

        self.layout = QVBoxLayout(self)

        # --- Timer ---
        self.current_label = QLabel("No task selected")
        self.current_label.setAlignment(Qt.AlignCenter)
        self.layout.addWidget(self.current_label)

        self.phase_label = QLabel("")
        self.phase_label.setAlignment(Qt.AlignCenter)
        self.layout.addWidget(self.phase_label)

        self.time_label = QLabel("25:00")
        font = QFont()
        font.setPointSize(40)
        font.setStyleHint(QFont.Monospace)
        self.time_label.setFont(font)
        self.time_label.setAlignment(Qt.AlignCenter)
        self.layout.addWidget(self.time_label)

        timer_row = QHBoxLayout()
        self.btn_toggle = QPushButton("Start")
        self.btn_toggle.clicked.connect(self.toggle)
        timer_row.addWidget(self.btn_toggle)

        self.btn_reset = QPushButton("Reset")
        self.btn_reset.clicked.connect(self.reset)
        timer_row.addWidget(self.btn_reset)

        self.btn_skip = QPushButton("Skip break")
        self.btn_skip.clicked.connect(self.skip_break)
        timer_row.addWidget(self.btn_skip)
        self.layout.addLayout(timer_row)

        # --- Tasks ---
        self.list = QListWidget()
        self.list.itemDoubleClicked.connect(lambda it: self._select(str(it.data(Qt.UserRole))))
        self.list.setContextMenuPolicy(Qt.CustomContextMenu)
        self.list.customContextMenuRequested.connect(self._show_task_menu_at)
        self.layout.addWidget(self.list)

        manage_row = QHBoxLayout()
        self.btn_add_task = QPushButton("Add task…")
        self.btn_add_task.clicked.connect(self.add_task)
        manage_row.addWidget(self.btn_add_task)

        self.btn_select = QPushButton("Work on it")
        self.btn_select.clicked.connect(self.select_task)
        manage_row.addWidget(self.btn_select)

        self.btn_complete = QPushButton("Done")
        self.btn_complete.clicked.connect(self.complete_task)
        manage_row.addWidget(self.btn_complete)

        self.btn_delete_task = QPushButton("Delete")
        self.btn_delete_task.clicked.connect(self.delete_task)
        manage_row.addWidget(self.btn_delete_task)
        self.layout.addLayout(manage_row)

        extra_row = QHBoxLayout()
        self.btn_settings = QPushButton("Settings…")
        self.btn_settings.clicked.connect(self.open_settings)
        extra_row.addWidget(self.btn_settings)

        self.btn_coach = QPushButton("Coach…")
        self.btn_coach.clicked.connect(self.open_coach)
        extra_row.addWidget(self.btn_coach)
        self.layout.addLayout(extra_row)

        self.notice = QLabel("")
        self.notice.setStyleSheet("""
            QLabel {
                color: #ea580c;
                font-size: 11px;
                padding-top: 6px;
            }
        """)
        self.notice.setAlignment(Qt.AlignCenter)
        self.layout.addWidget(self.notice)

        scheduler.state_changed.connect(self.on_state)
        self.refresh()

    def selected_task_id(self) -> Optional[str]:
        item = self.list.currentItem()
        if not item:
            return None
        return str(item.data(Qt.UserRole))

    # -------- display ----------
    def on_state(self, state: TimerState) -> None:
        self.refresh()

    def refresh(self) -> None:
        state = self.engine.state()
        current = self.engine.current_task

        self.current_label.setText(current.name if current else "No task selected")
        self.phase_label.setText(PHASE_LABELS[state.phase])
        self.phase_label.setStyleSheet(f"QLabel {{ color: {PHASE_COLORS[state.phase]}; font-weight: bold; }}")
        self.time_label.setText(format_seconds(state.seconds_left))
        self.btn_toggle.setText("Pause" if state.running else "Start")
        self.btn_toggle.setEnabled(current is not None)
        self.btn_skip.setEnabled(state.phase.is_break)

        self._refresh_list(state)

    def _refresh_list(self, state: TimerState) -> None:
        selected_id = self.selected_task_id()

        self.list.blockSignals(True)
        try:
            self.list.clear()
            selected_row = None
            for idx, t in enumerate(self.tasks.list_tasks()):
                it = QListWidgetItem(_task_text(t, t.id == state.current_task_id))
                it.setData(Qt.UserRole, t.id)
                self.list.addItem(it)
                if t.id == selected_id:
                    selected_row = idx
            if selected_row is not None:
                self.list.setCurrentRow(selected_row)
        finally:
            self.list.blockSignals(False)

    def show_notice(self, text: str) -> None:
        self.notice.setText(text)
        self._notice_timer.start(NOTICE_MS)

    def _attempt(self, action: Callable[[], object]) -> None:
        try:
            action()
        except ActionRejected as e:
            logger.warning("Rejected: %s", e)
            self.show_notice(str(e))
        self.refresh()

    # -------- timer actions ----------
    def toggle(self) -> None:
        self._attempt(self.engine.toggle)

    def reset(self) -> None:
        self._attempt(self.engine.reset)

    def skip_break(self) -> None:
        self._attempt(self.engine.skip_break)

    # -------- task actions ----------
    def _require_selection(self) -> Optional[str]:
        tid = self.selected_task_id()
        if tid is None:
            QMessageBox.information(self, "No selection", "Select a task first.")
        return tid

    def _select(self, task_id: str) -> None:
        self._attempt(lambda: self.engine.select_task(task_id))

    def select_task(self) -> None:
        tid = self._require_selection()
        if tid is not None:
            self._select(tid)

    def _complete(self, task_id: str) -> None:
        task = self.tasks.toggle_complete(task_id)
        self.refresh()
        if task.completed:
            self._open_chat(lambda: self.chat.start_completed(task))

    def complete_task(self) -> None:
        tid = self._require_selection()
        if tid is not None:
            self._complete(tid)

    def _delete(self, task_id: str) -> None:
        confirm = QMessageBox.question(self, "Delete task", "Delete the selected task?")
        if confirm == QMessageBox.StandardButton.Yes:
            self._attempt(lambda: self.tasks.remove(task_id))

    def delete_task(self) -> None:
        tid = self._require_selection()
        if tid is not None:
            self._delete(tid)

    def add_task(self) -> None:
        dlg = TaskEditor(self.tasks, task_id=None, parent=self)
        if dlg.exec():
            self.refresh()

    def edit_task(self, task_id: str) -> None:
        dlg = TaskEditor(self.tasks, task_id=task_id, parent=self)
        if dlg.exec():
            self.refresh()

    def _show_task_menu_at(self, pos) -> None:
        item = self.list.itemAt(pos)
        if item is None:
            return

        # Ensure the right-clicked item becomes selected
        self.list.setCurrentItem(item)
        tid = str(item.data(Qt.UserRole))
        t = self.tasks.get(tid)

        menu = QMenu(self)
        label = "Stop working on it" if tid == self.tasks.current_id else "Work on it"
        menu.addAction(label).triggered.connect(lambda: self._select(tid))
        menu.addAction("Edit estimate…").triggered.connect(lambda: self.edit_task(tid))
        menu.addSeparator()
        menu.addAction("Reopen" if t.completed else "Mark as done").triggered.connect(lambda: self._complete(tid))
        menu.addAction("Delete").triggered.connect(lambda: self._delete(tid))
        menu.exec(self.list.mapToGlobal(pos))

    # -------- dialogs ----------
    def open_settings(self) -> None:
        dlg = SettingsDialog(self.engine, parent=self)
        if dlg.exec():
            self.refresh()

    def open_coach(self) -> None:
        self._open_chat(lambda: self.chat.start_general(self.engine.current_task))

    def _open_chat(self, start) -> None:
        if self._chat_dialog is None:
            self._chat_dialog = ChatDialog(self.chat, parent=self)
        if self._chat_dialog.is_busy():
            self.show_notice("The coach is still answering.")
            return
        self._chat_dialog.begin(start())
        self._chat_dialog.show()
        self._chat_dialog.raise_()

    def closeEvent(self, event):
        event.ignore()
        self.hide()

    def showEvent(self, event) -> None:
        super().showEvent(event)
        self.refresh()  # immediate refresh on open


def _task_text(t: Task, current: bool) -> str:
    marks = "▶ " if current else ""
    if t.completed:
        marks += "✓ "
    estimate = f"/{t.estimated_pomos}" if t.estimated_pomos is not None else ""
    return f"{marks}{t.name} — {t.pomodoros}{estimate} pomodoros"
