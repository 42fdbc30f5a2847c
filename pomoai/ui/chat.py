from __future__ import annotations
from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal
from PySide6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QLabel, QLineEdit, QPushButton, QTextEdit
)

from ..assistant import AssistantReply, PendingRequest, ReflectionAssistant, ReflectionChat
from ..models import ChatMessage


class _ReplySignals(QObject):
    done = Signal(object, object)  # PendingRequest, AssistantReply


class _ReplyJob(QRunnable):
    # Only the HTTP call runs off the GUI thread; storage stays on it.
    def __init__(self, assistant: ReflectionAssistant, pending: PendingRequest, signals: _ReplySignals):
        super().__init__()
        self.assistant = assistant
        self.pending = pending
        self.signals = signals

    def run(self) -> None:
        reply = self.assistant.send(self.pending.message, self.pending.history)
        self.signals.done.emit(self.pending, reply)


class ChatDialog(QDialog):
    def __init__(self, chat: ReflectionChat, parent=None):
        super().__init__(parent)
        self.chat = chat
        self.setWindowTitle("PomoAI - Your Productivity Coach")
        self.setMinimumSize(520, 420)

        self._signals = _ReplySignals(self)
        self._signals.done.connect(self._on_reply)
        self._busy = False

        layout = QVBoxLayout(self)
        layout.addWidget(QLabel("Reflect on your work"))

        self.transcript = QTextEdit()
        self.transcript.setReadOnly(True)
        layout.addWidget(self.transcript)

        row = QHBoxLayout()
        self.input = QLineEdit()
        self.input.setPlaceholderText("Type your message...")
        self.input.returnPressed.connect(self.send)
        row.addWidget(self.input)

        self.btn_send = QPushButton("Send")
        self.btn_send.clicked.connect(self.send)
        row.addWidget(self.btn_send)
        layout.addLayout(row)

        self._render()

    def is_busy(self) -> bool:
        return self._busy

    def begin(self, pending: PendingRequest) -> None:
        self._render()
        self._dispatch(pending)

    def send(self) -> None:
        if self._busy:
            return
        pending = self.chat.start_ask(self.input.text())
        if pending is None:
            return
        self.input.clear()
        self._render()
        self._dispatch(pending)

    def _dispatch(self, pending: PendingRequest) -> None:
        self._set_busy(True)
        QThreadPool.globalInstance().start(_ReplyJob(self.chat.assistant, pending, self._signals))

    def _on_reply(self, pending: PendingRequest, reply: AssistantReply) -> None:
        self.chat.finish(pending, reply)
        self._set_busy(False)
        self._render()

    def _set_busy(self, busy: bool) -> None:
        self._busy = busy
        self.btn_send.setEnabled(not busy)
        self.btn_send.setText("..." if busy else "Send")

    def _render(self) -> None:
        self.transcript.setPlainText("\n\n".join(_line(m) for m in self.chat.messages))
        bar = self.transcript.verticalScrollBar()
        bar.setValue(bar.maximum())


def _line(m: ChatMessage) -> str:
    who = "You" if m.role == "user" else "Coach"
    return f"{who}: {m.content}"
