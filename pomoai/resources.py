from __future__ import annotations
from PySide6.QtCore import Qt
from PySide6.QtGui import QColor, QIcon, QPainter, QPixmap

from .models import Phase

PHASE_COLORS = {
    Phase.WORK: "#ef4444",
    Phase.SHORT_BREAK: "#3b82f6",
    Phase.LONG_BREAK: "#a855f7",
}

PHASE_LABELS = {
    Phase.WORK: "Focus",
    Phase.SHORT_BREAK: "Short break",
    Phase.LONG_BREAK: "Long break",
}


def phase_icon(phase: Phase, size: int = 64) -> QIcon:
    pm = QPixmap(size, size)
    pm.fill(Qt.transparent)
    p = QPainter(pm)
    try:
        p.setRenderHint(QPainter.Antialiasing)
        p.setBrush(QColor(PHASE_COLORS[phase]))
        p.setPen(Qt.NoPen)
        p.drawEllipse(4, 4, size - 8, size - 8)
    finally:
        p.end()
    return QIcon(pm)


def format_seconds(seconds: int) -> str:
    return f"{seconds // 60:02d}:{seconds % 60:02d}"
