from __future__ import annotations
import logging
import os
import sys
import signal

from PySide6.QtWidgets import QApplication, QSystemTrayIcon, QMenu
from PySide6.QtGui import QAction, QCursor
from PySide6.QtCore import QTimer

from .assistant import ReflectionAssistant, ReflectionChat
from .db import connect, migrate
from .engine import TimerEngine
from .models import Phase, TimerState
from .notifications import Notifier
from .repository import Repository
from .resources import PHASE_LABELS, format_seconds, phase_icon
from .scheduler import TickScheduler
from .tasks import TaskStore
from .ui.panel import TimerPanel
from .ui.settings import SettingsDialog

logger = logging.getLogger(__name__)


def setup_logging() -> None:
    level = os.environ.get("POMOAI_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main() -> int:
    setup_logging()

    app = QApplication(sys.argv)
    app.setWindowIcon(phase_icon(Phase.WORK))
    app.setQuitOnLastWindowClosed(False)

    # --- Dev convenience: allow Ctrl-C to quit without ugly tracebacks ---
    # Qt's event loop eats SIGINT unless we pump it. This makes Ctrl-C behave.
    signal.signal(signal.SIGINT, signal.SIG_DFL)
    _sig_timer = QTimer()
    _sig_timer.start(250)
    _sig_timer.timeout.connect(lambda: None)

    conn = connect()
    migrate(conn)
    repo = Repository(conn)

    tray = QSystemTrayIcon()
    tray.setIcon(phase_icon(Phase.WORK))
    tray.setToolTip("PomoAI")
    notifier = Notifier(tray)

    settings = repo.get_settings()
    tasks = TaskStore(repo, work_seconds=settings.duration_seconds(Phase.WORK))
    engine = TimerEngine(repo, tasks, notify=notifier.play)
    scheduler = TickScheduler(engine)
    chat = ReflectionChat(repo, ReflectionAssistant())

    panel = TimerPanel(engine, scheduler, chat)

    tray.messageClicked.connect(lambda: _show_panel(panel))
    scheduler.state_changed.connect(lambda state: _update_tray(tray, state))

    menu = QMenu()

    act_open = QAction("Open")
    act_open.triggered.connect(lambda: _show_panel(panel))
    menu.addAction(act_open)

    act_toggle = QAction("Start / Pause")
    act_toggle.triggered.connect(panel.toggle)
    menu.addAction(act_toggle)

    menu.addSeparator()

    act_settings = QAction("Settings…")
    act_settings.triggered.connect(lambda: _open_settings(engine, panel))
    menu.addAction(act_settings)

    menu.addSeparator()

    def quit_cleanly():
        # Pending remaining-time writes go out before the loop stops.
        scheduler.shutdown()
        tray.hide()
        panel.close()
        app.quit()

    act_quit = QAction("Quit")
    act_quit.triggered.connect(quit_cleanly)
    menu.addAction(act_quit)

    tray.setContextMenu(menu)

    if sys.platform.startswith("win"):
        def _show_menu_on_left_click(reason: QSystemTrayIcon.ActivationReason):
            if reason == QSystemTrayIcon.ActivationReason.Trigger:
                cm = tray.contextMenu()
                if cm is not None:
                    cm.popup(QCursor.pos())

        tray.activated.connect(_show_menu_on_left_click)
    else:
        tray.activated.connect(lambda reason: _tray_click(reason, panel))

    app.aboutToQuit.connect(scheduler.shutdown)
    scheduler.start()

    tray.show()
    _show_panel(panel)
    logger.info("PomoAI started (%d tasks)", len(tasks.list_tasks()))
    return app.exec()


def _tray_click(reason: QSystemTrayIcon.ActivationReason, panel: TimerPanel) -> None:
    # Left-click on tray icon (macOS/Linux)
    if reason in (
        QSystemTrayIcon.ActivationReason.Trigger,
        QSystemTrayIcon.ActivationReason.DoubleClick,
        QSystemTrayIcon.ActivationReason.MiddleClick,
    ):
        _show_panel(panel)


def _show_panel(panel: TimerPanel) -> None:
    panel.refresh()
    panel.show()
    panel.raise_()
    panel.activateWindow()


def _update_tray(tray: QSystemTrayIcon, state: TimerState) -> None:
    tray.setIcon(phase_icon(state.phase))
    suffix = "" if state.running else " (paused)"
    tray.setToolTip(f"PomoAI — {PHASE_LABELS[state.phase]} {format_seconds(state.seconds_left)}{suffix}")


def _open_settings(engine: TimerEngine, panel: TimerPanel) -> None:
    dlg = SettingsDialog(engine, parent=panel)
    if dlg.exec():
        panel.refresh()


if __name__ == "__main__":
    sys.exit(main())
