from __future__ import annotations
import logging
from typing import Callable, List, Optional

from .models import Phase, Cue, Settings, Task, BreakResume, TimerState
from .repository import Repository
from .tasks import TaskStore

logger = logging.getLogger(__name__)

StateListener = Callable[[TimerState], None]
CuePlayer = Callable[[Cue, float], None]


class TimerEngine:
    """
    Single source of truth for the countdown:
    - phase / seconds left / running
    - work -> short/long break -> work transitions
    - session counter and per-task pomodoro bookkeeping

    The engine never schedules anything itself. Something else calls `tick()`
    once per elapsed second while `running` (see scheduler.TickScheduler) and
    listens for changes to re-arm.
    """

    def __init__(self, repo: Repository, tasks: TaskStore, notify: Optional[CuePlayer] = None):
        self.repo = repo
        self.tasks = tasks
        self.notify = notify
        self.settings: Settings = repo.get_settings()
        self.sessions: int = repo.get_completed_work_sessions()

        self.phase = Phase.WORK
        self.seconds_left = self.settings.duration_seconds(Phase.WORK)
        self.running = False

        self._listeners: List[StateListener] = []
        self._restore()
        tasks.add_selection_listener(self._on_selection_changed)

    def _restore(self) -> None:
        resume = self.repo.get_break_resume()
        if resume is not None and self.tasks.current is None:
            logger.warning("Dropping stored %s: no task is selected", resume.mode.value)
            self.repo.clear_break_resume()
            resume = None
        if resume is not None:
            # restored breaks always come back paused
            self.phase = resume.mode
            self.seconds_left = min(resume.seconds_left, self.settings.duration_seconds(resume.mode))
            self.running = False
            self._persist_phase()
            return
        task = self.tasks.current
        if task is not None:
            self.seconds_left = self._work_seconds_for(task)

    # ---------- queries ----------
    @property
    def current_task(self) -> Optional[Task]:
        return self.tasks.current

    def duration_for(self, phase: Phase) -> int:
        return self.settings.duration_seconds(phase)

    def state(self) -> TimerState:
        return TimerState(
            phase=self.phase,
            seconds_left=self.seconds_left,
            running=self.running,
            sessions=self.sessions,
            current_task_id=self.tasks.current_id,
        )

    def add_listener(self, fn: StateListener) -> None:
        self._listeners.append(fn)

    # ---------- user actions ----------
    def toggle(self) -> None:
        if self.current_task is None:
            return

        if self.seconds_left == 0:
            # start fresh if at zero
            self.seconds_left = self.duration_for(self.phase)
            self.running = True
        else:
            self.running = not self.running

        if not self.running:
            self._save_progress(force=True)
        self._persist_phase()
        self._changed()

    def reset(self) -> None:
        self.running = False
        self.seconds_left = self.duration_for(self.phase)
        self._save_progress(force=True)
        self._persist_phase()
        self._changed()

    def skip_break(self) -> None:
        if not self.phase.is_break:
            logger.debug("skip_break ignored in %s phase", self.phase.value)
            return
        logger.info("Skipping %s", self.phase.value)
        self.phase = Phase.WORK
        self.seconds_left = self.duration_for(Phase.WORK)
        self.running = False
        self._save_progress(force=True)
        self._persist_phase()
        self._changed()

    def select_task(self, task_id: str) -> Optional[str]:
        return self.tasks.select(task_id, self.phase, self.running)

    def apply_settings(self, settings: Settings) -> None:
        """Persist new settings.

        Unstarted tasks pick up a changed work length. A paused timer whose
        phase length changed is resized immediately; a running one is left
        alone until its next transition. When paused in work, the countdown
        is reloaded from the selected task so both agree afterwards.
        """
        old = self.settings
        self.settings = settings
        self.repo.save_settings(settings)
        work = settings.duration_seconds(Phase.WORK)
        if old.duration_seconds(Phase.WORK) != work:
            self.tasks.apply_work_duration(work)

        if not self.running:
            task = self.current_task
            if self.phase is Phase.WORK and task is not None:
                self.seconds_left = self._work_seconds_for(task)
                self._persist_phase()
            elif old.duration_seconds(self.phase) != settings.duration_seconds(self.phase):
                self.seconds_left = settings.duration_seconds(self.phase)
                self._persist_phase()
        self._changed()

    # ---------- clock ----------
    def tick(self) -> None:
        if not self.running or self.seconds_left <= 0:
            return
        self.seconds_left -= 1
        if self.seconds_left == 0:
            self.on_expire()
            return
        if self.phase.is_break:
            self._persist_phase()
        else:
            self._save_progress()
        self._changed()

    def on_expire(self) -> None:
        # the running flag is cleared below, so a second call for the same
        # expiry is a no-op
        if not self.running or self.seconds_left != 0:
            return

        finished = self.phase
        if finished is Phase.WORK:
            task = self.current_task
            if task is not None:
                self.tasks.increment_pomodoros(task.id)

            if (self.sessions + 1) % self.settings.long_break_interval == 0:
                self.phase = Phase.LONG_BREAK
                self.sessions = 0
            else:
                self.phase = Phase.SHORT_BREAK
                self.sessions += 1
            self.repo.set_completed_work_sessions(self.sessions)

            if task is not None:
                self.tasks.update_remaining_seconds(task.id, self.duration_for(Phase.WORK), force=True)
            cue = Cue.WORK_COMPLETE
        else:
            self.phase = Phase.WORK
            cue = Cue.BREAK_COMPLETE

        self.seconds_left = self.duration_for(self.phase)
        self.running = False
        logger.info("%s finished, now %s (sessions=%d)", finished.value, self.phase.value, self.sessions)

        self._persist_phase()
        self._play(cue)
        self._changed()

    # ---------- internals ----------
    def _on_selection_changed(self, task_id: Optional[str]) -> None:
        self.phase = Phase.WORK
        self.running = False
        task = self.tasks.current
        if task is None:
            self.seconds_left = self.duration_for(Phase.WORK)
        else:
            self.seconds_left = self._work_seconds_for(task)
        self._persist_phase()
        self._changed()

    def _work_seconds_for(self, task: Task) -> int:
        work = self.duration_for(Phase.WORK)
        if task.remaining_seconds <= 0:
            return work
        return min(task.remaining_seconds, work)

    def _save_progress(self, force: bool = False) -> None:
        task = self.current_task
        if self.phase is Phase.WORK and task is not None:
            self.tasks.update_remaining_seconds(task.id, self.seconds_left, force=force)

    def _persist_phase(self) -> None:
        if self.phase.is_break:
            self.repo.save_break_resume(
                BreakResume(mode=self.phase, seconds_left=self.seconds_left, running=self.running)
            )
        else:
            self.repo.clear_break_resume()

    def _play(self, cue: Cue) -> None:
        if self.notify is None or not self.settings.sound_enabled:
            return
        self.notify(cue, self.settings.sound_volume)

    def _changed(self) -> None:
        state = self.state()
        for fn in self._listeners:
            fn(state)
