from __future__ import annotations
import logging
import time
import uuid
from dataclasses import replace
from typing import Callable, List, Optional

from .models import Task, Phase, ActionRejected
from .repository import Repository

logger = logging.getLogger(__name__)

SelectionListener = Callable[[Optional[str]], None]


class TaskStore:
    """Ordered task list plus the currently selected task.

    Every mutation is written through to the repository right away, except
    remaining-seconds updates which are written at most once per
    `write_interval` seconds (see `flush`).
    """

    def __init__(
        self,
        repo: Repository,
        work_seconds: int,
        clock: Callable[[], float] = time.monotonic,
        write_interval: float = 1.0,
    ):
        self.repo = repo
        self.work_seconds = work_seconds
        self.clock = clock
        self.write_interval = write_interval

        self._tasks: List[Task] = repo.get_tasks()
        self._current_id = self._load_current_id()
        self._listeners: List[SelectionListener] = []

        self._pending_write = False
        self._last_write: Optional[float] = None

    def _load_current_id(self) -> Optional[str]:
        cid = self.repo.get_current_task_id()
        if cid is None:
            return None
        t = self._find(cid)
        if t is None or t.completed:
            logger.warning("Stored selection %r is not selectable, clearing it", cid)
            self.repo.set_current_task_id(None)
            return None
        return cid

    # ---------- queries ----------
    def list_tasks(self) -> List[Task]:
        return list(self._tasks)

    def get(self, task_id: str) -> Task:
        t = self._find(task_id)
        if t is None:
            raise KeyError(task_id)
        return t

    @property
    def current_id(self) -> Optional[str]:
        return self._current_id

    @property
    def current(self) -> Optional[Task]:
        if self._current_id is None:
            return None
        return self._find(self._current_id)

    def add_selection_listener(self, fn: SelectionListener) -> None:
        self._listeners.append(fn)

    # ---------- mutations ----------
    def add(self, name: str, estimated_pomos: Optional[int] = None) -> Task:
        name = name.strip()
        if not name:
            raise ActionRejected("Task name can't be empty.")
        if estimated_pomos is not None and estimated_pomos < 0:
            raise ActionRejected("Estimate can't be negative.")
        t = Task(
            id=uuid.uuid4().hex,
            name=name,
            remaining_seconds=self.work_seconds,
            estimated_pomos=estimated_pomos,
        )
        self._tasks.append(t)
        self._save()
        return t

    def remove(self, task_id: str) -> None:
        self.get(task_id)
        if task_id == self._current_id:
            raise ActionRejected("You can't delete the task you're working on.")
        self._tasks = [t for t in self._tasks if t.id != task_id]
        self._save()

    def select(self, task_id: str, phase: Phase, running: bool) -> Optional[str]:
        """Select `task_id`, or deselect it if it is already selected.

        Returns the new selection.
        """
        if phase.is_break:
            raise ActionRejected("Finish or skip the break first.")
        if running:
            raise ActionRejected("Pause the timer before switching tasks.")

        if task_id == self._current_id:
            self._set_current(None)
            return None

        if self.get(task_id).completed:
            raise ActionRejected("Completed tasks can't be selected.")
        self._set_current(task_id)
        return task_id

    def toggle_complete(self, task_id: str) -> Task:
        t = self.get(task_id)
        t = replace(t, completed=not t.completed)
        self._put(t)
        self._save()
        if t.completed and task_id == self._current_id:
            self._set_current(None)
        return t

    def update_estimate(self, task_id: str, n: Optional[int]) -> Task:
        if n is not None and n < 0:
            raise ActionRejected("Estimate can't be negative.")
        t = replace(self.get(task_id), estimated_pomos=n)
        self._put(t)
        self._save()
        return t

    def increment_pomodoros(self, task_id: str) -> Task:
        t = self.get(task_id)
        t = replace(t, pomodoros=t.pomodoros + 1)
        self._put(t)
        self._save()
        return t

    def update_remaining_seconds(self, task_id: str, seconds: int, force: bool = False) -> None:
        t = replace(self.get(task_id), remaining_seconds=max(0, int(seconds)))
        self._put(t)

        now = self.clock()
        if force or self._last_write is None or now - self._last_write >= self.write_interval:
            self._save()
        else:
            self._pending_write = True

    def flush(self) -> None:
        if self._pending_write:
            self._save()

    def apply_work_duration(self, seconds: int) -> None:
        """Rewrite unstarted tasks' remaining time for a new work length.

        Tasks that already have pomodoros keep their remaining time.
        """
        self.work_seconds = seconds
        self._tasks = [
            t if t.started else replace(t, remaining_seconds=seconds)
            for t in self._tasks
        ]
        self._save()

    # ---------- internals ----------
    def _find(self, task_id: str) -> Optional[Task]:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def _put(self, task: Task) -> None:
        self._tasks = [task if t.id == task.id else t for t in self._tasks]

    def _save(self) -> None:
        self.repo.save_tasks(self._tasks)
        self._pending_write = False
        self._last_write = self.clock()

    def _set_current(self, task_id: Optional[str]) -> None:
        # pending time for the outgoing task goes out first
        self.flush()
        self._current_id = task_id
        self.repo.set_current_task_id(task_id)
        for fn in self._listeners:
            fn(task_id)
