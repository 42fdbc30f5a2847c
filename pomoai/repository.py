from __future__ import annotations
import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from .models import Task, Settings, Phase, BreakResume, ChatMessage

logger = logging.getLogger(__name__)

TASKS_KEY = "tasks"
CURRENT_TASK_KEY = "currentTaskId"
SETTINGS_KEY = "settings"
SESSIONS_KEY = "completedWorkSessions"
BREAK_RESUME_KEY = "breakResume"
CHAT_KEY = "chatMessages"


def _is_count(v: Any) -> bool:
    # bool is an int subclass; a stored `true` is not a count
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0


def task_from_dict(raw: Any) -> Optional[Task]:
    """Shape check for one stored task record. Returns None when it doesn't fit."""
    if not isinstance(raw, dict):
        return None
    tid = raw.get("id")
    name = raw.get("name")
    if not isinstance(tid, str) or not tid:
        return None
    if not isinstance(name, str) or not name.strip():
        return None
    completed = raw.get("completed", False)
    if not isinstance(completed, bool):
        return None
    remaining = raw.get("remainingSeconds", 0)
    pomodoros = raw.get("pomodoros", 0)
    if not _is_count(remaining) or not _is_count(pomodoros):
        return None
    estimate = raw.get("estimatedPomos")
    if estimate is not None and not _is_count(estimate):
        return None
    return Task(
        id=tid,
        name=name,
        completed=completed,
        remaining_seconds=remaining,
        pomodoros=pomodoros,
        estimated_pomos=estimate,
    )


def task_to_dict(t: Task) -> Dict[str, Any]:
    d: Dict[str, Any] = {
        "id": t.id,
        "name": t.name,
        "completed": t.completed,
        "remainingSeconds": t.remaining_seconds,
        "pomodoros": t.pomodoros,
    }
    if t.estimated_pomos is not None:
        d["estimatedPomos"] = t.estimated_pomos
    return d


def settings_from_dict(raw: Any) -> Settings:
    defaults = Settings()
    if not isinstance(raw, dict):
        return defaults

    def minutes(key: str, default: int) -> int:
        v = raw.get(key)
        if isinstance(v, int) and not isinstance(v, bool) and v >= 1:
            return v
        return default

    sound_enabled = raw.get("soundEnabled")
    if not isinstance(sound_enabled, bool):
        sound_enabled = defaults.sound_enabled

    volume = raw.get("soundVolume")
    if isinstance(volume, bool) or not isinstance(volume, (int, float)) or not 0 <= volume <= 1:
        volume = defaults.sound_volume

    return Settings(
        work=minutes("work", defaults.work),
        short_break=minutes("shortBreak", defaults.short_break),
        long_break=minutes("longBreak", defaults.long_break),
        long_break_interval=minutes("longBreakInterval", defaults.long_break_interval),
        sound_enabled=sound_enabled,
        sound_volume=float(volume),
    )


def settings_to_dict(s: Settings) -> Dict[str, Any]:
    return {
        "work": s.work,
        "shortBreak": s.short_break,
        "longBreak": s.long_break,
        "longBreakInterval": s.long_break_interval,
        "soundEnabled": s.sound_enabled,
        "soundVolume": s.sound_volume,
    }


class Repository:
    """Durable key/value storage for the timer, tasks and chat transcript.

    Reads never fail: missing or malformed values come back as defaults.
    Writes are best-effort; a failed write is logged and dropped.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    # ---------- Tasks ----------
    def get_tasks(self) -> List[Task]:
        raw = self._get_json(TASKS_KEY)
        if raw is None:
            return []
        if not isinstance(raw, list):
            logger.warning("Stored tasks are not a list, ignoring them")
            return []
        out: List[Task] = []
        for r in raw:
            t = task_from_dict(r)
            if t is None:
                logger.warning("Dropping malformed task record: %r", r)
                continue
            out.append(t)
        return out

    def save_tasks(self, tasks: List[Task]) -> None:
        self._set_json(TASKS_KEY, [task_to_dict(t) for t in tasks])

    def get_current_task_id(self) -> Optional[str]:
        return self._get(CURRENT_TASK_KEY) or None

    def set_current_task_id(self, task_id: Optional[str]) -> None:
        self._set(CURRENT_TASK_KEY, task_id or "")

    # ---------- Settings ----------
    def get_settings(self) -> Settings:
        return settings_from_dict(self._get_json(SETTINGS_KEY))

    def save_settings(self, settings: Settings) -> None:
        self._set_json(SETTINGS_KEY, settings_to_dict(settings))

    # ---------- Session counter ----------
    def get_completed_work_sessions(self) -> int:
        s = self._get(SESSIONS_KEY)
        if s is None:
            return 0
        try:
            n = int(s)
        except ValueError:
            logger.warning("Malformed session counter %r, using 0", s)
            return 0
        return max(0, n)

    def set_completed_work_sessions(self, n: int) -> None:
        self._set(SESSIONS_KEY, str(n))

    # ---------- Break resume ----------
    def get_break_resume(self) -> Optional[BreakResume]:
        raw = self._get_json(BREAK_RESUME_KEY)
        if raw is None:
            return None
        if not isinstance(raw, dict):
            logger.warning("Malformed break state %r, ignoring it", raw)
            return None
        mode = raw.get("mode")
        seconds = raw.get("secondsLeft")
        if mode not in (Phase.SHORT_BREAK.value, Phase.LONG_BREAK.value) or not _is_count(seconds):
            logger.warning("Malformed break state %r, ignoring it", raw)
            return None
        return BreakResume(mode=Phase(mode), seconds_left=seconds, running=bool(raw.get("running", False)))

    def save_break_resume(self, state: BreakResume) -> None:
        self._set_json(
            BREAK_RESUME_KEY,
            {"mode": state.mode.value, "secondsLeft": state.seconds_left, "running": state.running},
        )

    def clear_break_resume(self) -> None:
        self._delete(BREAK_RESUME_KEY)

    # ---------- Chat transcript ----------
    def get_chat_messages(self) -> List[ChatMessage]:
        raw = self._get_json(CHAT_KEY)
        if not isinstance(raw, list):
            return []
        out: List[ChatMessage] = []
        for r in raw:
            if (
                isinstance(r, dict)
                and r.get("role") in ("user", "assistant")
                and isinstance(r.get("content"), str)
            ):
                out.append(ChatMessage(role=r["role"], content=r["content"]))
        return out

    def save_chat_messages(self, messages: List[ChatMessage]) -> None:
        self._set_json(CHAT_KEY, [{"role": m.role, "content": m.content} for m in messages])

    def clear_chat_messages(self) -> None:
        self._delete(CHAT_KEY)

    # ---------- raw access ----------
    def _get(self, key: str) -> Optional[str]:
        row = self.conn.execute("SELECT value FROM storage WHERE key=?", (key,)).fetchone()
        return row["value"] if row else None

    def _get_json(self, key: str) -> Any:
        s = self._get(key)
        if s is None:
            return None
        try:
            return json.loads(s)
        except ValueError:
            logger.warning("Corrupt JSON under %r, treating it as absent", key)
            return None

    def _set(self, key: str, value: str) -> None:
        try:
            self.conn.execute(
                "INSERT INTO storage(key,value) VALUES(?,?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (key, value),
            )
            self.conn.commit()
        except sqlite3.Error:
            logger.warning("Could not persist %r", key, exc_info=True)

    def _set_json(self, key: str, value: Any) -> None:
        self._set(key, json.dumps(value))

    def _delete(self, key: str) -> None:
        try:
            self.conn.execute("DELETE FROM storage WHERE key=?", (key,))
            self.conn.commit()
        except sqlite3.Error:
            logger.warning("Could not remove %r", key, exc_info=True)
