from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Phase(str, Enum):
    WORK = "work"
    SHORT_BREAK = "shortBreak"
    LONG_BREAK = "longBreak"

    @property
    def is_break(self) -> bool:
        return self is not Phase.WORK


class Cue(str, Enum):
    WORK_COMPLETE = "workComplete"
    BREAK_COMPLETE = "breakComplete"


class ActionRejected(Exception):
    """A user action that is not allowed in the current state. Nothing was changed."""


@dataclass(frozen=True)
class Task:
    id: str
    name: str
    completed: bool = False
    remaining_seconds: int = 0
    pomodoros: int = 0
    estimated_pomos: Optional[int] = None

    @property
    def started(self) -> bool:
        return self.pomodoros > 0


@dataclass(frozen=True)
class Settings:
    # durations in minutes
    work: int = 25
    short_break: int = 5
    long_break: int = 15
    long_break_interval: int = 4
    sound_enabled: bool = True
    sound_volume: float = 0.5

    def duration_seconds(self, phase: Phase) -> int:
        if phase is Phase.SHORT_BREAK:
            return self.short_break * 60
        if phase is Phase.LONG_BREAK:
            return self.long_break * 60
        return self.work * 60


@dataclass(frozen=True)
class BreakResume:
    mode: Phase  # always a break phase
    seconds_left: int
    running: bool


@dataclass(frozen=True)
class ChatMessage:
    role: str  # "user" | "assistant"
    content: str


@dataclass(frozen=True)
class TimerState:
    phase: Phase
    seconds_left: int
    running: bool
    sessions: int
    current_task_id: Optional[str]
