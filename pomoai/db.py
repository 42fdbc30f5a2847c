from __future__ import annotations
import sqlite3
from pathlib import Path
from typing import Optional, Union

DB_NAME = "pomoai.sqlite3"


def data_dir(app_name: str = "PomoAI") -> Path:
    # Cross-platform local app data dir, POMOAI_DATA_DIR wins if set
    # macOS: ~/Library/Application Support/PomoAI
    # Windows: %APPDATA%\PomoAI
    override = _get_env("POMOAI_DATA_DIR", "")
    if override:
        d = Path(override)
        d.mkdir(parents=True, exist_ok=True)
        return d

    home = Path.home()
    if _is_macos():
        base = home / "Library" / "Application Support"
    elif _is_windows():
        base = Path(_get_env("APPDATA", str(home)))
    else:
        base = home / ".local" / "share"
    d = base / app_name
    d.mkdir(parents=True, exist_ok=True)
    return d


def db_path() -> Path:
    return data_dir() / DB_NAME


def connect(path: Optional[Union[str, Path]] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(str(path) if path is not None else db_path())
    conn.row_factory = sqlite3.Row
    return conn


def migrate(conn: sqlite3.Connection) -> None:
    # Values are JSON text, one row per storage key
    # (tasks, currentTaskId, settings, completedWorkSessions, breakResume, chatMessages).
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS storage (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        );
        """
    )
    conn.commit()


def _is_windows() -> bool:
    import sys
    return sys.platform.startswith("win")


def _is_macos() -> bool:
    import sys
    return sys.platform == "darwin"


def _get_env(k: str, default: str) -> str:
    import os
    return os.environ.get(k, default)
