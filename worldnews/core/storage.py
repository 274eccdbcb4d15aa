from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass

from worldnews.core.date_range import TimeWindow
from worldnews.core.loader import ViewState
from worldnews.core.settings import Settings

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS view_state (
  id INTEGER PRIMARY KEY CHECK (id = 1),
  selected_window TEXT NOT NULL,
  has_activated_once INTEGER NOT NULL DEFAULT 0,
  updated_at TEXT DEFAULT (datetime('now'))
);
"""


@dataclass
class DB:
    conn: sqlite3.Connection

    def init(self) -> None:
        self.conn.executescript(SCHEMA_SQL)
        self.conn.commit()

    def get_view_state(self) -> ViewState:
        """Return the persisted view state, or defaults for a fresh install."""
        cur = self.conn.execute(
            "SELECT selected_window, has_activated_once FROM view_state WHERE id = 1"
        )
        row = cur.fetchone()
        if not row:
            return ViewState()
        try:
            window = TimeWindow(row[0])
        except ValueError:
            window = TimeWindow.TODAY
        return ViewState(selected_window=window, has_activated_once=bool(row[1]))

    def save_view_state(self, state: ViewState) -> None:
        self.conn.execute(
            """
            INSERT INTO view_state (id, selected_window, has_activated_once)
            VALUES (1, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                selected_window = excluded.selected_window,
                has_activated_once = excluded.has_activated_once,
                updated_at = datetime('now')
            """,
            (state.selected_window.value, int(state.has_activated_once)),
        )
        self.conn.commit()


_db: DB | None = None


def init_db() -> None:
    global _db

    s = Settings.from_env()
    db_dir = os.path.dirname(s.db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    conn = sqlite3.connect(s.db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    _db = DB(conn=conn)
    _db.init()


def get_db() -> DB:
    assert _db is not None, "DB not initialized"
    return _db
