from __future__ import annotations

import os
import sqlite3
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Iterable

from .settings import settings


def utc_now() -> str:
    return datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    When the initializer runs in a pod, the store is usually an emptyDir or a
    mounted volume. If the configured path is a directory, the DB file is
    placed inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "multiarch.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


def set_db_path(path: str) -> None:
    """Point the store at `path` for the rest of the process."""
    global settings
    settings = replace(settings, db_path=path)


def connect() -> sqlite3.Connection:
    conn = sqlite3.connect(_resolve_db_path(), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def init_db() -> None:
    """Create tables if they do not exist."""
    with connect() as conn:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS events (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              ts TEXT NOT NULL,
              level TEXT NOT NULL,
              namespace TEXT,
              pod TEXT,
              message TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS initializations (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              namespace TEXT NOT NULL,
              pod TEXT NOT NULL,
              node TEXT,
              architecture TEXT,
              state TEXT NOT NULL, -- gated_out|committed_passthrough|committed_rewritten|failed
              patch TEXT,
              error TEXT,
              created_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_initializations_state ON initializations(state);
            """
        )


def log_event(level: str, message: str, namespace: str | None = None, pod: str | None = None) -> None:
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, namespace, pod, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level.upper(), namespace, pod, message),
        )


@dataclass(frozen=True)
class InitializationRow:
    id: int
    namespace: str
    pod: str
    node: str | None
    architecture: str | None
    state: str
    patch: str | None
    error: str | None
    created_at: str


def _rows_to_dataclass(rows: Iterable[sqlite3.Row], cls: Any) -> list[Any]:
    out: list[Any] = []
    for r in rows:
        out.append(cls(**dict(r)))
    return out


def record_initialization(
    namespace: str,
    pod: str,
    state: str,
    node: str | None = None,
    architecture: str | None = None,
    patch: str | None = None,
    error: str | None = None,
) -> InitializationRow:
    with connect() as conn:
        cur = conn.execute(
            """
            INSERT INTO initializations (namespace, pod, node, architecture, state, patch, error, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (namespace, pod, node, architecture, state, patch, error, utc_now()),
        )
        row = conn.execute("SELECT * FROM initializations WHERE id=?", (cur.lastrowid,)).fetchone()
        return InitializationRow(**dict(row))


def list_initializations(limit: int = 100, state: str | None = None) -> list[InitializationRow]:
    with connect() as conn:
        if state:
            rows = conn.execute(
                "SELECT * FROM initializations WHERE state=? ORDER BY id DESC LIMIT ?",
                (state, limit),
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM initializations ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return _rows_to_dataclass(rows, InitializationRow)


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
