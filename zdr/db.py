from __future__ import annotations

import json
import os
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from .settings import settings


def utc_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _resolve_db_path() -> str:
    """Return a file path usable by sqlite.

    If the configured path is a directory (e.g. a bind mount created by Docker
    before the file existed) the journal is stored inside it.
    """

    p = os.path.abspath(settings.db_path)

    if os.path.isdir(p):
        p = os.path.join(p, "zdr.db")

    parent = os.path.dirname(p)
    if parent and not os.path.exists(parent):
        os.makedirs(parent, exist_ok=True)

    return p


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
              service_name TEXT,
              version TEXT,
              message TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS rollbacks (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              run_id TEXT NOT NULL UNIQUE,
              target_version TEXT NOT NULL,
              root_domain TEXT NOT NULL,
              state TEXT NOT NULL, -- done|failed
              dry_run INTEGER NOT NULL DEFAULT 0,
              started_at TEXT NOT NULL,
              finished_at TEXT,
              report TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_events_ts ON events(ts);
            CREATE INDEX IF NOT EXISTS idx_rollbacks_target ON rollbacks(target_version);
            """
        )


def log_event(level: str, message: str, service_name: str | None = None, version: str | None = None) -> None:
    init_db()
    with connect() as conn:
        conn.execute(
            "INSERT INTO events (ts, level, service_name, version, message) VALUES (?, ?, ?, ?, ?)",
            (utc_now(), level.upper(), service_name, version, message),
        )


@dataclass(frozen=True)
class RollbackRow:
    id: int
    run_id: str
    target_version: str
    root_domain: str
    state: str
    dry_run: int
    started_at: str
    finished_at: str | None
    report: str

    def report_dict(self) -> dict[str, Any]:
        return json.loads(self.report)


def _rows_to_dataclass(rows: Iterable[sqlite3.Row], cls: Any) -> list[Any]:
    out: list[Any] = []
    for r in rows:
        out.append(cls(**dict(r)))
    return out


def record_rollback(report: Any) -> None:
    """Insert or update the journal row for one rollback run."""
    init_db()
    with connect() as conn:
        conn.execute(
            """
            INSERT INTO rollbacks (run_id, target_version, root_domain, state, dry_run, started_at, finished_at, report)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(run_id) DO UPDATE SET
              state=excluded.state,
              finished_at=excluded.finished_at,
              report=excluded.report
            """,
            (
                report.run_id,
                report.target_version_id,
                report.root_domain,
                report.state,
                int(report.dry_run),
                report.started_at,
                report.finished_at,
                json.dumps(report.to_dict()),
            ),
        )


def list_rollbacks(limit: int = 20, target_version: str | None = None) -> list[RollbackRow]:
    init_db()
    with connect() as conn:
        if target_version:
            cur = conn.execute(
                "SELECT * FROM rollbacks WHERE target_version=? ORDER BY id DESC LIMIT ?",
                (target_version, limit),
            )
        else:
            cur = conn.execute("SELECT * FROM rollbacks ORDER BY id DESC LIMIT ?", (limit,))
        return _rows_to_dataclass(cur.fetchall(), RollbackRow)


def latest_events(limit: int = 100) -> list[dict[str, Any]]:
    init_db()
    with connect() as conn:
        rows = conn.execute("SELECT * FROM events ORDER BY id DESC LIMIT ?", (limit,)).fetchall()
        return [dict(r) for r in rows]
