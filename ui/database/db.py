"""SQLite database connection + schema initialization.

Kept lightweight for a single-school desktop setup:
- SQLite file stored locally (persists between restarts)
- schema created on first run
- foreign keys enabled

Assignment snapshots are stored as one JSON document per term, which is the
unit the observation engine reads and writes atomically.

"""

from __future__ import annotations

import logging
import os
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)

DEFAULT_DB_FILENAME = "observers.db"


@dataclass(frozen=True)
class DBConfig:
    """Database configuration for the app."""

    db_path: Path


def default_db_path() -> Path:
    """Resolve DB path.

    Uses `EXAM_OBSERVERS_DB` env var if set, else stores under `ui/database/`.
    """

    override = os.getenv("EXAM_OBSERVERS_DB")
    if override:
        return Path(override).expanduser().resolve()

    # Keep DB next to this file for portability
    return (Path(__file__).resolve().parent / DEFAULT_DB_FILENAME).resolve()


def get_connection(config: Optional[DBConfig] = None) -> sqlite3.Connection:
    """Create a SQLite connection with sane defaults."""

    db_path = (config.db_path if config else default_db_path())
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row

    # Ensure FK constraints are enforced
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def init_db(conn: sqlite3.Connection) -> None:
    """Create all required tables if they do not exist."""

    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS observer_config (
            id INTEGER PRIMARY KEY CHECK (id = 1),
            observers_per_committee INTEGER NOT NULL DEFAULT 2 CHECK (observers_per_committee >= 1),
            members_per_correction INTEGER NOT NULL DEFAULT 3 CHECK (members_per_correction >= 1),
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );

        INSERT OR IGNORE INTO observer_config (id) VALUES (1);

        CREATE TABLE IF NOT EXISTS observers (
            observer_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            subject TEXT NOT NULL DEFAULT '',
            excluded_committees_json TEXT NOT NULL DEFAULT '[]',
            excluded_grades_json TEXT NOT NULL DEFAULT '[]'
        );

        CREATE TABLE IF NOT EXISTS committees (
            committee_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            grade_level TEXT NOT NULL,
            location TEXT NOT NULL DEFAULT '',
            capacity INTEGER NOT NULL DEFAULT 0 CHECK (capacity >= 0)
        );

        -- Exam calendar: one row per subject exam for one grade and term
        CREATE TABLE IF NOT EXISTS exam_sessions (
            session_id TEXT PRIMARY KEY,
            grade_level TEXT NOT NULL,
            term TEXT NOT NULL CHECK (term IN ('term1','term2')),
            subject_name TEXT NOT NULL,
            exam_date TEXT NOT NULL, -- ISO date YYYY-MM-DD
            weekday TEXT NOT NULL DEFAULT '',
            time_from TEXT NOT NULL DEFAULT '',
            time_to TEXT NOT NULL DEFAULT '',
            duration TEXT NOT NULL DEFAULT ''
        );

        CREATE INDEX IF NOT EXISTS idx_exam_sessions_grade_term ON exam_sessions(grade_level, term);

        -- One assignment snapshot document per term (current state only)
        CREATE TABLE IF NOT EXISTS assignment_snapshots (
            term TEXT PRIMARY KEY CHECK (term IN ('term1','term2')),
            version INTEGER NOT NULL DEFAULT 0,
            snapshot_json TEXT NOT NULL DEFAULT '{}',
            updated_at TEXT NOT NULL DEFAULT (datetime('now'))
        );
        """
    )
    conn.commit()


class db_session:
    """Context manager that opens a connection and ensures schema exists."""

    def __init__(self, config: Optional[DBConfig] = None):
        self._config = config
        self._conn: Optional[sqlite3.Connection] = None

    def __enter__(self) -> sqlite3.Connection:
        self._conn = get_connection(self._config)
        init_db(self._conn)
        return self._conn

    def __exit__(self, exc_type, exc, tb) -> None:
        assert self._conn is not None
        if exc_type is None:
            self._conn.commit()
        else:
            logger.warning("Rolling back database transaction: %s", exc)
            self._conn.rollback()
        self._conn.close()
        self._conn = None
