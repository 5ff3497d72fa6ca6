"""Database initialization and connection management."""
import os
import sqlite3
import uuid
from contextlib import contextmanager
from pathlib import Path

DEFAULT_DB_PATH = os.getenv("ATTENDO_DB_PATH", str(Path.home() / ".attendo" / "attendo.db"))

SCHEMA = """
CREATE TABLE IF NOT EXISTS subjects (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    color TEXT NOT NULL,
    attended INTEGER NOT NULL DEFAULT 0 CHECK (attended >= 0),
    total_held INTEGER NOT NULL DEFAULT 0 CHECK (total_held >= 0),
    cancelled INTEGER NOT NULL DEFAULT 0 CHECK (cancelled >= 0),
    created_at TEXT NOT NULL,
    CHECK (attended <= total_held)
);

CREATE TABLE IF NOT EXISTS recurring_sessions (
    id TEXT PRIMARY KEY,
    weekday TEXT NOT NULL,
    subject_id TEXT NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
    start_time TEXT NOT NULL,
    end_time TEXT
);

CREATE INDEX IF NOT EXISTS idx_recurring_weekday ON recurring_sessions(weekday);

CREATE TABLE IF NOT EXISTS one_off_sessions (
    id TEXT PRIMARY KEY,
    date TEXT NOT NULL,
    subject_id TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_one_off_date ON one_off_sessions(date);

CREATE TABLE IF NOT EXISTS attendance_log (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    subject_id TEXT NOT NULL REFERENCES subjects(id) ON DELETE CASCADE,
    status TEXT NOT NULL CHECK (status IN ('attended', 'missed', 'cancelled')),
    date TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    UNIQUE(session_id, date)
);

CREATE INDEX IF NOT EXISTS idx_attendance_subject ON attendance_log(subject_id);
CREATE INDEX IF NOT EXISTS idx_attendance_date ON attendance_log(date);

CREATE TABLE IF NOT EXISTS session_notes (
    session_id TEXT PRIMARY KEY,
    note TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_settings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    key TEXT NOT NULL UNIQUE,
    value TEXT
);

CREATE TABLE IF NOT EXISTS outbox (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic TEXT NOT NULL,
    payload TEXT,
    created_at TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    next_attempt_at TEXT,
    last_error TEXT,
    delivered_at TEXT
);
"""


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Return a SQLite connection with row factory and foreign keys enabled."""
    conn = sqlite3.connect(db_path, timeout=5.0)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


def init_db(db_path: str = DEFAULT_DB_PATH) -> None:
    """Initialize the database, creating all tables if they don't exist."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = get_connection(db_path)
    conn.executescript(SCHEMA)
    conn.commit()
    conn.close()


@contextmanager
def transaction(db_path: str):
    """Yield a connection holding SQLite's write lock; commit on success, roll back on error.

    Read-modify-write sequences (ledger corrections, snapshot imports, cascading
    deletes) run inside this so two writers on the same file cannot interleave.
    """
    conn = get_connection(db_path)
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.Error:
        conn.close()
        raise
    try:
        yield conn
        conn.execute("COMMIT")
    except Exception:
        conn.execute("ROLLBACK")
        raise
    finally:
        conn.close()


def new_id() -> str:
    return uuid.uuid4().hex
