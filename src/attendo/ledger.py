"""Attendance ledger: one outcome per (session, date), with corrections.

The ledger is the only writer of subject counters. Marking a session that
already has an entry for that date first reverses the old entry's effect, so
re-marking is idempotent and corrections never double count.
"""
import calendar
import logging
import sqlite3
from datetime import date, datetime

from attendo.db import get_connection, new_id, transaction
from attendo.errors import NotFoundError
from attendo.models import AttendanceStatus, LedgerEntry
from attendo.outbox import queue_event
from attendo.validation import local_today, parse_date, parse_status, require_non_empty

logger = logging.getLogger(__name__)

# (attended, total_held, cancelled) deltas applied when a status is recorded.
EFFECTS = {
    AttendanceStatus.ATTENDED: (1, 1, 0),
    AttendanceStatus.MISSED: (0, 1, 0),
    AttendanceStatus.CANCELLED: (0, 0, 1),
}


def row_to_entry(row) -> LedgerEntry:
    return LedgerEntry(
        id=row["id"],
        session_id=row["session_id"],
        subject_id=row["subject_id"],
        status=AttendanceStatus(row["status"]),
        date=date.fromisoformat(row["date"]),
        timestamp=row["timestamp"],
    )


def _apply_effect(conn: sqlite3.Connection, subject_id: str, status: AttendanceStatus) -> None:
    d_attended, d_held, d_cancelled = EFFECTS[status]
    conn.execute(
        """UPDATE subjects
        SET attended = attended + ?, total_held = total_held + ?, cancelled = cancelled + ?
        WHERE id = ?""",
        (d_attended, d_held, d_cancelled, subject_id),
    )


def _reverse_effect(conn: sqlite3.Connection, subject_id: str, status: AttendanceStatus) -> None:
    d_attended, d_held, d_cancelled = EFFECTS[status]
    # Counters floor at zero and total_held never drops below attended.
    conn.execute(
        """UPDATE subjects
        SET attended = MAX(0, attended - ?),
            total_held = MAX(MAX(0, attended - ?), total_held - ?),
            cancelled = MAX(0, cancelled - ?)
        WHERE id = ?""",
        (d_attended, d_attended, d_held, d_cancelled, subject_id),
    )


def mark_attendance(
    db_path: str,
    session_id: str,
    subject_id: str,
    status: AttendanceStatus | str,
    on_date: date | str | None = None,
    now: datetime | None = None,
) -> LedgerEntry:
    """Record the outcome of a session on a date, replacing any earlier mark.

    ``on_date`` defaults to today's local calendar date.
    """
    status = parse_status(status)
    session_id = require_non_empty(session_id, "Session id")
    on_date = parse_date(on_date) if on_date is not None else local_today()
    now = now or datetime.now()
    entry = LedgerEntry(
        id=new_id(),
        session_id=session_id,
        subject_id=subject_id,
        status=status,
        date=on_date,
        timestamp=now.isoformat(),
    )

    with transaction(db_path) as conn:
        if conn.execute("SELECT 1 FROM subjects WHERE id = ?", (subject_id,)).fetchone() is None:
            raise NotFoundError(f"Subject {subject_id!r} does not exist")
        existing = conn.execute(
            "SELECT * FROM attendance_log WHERE session_id = ? AND date = ?",
            (session_id, on_date.isoformat()),
        ).fetchone()
        if existing:
            _reverse_effect(conn, existing["subject_id"], AttendanceStatus(existing["status"]))
            conn.execute(
                """UPDATE attendance_log SET id = ?, subject_id = ?, status = ?, timestamp = ?
                WHERE session_id = ? AND date = ?""",
                (entry.id, subject_id, status.value, entry.timestamp, session_id, on_date.isoformat()),
            )
        else:
            conn.execute(
                """INSERT INTO attendance_log (id, session_id, subject_id, status, date, timestamp)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (entry.id, session_id, subject_id, status.value, on_date.isoformat(), entry.timestamp),
            )
        _apply_effect(conn, subject_id, status)
        queue_event(conn, "history", {"session_id": session_id, "date": on_date.isoformat()})
        queue_event(conn, "subjects", {"action": "counters", "id": subject_id})

    if existing:
        logger.info("Corrected %s on %s: %s -> %s", session_id, on_date, existing["status"], status.value)
    else:
        logger.info("Marked %s on %s as %s", session_id, on_date, status.value)
    return entry


def get_entry(db_path: str, session_id: str, on_date: date | str) -> LedgerEntry | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM attendance_log WHERE session_id = ? AND date = ?",
        (session_id, parse_date(on_date).isoformat()),
    ).fetchone()
    conn.close()
    return row_to_entry(row) if row else None


def get_history(db_path: str) -> list[LedgerEntry]:
    """Every entry in the order it was first recorded."""
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM attendance_log ORDER BY rowid").fetchall()
    conn.close()
    return [row_to_entry(r) for r in rows]


def history_for_subject(db_path: str, subject_id: str) -> list[LedgerEntry]:
    """Entries for one subject, most recent date first."""
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM attendance_log WHERE subject_id = ? ORDER BY date DESC, timestamp DESC",
        (subject_id,),
    ).fetchall()
    conn.close()
    return [row_to_entry(r) for r in rows]


def history_for_date(db_path: str, on_date: date | str) -> list[LedgerEntry]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM attendance_log WHERE date = ? ORDER BY rowid",
        (parse_date(on_date).isoformat(),),
    ).fetchall()
    conn.close()
    return [row_to_entry(r) for r in rows]


def subject_calendar(db_path: str, subject_id: str, year: int, month: int) -> dict[date, AttendanceStatus]:
    """Status per day of a month for one subject; the latest entry of a day wins."""
    first = date(year, month, 1)
    last = date(year, month, calendar.monthrange(year, month)[1])
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT date, status FROM attendance_log
        WHERE subject_id = ? AND date BETWEEN ? AND ?
        ORDER BY timestamp""",
        (subject_id, first.isoformat(), last.isoformat()),
    ).fetchall()
    conn.close()
    return {date.fromisoformat(r["date"]): AttendanceStatus(r["status"]) for r in rows}
