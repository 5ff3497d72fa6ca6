"""Weekly timetable, one-off extra classes and per-session notes."""
import logging
from datetime import date, datetime, timedelta

from attendo.db import get_connection, new_id, transaction
from attendo.errors import NotFoundError
from attendo.models import WEEKDAYS, OneOffSession, RecurringSession
from attendo.outbox import queue_event
from attendo.validation import (
    parse_date, parse_optional_time, parse_time, parse_weekday, weekday_of,
)

logger = logging.getLogger(__name__)


def row_to_recurring(row) -> RecurringSession:
    return RecurringSession(
        id=row["id"],
        weekday=row["weekday"],
        subject_id=row["subject_id"],
        start_time=row["start_time"],
        end_time=row["end_time"],
    )


def row_to_one_off(row) -> OneOffSession:
    return OneOffSession(
        id=row["id"],
        date=date.fromisoformat(row["date"]),
        subject_id=row["subject_id"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        created_at=row["created_at"],
    )


def _check_subject(conn, subject_id: str) -> None:
    if conn.execute("SELECT 1 FROM subjects WHERE id = ?", (subject_id,)).fetchone() is None:
        raise NotFoundError(f"Subject {subject_id!r} does not exist")


def add_recurring(db_path: str, weekday: str, subject_id: str, start_time: str,
                  end_time: str | None = None) -> RecurringSession:
    session = RecurringSession(
        id=new_id(),
        weekday=parse_weekday(weekday),
        subject_id=subject_id,
        start_time=parse_time(start_time, "start_time"),
        end_time=parse_optional_time(end_time),
    )
    with transaction(db_path) as conn:
        _check_subject(conn, subject_id)
        conn.execute(
            """INSERT INTO recurring_sessions (id, weekday, subject_id, start_time, end_time)
            VALUES (?, ?, ?, ?, ?)""",
            (session.id, session.weekday, session.subject_id, session.start_time, session.end_time),
        )
        queue_event(conn, "timetable", {"action": "add", "weekday": session.weekday})
    logger.info("Added %s %s slot for subject %s", session.weekday, session.start_time, subject_id)
    return session


def remove_recurring(db_path: str, weekday: str, session_id: str) -> bool:
    weekday = parse_weekday(weekday)
    with transaction(db_path) as conn:
        removed = conn.execute(
            "DELETE FROM recurring_sessions WHERE weekday = ? AND id = ?", (weekday, session_id)
        ).rowcount
        if removed:
            conn.execute("DELETE FROM session_notes WHERE session_id = ?", (session_id,))
            queue_event(conn, "timetable", {"action": "remove", "weekday": weekday})
    return bool(removed)


def sessions_for_day(db_path: str, weekday: str) -> list[RecurringSession]:
    """Recurring sessions of a weekday by start time, ties in insertion order."""
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM recurring_sessions WHERE weekday = ? ORDER BY start_time, rowid",
        (parse_weekday(weekday),),
    ).fetchall()
    conn.close()
    return [row_to_recurring(r) for r in rows]


def get_timetable(db_path: str) -> dict[str, list[RecurringSession]]:
    timetable = {day: [] for day in WEEKDAYS}
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM recurring_sessions ORDER BY start_time, rowid").fetchall()
    conn.close()
    for row in rows:
        timetable[row["weekday"]].append(row_to_recurring(row))
    return timetable


def list_recurring(db_path: str) -> list[RecurringSession]:
    """All weekly sessions in insertion order."""
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM recurring_sessions ORDER BY rowid").fetchall()
    conn.close()
    return [row_to_recurring(r) for r in rows]


def add_one_off(db_path: str, on_date: date | str, subject_id: str, start_time: str,
                end_time: str | None = None, now: datetime | None = None) -> OneOffSession:
    session = OneOffSession(
        id=new_id(),
        date=parse_date(on_date),
        subject_id=subject_id,
        start_time=parse_time(start_time, "start_time"),
        end_time=parse_optional_time(end_time),
        created_at=(now or datetime.now()).isoformat(),
    )
    with transaction(db_path) as conn:
        _check_subject(conn, subject_id)
        conn.execute(
            """INSERT INTO one_off_sessions (id, date, subject_id, start_time, end_time, created_at)
            VALUES (?, ?, ?, ?, ?, ?)""",
            (session.id, session.date.isoformat(), session.subject_id,
             session.start_time, session.end_time, session.created_at),
        )
        queue_event(conn, "one_off_sessions", {"action": "add", "date": session.date.isoformat()})
    logger.info("Added extra class on %s %s for subject %s", session.date, session.start_time, subject_id)
    return session


def remove_one_off(db_path: str, session_id: str) -> bool:
    with transaction(db_path) as conn:
        removed = conn.execute("DELETE FROM one_off_sessions WHERE id = ?", (session_id,)).rowcount
        if removed:
            conn.execute("DELETE FROM session_notes WHERE session_id = ?", (session_id,))
            queue_event(conn, "one_off_sessions", {"action": "remove", "id": session_id})
    return bool(removed)


def one_offs_for_date(db_path: str, on_date: date | str) -> list[OneOffSession]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM one_off_sessions WHERE date = ? ORDER BY start_time, rowid",
        (parse_date(on_date).isoformat(),),
    ).fetchall()
    conn.close()
    return [row_to_one_off(r) for r in rows]


def list_one_offs(db_path: str) -> list[OneOffSession]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM one_off_sessions ORDER BY rowid").fetchall()
    conn.close()
    return [row_to_one_off(r) for r in rows]


def get_note(db_path: str, session_id: str) -> str:
    conn = get_connection(db_path)
    row = conn.execute("SELECT note FROM session_notes WHERE session_id = ?", (session_id,)).fetchone()
    conn.close()
    return row["note"] if row else ""


def set_note(db_path: str, session_id: str, text: str | None) -> None:
    """Attach a note to a session; blank text removes it."""
    text = (text or "").strip()
    with transaction(db_path) as conn:
        if text:
            conn.execute(
                "INSERT INTO session_notes (session_id, note) VALUES (?, ?) "
                "ON CONFLICT(session_id) DO UPDATE SET note = excluded.note",
                (session_id, text),
            )
        else:
            conn.execute("DELETE FROM session_notes WHERE session_id = ?", (session_id,))
        queue_event(conn, "notes", {"session_id": session_id})


def get_notes(db_path: str) -> dict[str, str]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT session_id, note FROM session_notes ORDER BY rowid").fetchall()
    conn.close()
    return {r["session_id"]: r["note"] for r in rows}


def next_class(db_path: str, subject_id: str, now: datetime) -> dict | None:
    """Next weekly slot of a subject within seven days, skipping slots already started today."""
    current_time = now.strftime("%H:%M")
    for offset in range(7):
        day = now.date() + timedelta(days=offset)
        weekday = weekday_of(day)
        for session in sessions_for_day(db_path, weekday):
            if session.subject_id != subject_id:
                continue
            if offset == 0 and session.start_time < current_time:
                continue
            return {
                "weekday": weekday,
                "date": day,
                "start_time": session.start_time,
                "session_id": session.id,
                "days_from_now": offset,
            }
    return None
