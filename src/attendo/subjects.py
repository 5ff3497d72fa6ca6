"""Subject management."""
import logging
from datetime import datetime

from attendo.db import get_connection, new_id, transaction
from attendo.errors import NotFoundError
from attendo.models import Subject
from attendo.outbox import queue_event
from attendo.validation import require_non_empty

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#6366f1"


def row_to_subject(row) -> Subject:
    return Subject(
        id=row["id"],
        name=row["name"],
        color=row["color"],
        attended=row["attended"],
        total_held=row["total_held"],
        cancelled=row["cancelled"],
        created_at=row["created_at"],
    )


def create_subject(db_path: str, name: str, color: str = DEFAULT_COLOR,
                   now: datetime | None = None) -> Subject:
    name = require_non_empty(name, "Subject name")
    color = require_non_empty(color, "Subject color")
    subject = Subject(
        id=new_id(),
        name=name,
        color=color,
        created_at=(now or datetime.now()).isoformat(),
    )
    with transaction(db_path) as conn:
        conn.execute(
            """INSERT INTO subjects (id, name, color, attended, total_held, cancelled, created_at)
            VALUES (?, ?, ?, 0, 0, 0, ?)""",
            (subject.id, subject.name, subject.color, subject.created_at),
        )
        queue_event(conn, "subjects", {"action": "create", "id": subject.id})
    logger.info("Created subject %s (%s)", subject.name, subject.id)
    return subject


def get_subject(db_path: str, subject_id: str) -> Subject | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM subjects WHERE id = ?", (subject_id,)).fetchone()
    conn.close()
    return row_to_subject(row) if row else None


def require_subject(db_path: str, subject_id: str) -> Subject:
    subject = get_subject(db_path, subject_id)
    if subject is None:
        raise NotFoundError(f"Subject {subject_id!r} does not exist")
    return subject


def get_subject_by_name(db_path: str, name: str) -> Subject | None:
    """Case-insensitive lookup by name."""
    if not name:
        return None
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM subjects WHERE lower(name) = lower(?) ORDER BY rowid LIMIT 1",
        (name.strip(),),
    ).fetchone()
    conn.close()
    return row_to_subject(row) if row else None


def list_subjects(db_path: str) -> list[Subject]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM subjects ORDER BY rowid").fetchall()
    conn.close()
    return [row_to_subject(r) for r in rows]


def update_subject(db_path: str, subject_id: str, name: str | None = None,
                   color: str | None = None) -> Subject:
    """Rename or recolor a subject. Counters are only changed through the ledger."""
    subject = require_subject(db_path, subject_id)
    if name is not None:
        subject.name = require_non_empty(name, "Subject name")
    if color is not None:
        subject.color = require_non_empty(color, "Subject color")
    with transaction(db_path) as conn:
        conn.execute(
            "UPDATE subjects SET name = ?, color = ? WHERE id = ?",
            (subject.name, subject.color, subject_id),
        )
        queue_event(conn, "subjects", {"action": "update", "id": subject_id})
    return subject


def delete_subject(db_path: str, subject_id: str) -> bool:
    """Delete a subject with its recurring sessions, their notes and attendance history.

    One-off sessions that point at the subject are left behind; the schedule
    resolver skips them.
    """
    with transaction(db_path) as conn:
        conn.execute(
            "DELETE FROM session_notes WHERE session_id IN "
            "(SELECT id FROM recurring_sessions WHERE subject_id = ?)",
            (subject_id,),
        )
        slots = conn.execute(
            "DELETE FROM recurring_sessions WHERE subject_id = ?", (subject_id,)
        ).rowcount
        entries = conn.execute(
            "DELETE FROM attendance_log WHERE subject_id = ?", (subject_id,)
        ).rowcount
        deleted = conn.execute("DELETE FROM subjects WHERE id = ?", (subject_id,)).rowcount
        if deleted:
            queue_event(conn, "subjects", {"action": "delete", "id": subject_id})
            queue_event(conn, "timetable")
            queue_event(conn, "history")
    if deleted:
        logger.info(
            "Deleted subject %s with %d recurring sessions and %d history entries",
            subject_id, slots, entries,
        )
    return bool(deleted)
