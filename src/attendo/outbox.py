"""Change events queued for an external sync consumer.

Writers call :func:`queue_event` on the connection of the transaction that
made the change, so an event exists exactly when the change was committed.
A consumer polls :func:`pending_events` and reports back with
:func:`acknowledge` or :func:`record_failure`; local reads and writes never
wait on it.
"""
import json
import logging
import sqlite3
from datetime import datetime, timedelta

from attendo.db import get_connection
from attendo.models import OutboxEvent

logger = logging.getLogger(__name__)

TOPICS = ("subjects", "timetable", "one_off_sessions", "history", "settings", "notes", "snapshot")

BASE_BACKOFF_SECONDS = 5
MAX_BACKOFF_SECONDS = 15 * 60


def queue_event(conn: sqlite3.Connection, topic: str, payload: dict | None = None,
                now: datetime | None = None) -> None:
    if topic not in TOPICS:
        raise ValueError(f"Unknown outbox topic {topic!r}")
    now = now or datetime.now()
    conn.execute(
        "INSERT INTO outbox (topic, payload, created_at) VALUES (?, ?, ?)",
        (topic, json.dumps(payload) if payload is not None else None, now.isoformat()),
    )


def _row_to_event(row) -> OutboxEvent:
    return OutboxEvent(
        id=row["id"],
        topic=row["topic"],
        payload=json.loads(row["payload"]) if row["payload"] else None,
        created_at=row["created_at"],
        attempts=row["attempts"],
        next_attempt_at=row["next_attempt_at"],
        last_error=row["last_error"],
    )


def pending_events(db_path: str, now: datetime | None = None, limit: int = 100) -> list[OutboxEvent]:
    """Undelivered events that are due, oldest first."""
    now = now or datetime.now()
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT * FROM outbox
        WHERE delivered_at IS NULL AND (next_attempt_at IS NULL OR next_attempt_at <= ?)
        ORDER BY id
        LIMIT ?""",
        (now.isoformat(), limit),
    ).fetchall()
    conn.close()
    return [_row_to_event(r) for r in rows]


def pending_topics(db_path: str, now: datetime | None = None) -> list[str]:
    """Distinct topics with due events, so a burst of writes syncs each topic once."""
    topics = []
    for event in pending_events(db_path, now=now, limit=-1):
        if event.topic not in topics:
            topics.append(event.topic)
    return topics


def acknowledge(db_path: str, event_ids: list[int], now: datetime | None = None) -> int:
    if not event_ids:
        return 0
    now = now or datetime.now()
    placeholders = ",".join("?" for _ in event_ids)
    conn = get_connection(db_path)
    cur = conn.execute(
        f"UPDATE outbox SET delivered_at = ? WHERE id IN ({placeholders}) AND delivered_at IS NULL",
        (now.isoformat(), *event_ids),
    )
    conn.commit()
    count = cur.rowcount
    conn.close()
    return count


def backoff_delay(attempts: int) -> timedelta:
    seconds = min(BASE_BACKOFF_SECONDS * 2 ** attempts, MAX_BACKOFF_SECONDS)
    return timedelta(seconds=seconds)


def record_failure(db_path: str, event_id: int, error: str, now: datetime | None = None) -> None:
    """Push an event back with exponential backoff after a failed delivery."""
    now = now or datetime.now()
    conn = get_connection(db_path)
    row = conn.execute("SELECT attempts FROM outbox WHERE id = ?", (event_id,)).fetchone()
    if row is None:
        conn.close()
        return
    attempts = row["attempts"] + 1
    next_attempt = now + backoff_delay(row["attempts"])
    conn.execute(
        "UPDATE outbox SET attempts = ?, next_attempt_at = ?, last_error = ? WHERE id = ?",
        (attempts, next_attempt.isoformat(), error, event_id),
    )
    conn.commit()
    conn.close()
    logger.warning("Sync of outbox event %s failed (attempt %s): %s", event_id, attempts, error)


def purge_delivered(db_path: str) -> int:
    conn = get_connection(db_path)
    cur = conn.execute("DELETE FROM outbox WHERE delivered_at IS NOT NULL")
    conn.commit()
    count = cur.rowcount
    conn.close()
    return count
