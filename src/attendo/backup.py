"""Whole-store backup: export, import and reset.

A snapshot is a plain dict of JSON-friendly values. Importing replaces the
entire store in one transaction after the snapshot has been checked, so a bad
file leaves existing data untouched.
"""
import json
import logging
import sqlite3
from dataclasses import asdict
from datetime import date, datetime
from pathlib import Path

import yaml

from attendo.db import transaction
from attendo.errors import SnapshotFormatError, ValidationError
from attendo.ledger import get_history
from attendo.outbox import queue_event
from attendo.settings import DEFAULT_SETTINGS, clean_setting, get_settings, write_setting
from attendo.subjects import DEFAULT_COLOR, list_subjects
from attendo.timetable import get_notes, list_one_offs, list_recurring
from attendo.validation import parse_date, parse_optional_time, parse_status, parse_time, parse_weekday

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0"

MAX_COUNT = 2**63 - 1  # largest SQLite INTEGER

DATA_TABLES = ("attendance_log", "recurring_sessions", "one_off_sessions", "session_notes",
               "user_settings", "subjects")


def export_snapshot(db_path: str, now: datetime | None = None) -> dict:
    one_offs = []
    for session in list_one_offs(db_path):
        item = asdict(session)
        item["date"] = session.date.isoformat()
        one_offs.append(item)
    history = []
    for entry in get_history(db_path):
        item = asdict(entry)
        item["status"] = entry.status.value
        item["date"] = entry.date.isoformat()
        history.append(item)
    return {
        "version": SNAPSHOT_VERSION,
        "exported_at": (now or datetime.now()).isoformat(),
        "subjects": [asdict(s) for s in list_subjects(db_path)],
        "recurring_sessions": [asdict(s) for s in list_recurring(db_path)],
        "one_off_sessions": one_offs,
        "history": history,
        "settings": asdict(get_settings(db_path)),
        "notes": get_notes(db_path),
    }


def _text(item: dict, key: str, required: bool = True) -> str | None:
    value = item.get(key)
    if isinstance(value, (datetime, date)):
        value = value.isoformat()
    if value is None and not required:
        return None
    if not isinstance(value, str) or not value:
        raise SnapshotFormatError(f"Field {key!r} must be a non-empty string in {item!r}")
    return value


def _count(item: dict, key: str) -> int:
    value = item.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_COUNT:
        raise SnapshotFormatError(f"Field {key!r} must be a non-negative integer in {item!r}")
    return value


def _records(snapshot: dict, key: str, required: bool = False) -> list[dict]:
    if key not in snapshot:
        if required:
            raise SnapshotFormatError(f"Snapshot is missing {key!r}")
        return []
    records = snapshot[key]
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise SnapshotFormatError(f"{key!r} must be a list of objects")
    return records


def _validate_snapshot(snapshot) -> dict:
    """Check a snapshot and return it normalised, or raise SnapshotFormatError."""
    if not isinstance(snapshot, dict):
        raise SnapshotFormatError("Snapshot must be an object")
    try:
        subjects = []
        for item in _records(snapshot, "subjects", required=True):
            subject = {
                "id": _text(item, "id"),
                "name": _text(item, "name"),
                "color": _text(item, "color", required=False) or DEFAULT_COLOR,
                "attended": _count(item, "attended"),
                "total_held": _count(item, "total_held"),
                "cancelled": _count(item, "cancelled"),
                "created_at": _text(item, "created_at", required=False) or datetime.now().isoformat(),
            }
            if subject["attended"] > subject["total_held"]:
                raise SnapshotFormatError(f"Subject {subject['id']!r} attended more classes than were held")
            subjects.append(subject)
        subject_ids = {s["id"] for s in subjects}

        recurring = []
        for item in _records(snapshot, "recurring_sessions", required=True):
            session = {
                "id": _text(item, "id"),
                "weekday": parse_weekday(_text(item, "weekday")),
                "subject_id": _text(item, "subject_id"),
                "start_time": parse_time(_text(item, "start_time"), "start_time"),
                "end_time": parse_optional_time(item.get("end_time")),
            }
            if session["subject_id"] not in subject_ids:
                raise SnapshotFormatError(f"Recurring session {session['id']!r} refers to an unknown subject")
            recurring.append(session)

        one_offs = []
        for item in _records(snapshot, "one_off_sessions"):
            one_offs.append({
                "id": _text(item, "id"),
                "date": parse_date(item.get("date")).isoformat(),
                "subject_id": _text(item, "subject_id"),
                "start_time": parse_time(_text(item, "start_time"), "start_time"),
                "end_time": parse_optional_time(item.get("end_time")),
                "created_at": _text(item, "created_at", required=False) or datetime.now().isoformat(),
            })

        history = []
        for item in _records(snapshot, "history"):
            entry = {
                "id": _text(item, "id"),
                "session_id": _text(item, "session_id"),
                "subject_id": _text(item, "subject_id"),
                "status": parse_status(item.get("status")).value,
                "date": parse_date(item.get("date")).isoformat(),
                "timestamp": _text(item, "timestamp"),
            }
            if entry["subject_id"] not in subject_ids:
                raise SnapshotFormatError(f"History entry {entry['id']!r} refers to an unknown subject")
            history.append(entry)

        raw_settings = snapshot.get("settings") or {}
        if not isinstance(raw_settings, dict):
            raise SnapshotFormatError("'settings' must be an object")
        settings = asdict(DEFAULT_SETTINGS)
        for key in settings:
            if key in raw_settings:
                settings[key] = clean_setting(key, raw_settings[key])

        notes = snapshot.get("notes") or {}
        if not isinstance(notes, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in notes.items()
        ):
            raise SnapshotFormatError("'notes' must map session ids to text")
    except ValidationError as exc:
        raise SnapshotFormatError(str(exc)) from exc

    return {
        "subjects": subjects,
        "recurring_sessions": recurring,
        "one_off_sessions": one_offs,
        "history": history,
        "settings": settings,
        "notes": {k: v.strip() for k, v in notes.items() if v.strip()},
    }


def import_snapshot(db_path: str, snapshot: dict) -> bool:
    """Replace all local data with a snapshot. Returns False, changing nothing, if it is rejected."""
    try:
        data = _validate_snapshot(snapshot)
        with transaction(db_path) as conn:
            for table in DATA_TABLES:
                conn.execute(f"DELETE FROM {table}")
            conn.executemany(
                """INSERT INTO subjects (id, name, color, attended, total_held, cancelled, created_at)
                VALUES (:id, :name, :color, :attended, :total_held, :cancelled, :created_at)""",
                data["subjects"],
            )
            conn.executemany(
                """INSERT INTO recurring_sessions (id, weekday, subject_id, start_time, end_time)
                VALUES (:id, :weekday, :subject_id, :start_time, :end_time)""",
                data["recurring_sessions"],
            )
            conn.executemany(
                """INSERT INTO one_off_sessions (id, date, subject_id, start_time, end_time, created_at)
                VALUES (:id, :date, :subject_id, :start_time, :end_time, :created_at)""",
                data["one_off_sessions"],
            )
            conn.executemany(
                """INSERT INTO attendance_log (id, session_id, subject_id, status, date, timestamp)
                VALUES (:id, :session_id, :subject_id, :status, :date, :timestamp)""",
                data["history"],
            )
            conn.executemany(
                "INSERT INTO session_notes (session_id, note) VALUES (?, ?)",
                list(data["notes"].items()),
            )
            for key, value in data["settings"].items():
                write_setting(conn, key, value)
            queue_event(conn, "snapshot", {"action": "import"})
    except (SnapshotFormatError, sqlite3.Error) as exc:
        logger.warning("Snapshot import failed: %s", exc)
        return False
    logger.info(
        "Imported snapshot with %d subjects and %d history entries",
        len(data["subjects"]), len(data["history"]),
    )
    return True


def export_to_file(db_path: str, file_path: str) -> Path:
    """Write a snapshot to .json, or .yaml/.yml when the suffix asks for it."""
    path = Path(file_path)
    snapshot = export_snapshot(db_path)
    if path.suffix.lower() in (".yaml", ".yml"):
        path.write_text(yaml.safe_dump(snapshot, sort_keys=False))
    else:
        path.write_text(json.dumps(snapshot, indent=2))
    return path


def import_from_file(db_path: str, file_path: str) -> bool:
    path = Path(file_path)
    try:
        text = path.read_text()
        if path.suffix.lower() in (".yaml", ".yml"):
            snapshot = yaml.safe_load(text)
        else:
            snapshot = json.loads(text)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.warning("Could not read backup %s: %s", file_path, exc)
        return False
    return import_snapshot(db_path, snapshot)


def clear_all_data(db_path: str) -> None:
    """Remove subjects, sessions, history, notes and settings."""
    with transaction(db_path) as conn:
        for table in DATA_TABLES:
            conn.execute(f"DELETE FROM {table}")
        queue_event(conn, "snapshot", {"action": "clear"})
    logger.info("Cleared all attendance data")
