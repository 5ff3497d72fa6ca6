# tests/test_backup.py
import json
from datetime import date, datetime

import pytest

from attendo.db import init_db
from attendo.backup import (
    clear_all_data, export_snapshot, export_to_file, import_from_file, import_snapshot,
)
from attendo.ledger import get_history, mark_attendance
from attendo.settings import get_settings, update_setting
from attendo.subjects import create_subject, list_subjects
from attendo.timetable import add_one_off, add_recurring, get_notes, list_recurring, set_note

MONDAY = date(2026, 2, 2)
EXPORTED_AT = datetime(2026, 2, 3, 8, 0)


def populate(db):
    physics = create_subject(db, "Physics", "#ff0000")
    maths = create_subject(db, "Maths", "#00ff00")
    p_slot = add_recurring(db, "monday", physics.id, "09:00", "10:00")
    add_recurring(db, "monday", maths.id, "09:00")
    extra = add_one_off(db, MONDAY, maths.id, "15:00")
    mark_attendance(db, p_slot.id, physics.id, "attended", on_date=MONDAY)
    mark_attendance(db, extra.id, maths.id, "missed", on_date=MONDAY)
    set_note(db, p_slot.id, "Room 101")
    update_setting(db, "target_attendance", 80)
    return physics, maths


def test_export_snapshot_shape(db):
    populate(db)
    snapshot = export_snapshot(db, now=EXPORTED_AT)
    assert snapshot["version"] == "1.0"
    assert snapshot["exported_at"] == "2026-02-03T08:00:00"
    assert len(snapshot["subjects"]) == 2
    assert len(snapshot["recurring_sessions"]) == 2
    assert snapshot["one_off_sessions"][0]["date"] == "2026-02-02"
    assert {h["status"] for h in snapshot["history"]} == {"attended", "missed"}
    assert snapshot["settings"]["target_attendance"] == 80.0
    json.dumps(snapshot)  # must be JSON serialisable


def test_round_trip_reproduces_store(db, tmp_path):
    populate(db)
    snapshot = export_snapshot(db, now=EXPORTED_AT)

    other = str(tmp_path / "other.db")
    init_db(other)
    create_subject(other, "Leftover")
    assert import_snapshot(other, snapshot) is True
    assert export_snapshot(other, now=EXPORTED_AT) == snapshot


def test_import_into_same_store_is_identity(db):
    populate(db)
    snapshot = export_snapshot(db, now=EXPORTED_AT)
    assert import_snapshot(db, snapshot) is True
    assert export_snapshot(db, now=EXPORTED_AT) == snapshot


@pytest.mark.parametrize("bad", [
    None,
    [],
    "not a snapshot",
    {},
    {"subjects": []},
    {"recurring_sessions": []},
    {"subjects": "nope", "recurring_sessions": []},
    {"subjects": [{"id": "x"}], "recurring_sessions": []},
    {"subjects": [{"id": "x", "name": "A", "attended": 3, "total_held": 1}], "recurring_sessions": []},
    {"subjects": [{"id": "x", "name": "A", "attended": -1}], "recurring_sessions": []},
    {"subjects": [{"id": "x", "name": "A", "total_held": 10**20}], "recurring_sessions": []},
    {"subjects": [], "recurring_sessions": [
        {"id": "r", "weekday": "monday", "subject_id": "missing", "start_time": "09:00"}]},
    {"subjects": [{"id": "x", "name": "A"}], "recurring_sessions": [
        {"id": "r", "weekday": "moonday", "subject_id": "x", "start_time": "09:00"}]},
    {"subjects": [{"id": "x", "name": "A"}], "recurring_sessions": [], "history": [
        {"id": "h", "session_id": "r", "subject_id": "x", "status": "late",
         "date": "2026-02-02", "timestamp": "t"}]},
    {"subjects": [{"id": "x", "name": "A"}], "recurring_sessions": [],
     "settings": {"target_attendance": 120}},
    {"subjects": [{"id": "x", "name": "A"}, {"id": "x", "name": "B"}], "recurring_sessions": []},
])
def test_invalid_snapshot_rejected_without_changes(db, bad):
    populate(db)
    before = export_snapshot(db, now=EXPORTED_AT)
    assert import_snapshot(db, bad) is False
    assert export_snapshot(db, now=EXPORTED_AT) == before


def test_import_fills_defaults(db):
    snapshot = {
        "subjects": [{"id": "s1", "name": "Art", "attended": 2, "total_held": 3}],
        "recurring_sessions": [{"id": "r1", "weekday": "Friday", "subject_id": "s1", "start_time": "9:05"}],
        "settings": {"target_attendance": 60, "someOldKey": True},
    }
    assert import_snapshot(db, snapshot) is True
    subject = list_subjects(db)[0]
    assert subject.color == "#6366f1"
    assert subject.cancelled == 0
    slot = list_recurring(db)[0]
    assert slot.weekday == "friday"
    assert slot.start_time == "09:05"
    settings = get_settings(db)
    assert settings.target_attendance == 60.0
    assert settings.notification_time == "17:00"
    assert get_history(db) == []


def test_import_keeps_orphaned_one_offs(db):
    snapshot = {
        "subjects": [],
        "recurring_sessions": [],
        "one_off_sessions": [{"id": "o1", "date": "2026-02-02", "subject_id": "gone", "start_time": "10:00"}],
    }
    assert import_snapshot(db, snapshot) is True


def test_export_and_import_json_file(db, tmp_path):
    populate(db)
    path = export_to_file(db, str(tmp_path / "backup.json"))
    snapshot = json.loads(path.read_text())
    clear_all_data(db)
    assert list_subjects(db) == []
    assert import_from_file(db, str(path)) is True
    assert [s.name for s in list_subjects(db)] == ["Physics", "Maths"]
    assert export_snapshot(db, now=EXPORTED_AT)["history"] == snapshot["history"]


def test_export_and_import_yaml_file(db, tmp_path):
    populate(db)
    before = export_snapshot(db, now=EXPORTED_AT)
    path = export_to_file(db, str(tmp_path / "backup.yaml"))
    clear_all_data(db)
    assert import_from_file(db, str(path)) is True
    assert export_snapshot(db, now=EXPORTED_AT) == before


def test_import_from_bad_file(db, tmp_path):
    populate(db)
    bad = tmp_path / "broken.json"
    bad.write_text("{not json")
    assert import_from_file(db, str(bad)) is False
    assert import_from_file(db, str(tmp_path / "missing.json")) is False
    assert len(list_subjects(db)) == 2


def test_clear_all_data(db):
    populate(db)
    clear_all_data(db)
    assert list_subjects(db) == []
    assert list_recurring(db) == []
    assert get_history(db) == []
    assert get_notes(db) == {}
    assert get_settings(db).target_attendance == 75.0
