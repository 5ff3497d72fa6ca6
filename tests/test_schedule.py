# tests/test_schedule.py
from datetime import date
from unittest.mock import patch

from attendo.ledger import mark_attendance
from attendo.models import AttendanceStatus
from attendo.schedule import sessions_for_date, todays_sessions
from attendo.subjects import create_subject, delete_subject
from attendo.timetable import add_one_off, add_recurring

MONDAY = date(2026, 2, 2)


def test_extra_classes_merge_into_weekly_schedule(db):
    a = create_subject(db, "Algorithms")
    b = create_subject(db, "Biology")
    add_recurring(db, "monday", a.id, "09:00")
    add_one_off(db, MONDAY, b.id, "08:00")
    sessions = sessions_for_date(db, "monday", MONDAY)
    assert [(s.subject.name, s.start_time, s.is_extra) for s in sessions] == [
        ("Biology", "08:00", True),
        ("Algorithms", "09:00", False),
    ]


def test_extra_classes_only_on_their_date(db):
    a = create_subject(db, "Algorithms")
    add_recurring(db, "monday", a.id, "09:00")
    add_one_off(db, MONDAY, a.id, "15:00")
    next_monday = sessions_for_date(db, "monday", date(2026, 2, 9))
    assert [s.start_time for s in next_monday] == ["09:00"]


def test_other_weekday_excluded(db):
    a = create_subject(db, "Algorithms")
    add_recurring(db, "tuesday", a.id, "09:00")
    assert sessions_for_date(db, "monday", MONDAY) == []


def test_weekly_class_before_extra_at_same_time(db):
    a = create_subject(db, "Algorithms")
    b = create_subject(db, "Biology")
    extra = add_one_off(db, MONDAY, b.id, "10:00")
    weekly = add_recurring(db, "monday", a.id, "10:00")
    assert [s.id for s in sessions_for_date(db, "monday", MONDAY)] == [weekly.id, extra.id]


def test_status_attached_for_that_date_only(db):
    a = create_subject(db, "Algorithms")
    slot = add_recurring(db, "monday", a.id, "09:00")
    mark_attendance(db, slot.id, a.id, "attended", on_date=MONDAY)
    assert sessions_for_date(db, "monday", MONDAY)[0].status is AttendanceStatus.ATTENDED
    assert sessions_for_date(db, "monday", date(2026, 2, 9))[0].status is None


def test_resolved_subject_reflects_counters(db):
    a = create_subject(db, "Algorithms")
    slot = add_recurring(db, "monday", a.id, "09:00")
    mark_attendance(db, slot.id, a.id, "missed", on_date=MONDAY)
    session = sessions_for_date(db, "monday", MONDAY)[0]
    assert session.subject.total_held == 1


def test_orphaned_extra_class_is_dropped(db):
    a = create_subject(db, "Algorithms")
    b = create_subject(db, "Biology")
    add_recurring(db, "monday", a.id, "09:00")
    add_one_off(db, MONDAY, b.id, "08:00")
    delete_subject(db, b.id)
    sessions = sessions_for_date(db, "monday", MONDAY)
    assert [s.subject.name for s in sessions] == ["Algorithms"]


def test_todays_sessions_uses_given_date(db):
    a = create_subject(db, "Algorithms")
    add_recurring(db, "wednesday", a.id, "09:00")
    assert len(todays_sessions(db, today=date(2026, 2, 4))) == 1
    assert todays_sessions(db, today=MONDAY) == []


def test_todays_sessions_defaults_to_local_today(db):
    a = create_subject(db, "Algorithms")
    add_recurring(db, "monday", a.id, "09:00")
    with patch("attendo.schedule.local_today", return_value=MONDAY):
        assert len(todays_sessions(db)) == 1
