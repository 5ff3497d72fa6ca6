# tests/test_dashboard.py
from datetime import date

from attendo.dashboard import attendance_warnings, get_overall_stats, subject_summaries
from attendo.ledger import mark_attendance
from attendo.models import StatusKind
from attendo.settings import update_setting
from attendo.subjects import create_subject

DAY = date(2026, 2, 2)


def record(db, subject, attended, missed):
    for i in range(attended):
        mark_attendance(db, f"{subject.name}-a{i}", subject.id, "attended", on_date=DAY)
    for i in range(missed):
        mark_attendance(db, f"{subject.name}-m{i}", subject.id, "missed", on_date=DAY)


def setup_subjects(db):
    physics = create_subject(db, "Physics")
    maths = create_subject(db, "Maths")
    chemistry = create_subject(db, "Chemistry")
    art = create_subject(db, "Art")
    record(db, physics, 3, 1)     # 75%
    record(db, maths, 1, 3)       # 25%
    record(db, chemistry, 9, 1)   # 90%
    return physics, maths, chemistry, art


def test_overall_stats_empty(db):
    stats = get_overall_stats(db)
    assert stats == {
        "subjects": 0,
        "safe_subjects": 0,
        "total_held": 0,
        "total_attended": 0,
        "overall_percentage": 0.0,
    }


def test_overall_stats(db):
    setup_subjects(db)
    stats = get_overall_stats(db)
    assert stats["subjects"] == 4
    assert stats["safe_subjects"] == 3  # only Maths is in danger
    assert stats["total_held"] == 18
    assert stats["total_attended"] == 13
    assert stats["overall_percentage"] == 72.2


def test_subject_summaries(db):
    setup_subjects(db)
    rows = {r["subject"].name: r for r in subject_summaries(db)}
    assert rows["Physics"]["kind"] is StatusKind.WARNING
    assert rows["Physics"]["color"] == "yellow"
    assert rows["Maths"]["kind"] is StatusKind.DANGER
    assert rows["Maths"]["attend_requirement"] == 8
    assert rows["Maths"]["message"] == "Attend next 8 classes to recover"
    assert rows["Chemistry"]["kind"] is StatusKind.SAFE
    assert rows["Chemistry"]["skip_budget"] == 2
    assert rows["Art"]["percentage"] == 100.0
    assert rows["Art"]["kind"] is StatusKind.WARNING
    assert all(r["target"] == 75.0 for r in rows.values())


def test_summaries_follow_target_setting(db):
    physics, *_ = setup_subjects(db)
    update_setting(db, "target_attendance", 50)
    rows = {r["subject"].name: r for r in subject_summaries(db)}
    assert rows["Physics"]["kind"] is StatusKind.SAFE
    assert rows["Physics"]["skip_budget"] == 2


def test_attendance_warnings(db):
    setup_subjects(db)
    warnings = {w["subject"].name: w for w in attendance_warnings(db)}
    assert set(warnings) == {"Physics", "Maths"}
    assert warnings["Physics"]["level"] == "dropping"
    assert warnings["Physics"]["margin"] == 0.0
    assert warnings["Maths"]["level"] == "below"
    assert warnings["Maths"]["classes_to_attend"] == 8


def test_attendance_warnings_wider_margin(db):
    setup_subjects(db)
    warnings = {w["subject"].name: w["level"] for w in attendance_warnings(db, margin=20)}
    assert warnings["Chemistry"] == "dropping"
    assert "Art" not in warnings


def test_subject_exactly_at_target_is_dropping(db):
    physics = create_subject(db, "Physics")
    record(db, physics, 3, 1)
    [warning] = attendance_warnings(db)
    assert warning["level"] == "dropping"


def test_subject_at_zero_percent_is_below(db):
    physics = create_subject(db, "Physics")
    record(db, physics, 0, 2)
    [warning] = attendance_warnings(db)
    assert warning["level"] == "below"
    assert warning["classes_to_attend"] == 6


def test_no_warnings_when_notifications_off(db):
    setup_subjects(db)
    update_setting(db, "notifications_enabled", False)
    assert attendance_warnings(db) == []
