"""Resolve the classes of a calendar date.

A date's schedule is the weekly template for its weekday merged with any
extra classes booked for that exact date, each joined with its subject and
the ledger status recorded for that date. Sessions whose subject has been
deleted are dropped. Ordering is by start time; at equal times weekly
classes come before extra ones, then insertion order.
"""
import logging
from datetime import date

from attendo.ledger import history_for_date
from attendo.models import ResolvedSession
from attendo.subjects import list_subjects
from attendo.timetable import one_offs_for_date, sessions_for_day
from attendo.validation import local_today, parse_date, weekday_of

logger = logging.getLogger(__name__)


def sessions_for_date(db_path: str, weekday: str, on_date: date | str) -> list[ResolvedSession]:
    on_date = parse_date(on_date)
    subjects = {s.id: s for s in list_subjects(db_path)}
    statuses = {e.session_id: e.status for e in history_for_date(db_path, on_date)}

    candidates = [(s, False) for s in sessions_for_day(db_path, weekday)]
    candidates += [(s, True) for s in one_offs_for_date(db_path, on_date)]

    resolved = []
    for session, is_extra in candidates:
        subject = subjects.get(session.subject_id)
        if subject is None:
            logger.debug("Skipping session %s: subject %s no longer exists", session.id, session.subject_id)
            continue
        resolved.append(ResolvedSession(
            id=session.id,
            subject=subject,
            start_time=session.start_time,
            end_time=session.end_time,
            is_extra=is_extra,
            status=statuses.get(session.id),
        ))
    # Stable sort keeps weekly-before-extra and insertion order for equal times.
    resolved.sort(key=lambda s: s.start_time)
    return resolved


def todays_sessions(db_path: str, today: date | None = None) -> list[ResolvedSession]:
    today = today or local_today()
    return sessions_for_date(db_path, weekday_of(today), today)
