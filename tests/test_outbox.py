# tests/test_outbox.py
from datetime import datetime, timedelta

import pytest

from attendo.db import transaction
from attendo.outbox import (
    BASE_BACKOFF_SECONDS, MAX_BACKOFF_SECONDS, acknowledge, backoff_delay, pending_events,
    pending_topics, purge_delivered, queue_event, record_failure,
)
from attendo.subjects import create_subject

NOW = datetime(2026, 2, 2, 12, 0)


def test_mutations_queue_events(db):
    create_subject(db, "Physics")
    events = pending_events(db, now=NOW)
    assert [e.topic for e in events] == ["subjects"]
    assert events[0].payload["action"] == "create"


def test_rolled_back_write_queues_nothing(db):
    with pytest.raises(RuntimeError):
        with transaction(db) as conn:
            queue_event(conn, "settings", {"key": "x"})
            raise RuntimeError("boom")
    assert pending_events(db, now=NOW) == []


def test_unknown_topic_rejected(db):
    with transaction(db) as conn:
        with pytest.raises(ValueError):
            queue_event(conn, "gossip")


def test_acknowledge(db):
    create_subject(db, "Physics")
    create_subject(db, "Maths")
    events = pending_events(db, now=NOW)
    assert acknowledge(db, [events[0].id], now=NOW) == 1
    assert [e.id for e in pending_events(db, now=NOW)] == [events[1].id]
    assert acknowledge(db, []) == 0


def test_pending_topics_collapses_bursts(db):
    for name in ("A", "B", "C"):
        create_subject(db, name)
    with transaction(db) as conn:
        queue_event(conn, "settings")
    assert pending_topics(db, now=NOW) == ["subjects", "settings"]


def test_record_failure_backs_off(db):
    create_subject(db, "Physics")
    event = pending_events(db, now=NOW)[0]
    record_failure(db, event.id, "network down", now=NOW)
    assert pending_events(db, now=NOW) == []
    retry_at = NOW + timedelta(seconds=BASE_BACKOFF_SECONDS)
    retried = pending_events(db, now=retry_at)
    assert retried[0].attempts == 1
    assert retried[0].last_error == "network down"
    record_failure(db, event.id, "still down", now=retry_at)
    assert pending_events(db, now=retry_at + timedelta(seconds=BASE_BACKOFF_SECONDS)) == []
    assert len(pending_events(db, now=retry_at + timedelta(seconds=2 * BASE_BACKOFF_SECONDS))) == 1


def test_backoff_is_capped():
    assert backoff_delay(0) == timedelta(seconds=BASE_BACKOFF_SECONDS)
    assert backoff_delay(50) == timedelta(seconds=MAX_BACKOFF_SECONDS)


def test_purge_delivered(db):
    create_subject(db, "Physics")
    event = pending_events(db, now=NOW)[0]
    acknowledge(db, [event.id], now=NOW)
    assert purge_delivered(db) == 1
