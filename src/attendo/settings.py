"""User preferences stored in the user_settings table."""
import json
import logging
from dataclasses import asdict, fields

from attendo.db import get_connection, transaction
from attendo.errors import ValidationError
from attendo.models import Settings
from attendo.outbox import queue_event
from attendo.validation import parse_time, validate_target

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = Settings()

TIME_KEYS = {"notification_time", "morning_reminder_time"}
BOOL_KEYS = {"notifications_enabled", "morning_reminder_enabled"}


def get_setting(db_path: str, key: str, default=None):
    conn = get_connection(db_path)
    row = conn.execute("SELECT value FROM user_settings WHERE key = ?", (key,)).fetchone()
    conn.close()
    return json.loads(row["value"]) if row else default


def set_setting(db_path: str, key: str, value) -> None:
    """Store a raw value with no validation; prefer update_setting for known keys."""
    with transaction(db_path) as conn:
        write_setting(conn, key, value)
        queue_event(conn, "settings", {"key": key})


def write_setting(conn, key: str, value) -> None:
    encoded = json.dumps(value)
    conn.execute(
        "INSERT INTO user_settings (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=?",
        (key, encoded, encoded),
    )


def clean_setting(key: str, value):
    """Validate a value for a known settings key and return it normalised."""
    if key == "target_attendance":
        return validate_target(value)
    if key in TIME_KEYS:
        return parse_time(value, key)
    if key in BOOL_KEYS:
        if not isinstance(value, bool):
            raise ValidationError(f"{key} must be true or false, got {value!r}")
        return value
    raise ValidationError(f"Unknown setting {key!r}")


def update_setting(db_path: str, key: str, value) -> Settings:
    value = clean_setting(key, value)
    set_setting(db_path, key, value)
    logger.info("Setting %s updated to %r", key, value)
    return get_settings(db_path)


def get_settings(db_path: str) -> Settings:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT key, value FROM user_settings").fetchall()
    conn.close()
    stored = {r["key"]: json.loads(r["value"]) for r in rows}
    values = asdict(DEFAULT_SETTINGS)
    for f in fields(Settings):
        if f.name in stored:
            values[f.name] = stored[f.name]
    return Settings(**values)


def get_target(db_path: str) -> float:
    return float(get_settings(db_path).target_attendance)
