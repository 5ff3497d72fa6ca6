"""Work out which reminders are due at a given moment.

Nothing here sends anything. Each reminder carries a ``key`` that is unique
per day, so a caller polling every minute can remember what it already
delivered and skip repeats.
"""
from datetime import datetime

from attendo.models import ResolvedSession
from attendo.schedule import todays_sessions
from attendo.settings import get_settings

# Minutes before a class starts in which its reminder is due.
CLASS_REMINDER_WINDOW = (25, 35)


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def class_reminders(sessions: list[ResolvedSession], now: datetime,
                    window: tuple[int, int] = CLASS_REMINDER_WINDOW) -> list[dict]:
    """Reminders for unmarked classes starting within ``window`` minutes of ``now``."""
    current = now.hour * 60 + now.minute
    low, high = window
    day_key = now.date().isoformat()
    reminders = []
    for s in sessions:
        if s.status is not None:
            continue
        minutes_until = _minutes(s.start_time) - current
        if low <= minutes_until <= high:
            reminders.append({
                "kind": "class",
                "key": f"{day_key}_{s.id}",
                "session": s,
                "minutes_until": minutes_until,
                "title": f"{s.subject.name} in {minutes_until} min",
                "body": f"Your {s.subject.name} class is at {s.start_time}. Get ready!",
            })
    return reminders


def due_reminders(db_path: str, now: datetime | None = None) -> list[dict]:
    """Class, morning and daily reminders due at ``now`` under the user's settings."""
    settings = get_settings(db_path)
    if not settings.notifications_enabled:
        return []
    now = now or datetime.now()
    current_time = now.strftime("%H:%M")
    day_key = now.date().isoformat()
    sessions = todays_sessions(db_path, now.date())

    reminders = class_reminders(sessions, now)
    if settings.morning_reminder_enabled and current_time == settings.morning_reminder_time and sessions:
        count = len(sessions)
        reminders.append({
            "kind": "morning",
            "key": f"{day_key}_morning",
            "title": "AttenDO",
            "body": f"{count} class{'es' if count != 1 else ''} today, "
                    f"first at {sessions[0].start_time}.",
        })
    if current_time == settings.notification_time:
        reminders.append({
            "kind": "daily",
            "key": f"{day_key}_daily",
            "title": "AttenDO",
            "body": "Don't forget to mark your attendance for today!",
        })
    return reminders
