"""Boundary checks shared by the store modules."""
import re
from datetime import date, datetime

from attendo.errors import ValidationError
from attendo.models import WEEKDAYS, AttendanceStatus

TIME_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def require_non_empty(value: str, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must not be empty")
    return value.strip()


def parse_time(value: str, field_name: str = "time") -> str:
    """Validate an ``H:MM``/``HH:MM`` clock time and return it zero-padded."""
    match = TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise ValidationError(f"{field_name} must be HH:MM, got {value!r}")
    return f"{int(match.group(1)):02d}:{match.group(2)}"


def parse_optional_time(value: str | None, field_name: str = "end_time") -> str | None:
    if value is None or value == "":
        return None
    return parse_time(value, field_name)


def parse_weekday(value: str) -> str:
    day = value.strip().lower() if isinstance(value, str) else ""
    if day not in WEEKDAYS:
        raise ValidationError(f"Unknown weekday {value!r}")
    return day


def parse_date(value: date | str) -> date:
    """Accept a date or a YYYY-MM-DD string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Date must be YYYY-MM-DD, got {value!r}") from exc


def parse_status(value: AttendanceStatus | str) -> AttendanceStatus:
    try:
        return AttendanceStatus(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown attendance status {value!r}") from exc


def validate_target(value: float) -> float:
    """Target attendance must lie strictly between 0 and 100."""
    try:
        target = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Target attendance must be a number, got {value!r}") from exc
    if not 0 < target < 100:
        raise ValidationError(f"Target attendance must be between 0 and 100, got {target}")
    return target


def weekday_of(day: date) -> str:
    return WEEKDAYS[day.weekday()]


def local_today() -> date:
    """Today's date in the local calendar, not UTC."""
    return date.today()
