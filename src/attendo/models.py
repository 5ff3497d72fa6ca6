"""Data classes for the attendance domain model."""
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class AttendanceStatus(str, Enum):
    """Outcome recorded for one session on one date."""

    ATTENDED = "attended"
    MISSED = "missed"
    CANCELLED = "cancelled"


class StatusKind(str, Enum):
    SAFE = "safe"
    WARNING = "warning"
    DANGER = "danger"


class SimulationAction(str, Enum):
    SKIP = "skip"
    ATTEND = "attend"


@dataclass
class Subject:
    id: str
    name: str
    color: str
    attended: int = 0
    total_held: int = 0
    cancelled: int = 0
    created_at: Optional[str] = None


@dataclass
class RecurringSession:
    id: str
    weekday: str
    subject_id: str
    start_time: str
    end_time: Optional[str] = None


@dataclass
class OneOffSession:
    id: str
    date: date
    subject_id: str
    start_time: str
    end_time: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class LedgerEntry:
    id: str
    session_id: str
    subject_id: str
    status: AttendanceStatus
    date: date
    timestamp: str


@dataclass
class ResolvedSession:
    """A session as it appears on a given date, joined with its subject and ledger status."""

    id: str
    subject: Subject
    start_time: str
    end_time: Optional[str]
    is_extra: bool
    status: Optional[AttendanceStatus] = None

    @property
    def subject_id(self) -> str:
        return self.subject.id


@dataclass
class Settings:
    notifications_enabled: bool = True
    notification_time: str = "17:00"
    morning_reminder_enabled: bool = False
    morning_reminder_time: str = "08:00"
    target_attendance: float = 75.0


@dataclass(frozen=True)
class SubjectStatus:
    kind: StatusKind
    percentage: float
    skip_budget: int = 0
    attend_requirement: int = 0


@dataclass(frozen=True)
class Simulation:
    old_percentage: float
    new_percentage: float
    dropped: bool
    crossed_threshold_downward: bool


@dataclass
class OutboxEvent:
    id: int
    topic: str
    payload: Optional[dict]
    created_at: str
    attempts: int = 0
    next_attempt_at: Optional[str] = None
    last_error: Optional[str] = None
