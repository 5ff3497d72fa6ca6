"""Attendance threshold arithmetic.

All functions are pure over a subject's (attended, total_held) counters and a
target percentage. Cancelled classes never enter the arithmetic. Results are
full precision; rounding for display is the caller's job.
"""
import math

from attendo.models import SimulationAction, Simulation, StatusKind, SubjectStatus

DEFAULT_TARGET = 75.0


def percentage(attended: int, total_held: int) -> float:
    """Attendance percentage; 100.0 when nothing has been held yet."""
    if total_held == 0:
        return 100.0
    return 100 * attended / total_held


def classes_to_skip(attended: int, total_held: int, target: float = DEFAULT_TARGET) -> int:
    """How many more held classes can be missed while staying at or above target.

    Solves attended / (total_held + X) = target / 100 for X.
    """
    if total_held == 0:
        return 0
    max_total = attended / (target / 100)
    return max(0, math.floor(max_total - total_held))


def classes_to_attend(attended: int, total_held: int, target: float = DEFAULT_TARGET) -> int:
    """How many consecutive classes must be attended to get back to target.

    Solves (attended + Y) / (total_held + Y) = target / 100 for Y.
    """
    if percentage(attended, total_held) >= target:
        return 0
    ratio = target / 100
    needed = math.ceil((ratio * total_held - attended) / (1 - ratio))
    return max(0, needed)


def get_status(attended: int, total_held: int, target: float = DEFAULT_TARGET) -> SubjectStatus:
    pct = percentage(attended, total_held)
    if pct >= target:
        budget = classes_to_skip(attended, total_held, target)
        if budget > 0:
            return SubjectStatus(kind=StatusKind.SAFE, percentage=pct, skip_budget=budget)
        return SubjectStatus(kind=StatusKind.WARNING, percentage=pct)
    needed = classes_to_attend(attended, total_held, target)
    return SubjectStatus(kind=StatusKind.DANGER, percentage=pct, attend_requirement=needed)


def simulate(
    attended: int,
    total_held: int,
    action: SimulationAction | str,
    target: float = DEFAULT_TARGET,
) -> Simulation:
    """Preview the next class being skipped or attended. Nothing is stored."""
    action = SimulationAction(action)
    new_attended, new_held = attended, total_held + 1
    if action is SimulationAction.ATTEND:
        new_attended += 1
    old_pct = percentage(attended, total_held)
    new_pct = percentage(new_attended, new_held)
    return Simulation(
        old_percentage=old_pct,
        new_percentage=new_pct,
        dropped=new_pct < old_pct,
        crossed_threshold_downward=old_pct >= target > new_pct,
    )


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def _plural(count: int) -> str:
    return "class" if count == 1 else "classes"


def status_message(status: SubjectStatus) -> str:
    if status.kind is StatusKind.SAFE:
        return f"You can bunk {status.skip_budget} more {_plural(status.skip_budget)}"
    if status.kind is StatusKind.WARNING:
        return "Borderline! Don't miss the next class."
    return f"Attend next {status.attend_requirement} {_plural(status.attend_requirement)} to recover"


def status_color(kind: StatusKind) -> str:
    return {
        StatusKind.SAFE: "green",
        StatusKind.WARNING: "yellow",
        StatusKind.DANGER: "red",
    }[kind]
