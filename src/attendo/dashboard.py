"""Per-subject standing, overall statistics and attendance warnings."""
from attendo.models import StatusKind
from attendo.settings import get_settings, get_target
from attendo.subjects import list_subjects
from attendo.threshold import get_status, status_color, status_message


def subject_summaries(db_path: str) -> list[dict]:
    target = get_target(db_path)
    results = []
    for subject in list_subjects(db_path):
        status = get_status(subject.attended, subject.total_held, target)
        results.append({
            "subject": subject,
            "percentage": status.percentage,
            "kind": status.kind,
            "skip_budget": status.skip_budget,
            "attend_requirement": status.attend_requirement,
            "message": status_message(status),
            "color": status_color(status.kind),
            "target": target,
        })
    return results


def get_overall_stats(db_path: str) -> dict:
    target = get_target(db_path)
    subjects = list_subjects(db_path)
    total_held = sum(s.total_held for s in subjects)
    total_attended = sum(s.attended for s in subjects)
    safe = sum(
        1 for s in subjects
        if get_status(s.attended, s.total_held, target).kind is not StatusKind.DANGER
    )
    overall = round(total_attended / total_held * 100, 1) if total_held else 0.0
    return {
        "subjects": len(subjects),
        "safe_subjects": safe,
        "total_held": total_held,
        "total_attended": total_attended,
        "overall_percentage": overall,
    }


def attendance_warnings(db_path: str, margin: float = 5.0) -> list[dict]:
    """Subjects close to or under the target.

    Subjects with nothing held are ignored, and nothing is returned while
    notifications are switched off.
    """
    settings = get_settings(db_path)
    if not settings.notifications_enabled:
        return []
    target = float(settings.target_attendance)
    warnings = []
    for subject in list_subjects(db_path):
        if subject.total_held == 0:
            continue
        status = get_status(subject.attended, subject.total_held, target)
        gap = status.percentage - target
        if 0 <= gap <= margin:
            warnings.append({
                "subject": subject,
                "level": "dropping",
                "percentage": status.percentage,
                "margin": gap,
            })
        elif gap < 0:
            warnings.append({
                "subject": subject,
                "level": "below",
                "percentage": status.percentage,
                "margin": gap,
                "classes_to_attend": status.attend_requirement,
            })
    return warnings
