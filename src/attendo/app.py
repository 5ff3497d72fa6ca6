"""Interactive CLI application."""
import logging
import os
import sys
from datetime import date, datetime

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from attendo.backup import export_to_file, import_from_file
from attendo.dashboard import attendance_warnings, get_overall_stats, subject_summaries
from attendo.db import DEFAULT_DB_PATH, init_db
from attendo.errors import AttendoError
from attendo.ledger import history_for_subject, mark_attendance
from attendo.models import WEEKDAYS, AttendanceStatus, ResolvedSession, SimulationAction
from attendo.reminders import due_reminders
from attendo.schedule import sessions_for_date
from attendo.settings import get_settings, update_setting
from attendo.subjects import create_subject, delete_subject, get_subject_by_name, list_subjects
from attendo.threshold import format_percentage, simulate
from attendo.timetable import add_one_off, add_recurring, get_note, get_timetable, remove_recurring
from attendo.validation import local_today, parse_date, weekday_of

console = Console()
logger = logging.getLogger(__name__)

STATUS_STYLE = {
    AttendanceStatus.ATTENDED: "green",
    AttendanceStatus.MISSED: "red",
    AttendanceStatus.CANCELLED: "dim",
}

MARK_CHOICES = {
    "a": AttendanceStatus.ATTENDED,
    "m": AttendanceStatus.MISSED,
    "c": AttendanceStatus.CANCELLED,
}

EXIT_WORDS = {"q", "quit", "menu"}


class SessionExitRequested(Exception):
    """Raised when the user leaves a marking run before it is finished."""


def session_prompt(prompt: str, **kwargs) -> str:
    answer = Prompt.ask(prompt, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def show_welcome():
    console.print(Panel(
        "[bold]AttenDO[/bold]\n[dim]Know exactly how many classes you can skip[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("today", "Today's classes"),
        ("mark", "Mark attendance for a date"),
        ("dashboard", "Attendance per subject"),
        ("whatif", "What if I skip / attend the next class?"),
        ("history", "Attendance history of a subject"),
        ("subjects", "Add or delete subjects"),
        ("timetable", "Weekly timetable"),
        ("extra", "Add a one-off extra class"),
        ("settings", "Target attendance and reminders"),
        ("export", "Back up all data to a file"),
        ("import", "Restore data from a backup file"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<12}[/cyan] {desc}")


def pick_subject(db_path: str):
    subjects = list_subjects(db_path)
    if not subjects:
        console.print("[yellow]No subjects yet. Add one with 'subjects'.[/yellow]")
        return None
    for i, s in enumerate(subjects, 1):
        console.print(f"  [cyan]{i}[/cyan]) {s.name}")
    answer = Prompt.ask("Subject (number or name)").strip()
    if answer.isdigit() and 1 <= int(answer) <= len(subjects):
        return subjects[int(answer) - 1]
    subject = get_subject_by_name(db_path, answer)
    if subject is None:
        console.print(f"[red]No subject called {answer!r}[/red]")
    return subject


def render_sessions(db_path: str, sessions: list[ResolvedSession], title: str) -> None:
    if not sessions:
        console.print(f"[dim]{title}: no classes. Enjoy your free time![/dim]")
        return
    table = Table(title=title)
    table.add_column("Time")
    table.add_column("Subject", style="cyan")
    table.add_column("Status")
    table.add_column("Note", style="dim")
    for s in sessions:
        time_range = s.start_time + (f"-{s.end_time}" if s.end_time else "")
        name = s.subject.name + (" [magenta](extra)[/magenta]" if s.is_extra else "")
        if s.status:
            style = STATUS_STYLE[s.status]
            status = f"[{style}]{s.status.value}[/{style}]"
        else:
            status = "-"
        table.add_row(time_range, name, status, get_note(db_path, s.id))
    console.print(table)


def run_marking_session(db_path: str, sessions: list[ResolvedSession], on_date: date) -> int:
    """Ask for the outcome of each session; 's' leaves a session as it is."""
    marked = 0
    for s in sessions:
        current = f" (currently {s.status.value})" if s.status else ""
        answer = session_prompt(
            f"{s.start_time} {s.subject.name}{current} - [green]a[/green]ttended / "
            f"[red]m[/red]issed / [dim]c[/dim]ancelled / s=skip / q=stop",
            choices=["a", "m", "c", "s", "q"],
            default="s",
        )
        if answer == "s":
            continue
        mark_attendance(db_path, s.id, s.subject.id, MARK_CHOICES[answer], on_date=on_date)
        marked += 1
    return marked


def show_reminders(db_path: str, seen: set[str]) -> None:
    """Print reminders that are due and not shown yet this run."""
    for reminder in due_reminders(db_path):
        if reminder["key"] in seen:
            continue
        seen.add(reminder["key"])
        console.print(Panel(reminder["body"], title=reminder["title"], border_style="magenta"))


def cmd_today(db_path: str, today: date):
    sessions = sessions_for_date(db_path, weekday_of(today), today)
    render_sessions(db_path, sessions, f"{weekday_of(today).title()} {today.isoformat()}")


def cmd_mark(db_path: str, today: date):
    on_date = parse_date(Prompt.ask("Date (YYYY-MM-DD)", default=today.isoformat()))
    sessions = sessions_for_date(db_path, weekday_of(on_date), on_date)
    if not sessions:
        console.print("[yellow]No classes on that date.[/yellow]")
        return
    marked = run_marking_session(db_path, sessions, on_date)
    console.print(f"[green]Marked {marked} class{'es' if marked != 1 else ''}.[/green]")
    for w in attendance_warnings(db_path):
        name = w["subject"].name
        if w["level"] == "below":
            console.print(f"[red]{name} is at {format_percentage(w['percentage'])}. "
                          f"Attend {w['classes_to_attend']} more to recover.[/red]")
        else:
            console.print(f"[yellow]{name} is at {format_percentage(w['percentage'])}, "
                          f"only {w['margin']:.1f}% above target.[/yellow]")


def cmd_dashboard(db_path: str):
    stats = get_overall_stats(db_path)
    console.print(Panel(
        f"Subjects: [bold]{stats['subjects']}[/bold]  |  "
        f"On track: [bold]{stats['safe_subjects']}[/bold]  |  "
        f"Classes held: [bold]{stats['total_held']}[/bold]  |  "
        f"Overall: [bold]{stats['overall_percentage']}%[/bold]",
        title="Attendance Dashboard", border_style="blue",
    ))
    summaries = subject_summaries(db_path)
    if not summaries:
        console.print("[dim]No subjects added yet.[/dim]")
        return
    table = Table(title=f"Target {summaries[0]['target']:g}%")
    table.add_column("Subject", style="cyan")
    table.add_column("Attendance", justify="right")
    table.add_column("Classes", justify="right")
    table.add_column("Status")
    for row in summaries:
        subject = row["subject"]
        color = row["color"]
        table.add_row(
            subject.name,
            f"[{color}]{format_percentage(row['percentage'])}[/{color}]",
            f"{subject.attended} / {subject.total_held}",
            f"[{color}]{row['message']}[/{color}]",
        )
    console.print(table)


def cmd_whatif(db_path: str):
    subject = pick_subject(db_path)
    if subject is None:
        return
    target = get_settings(db_path).target_attendance
    for action in SimulationAction:
        sim = simulate(subject.attended, subject.total_held, action, target)
        line = (f"  If you {action.value} the next class: "
                f"{format_percentage(sim.old_percentage)} -> {format_percentage(sim.new_percentage)}")
        if sim.crossed_threshold_downward:
            line += f" [red](drops below {target:g}%)[/red]"
        console.print(line)


def cmd_history(db_path: str):
    subject = pick_subject(db_path)
    if subject is None:
        return
    entries = history_for_subject(db_path, subject.id)
    if not entries:
        console.print("[dim]Nothing marked yet.[/dim]")
        return
    table = Table(title=f"{subject.name} - Attendance History")
    table.add_column("Date")
    table.add_column("Status")
    for e in entries:
        style = STATUS_STYLE[e.status]
        table.add_row(e.date.isoformat(), f"[{style}]{e.status.value}[/{style}]")
    console.print(table)


def cmd_subjects(db_path: str):
    for s in list_subjects(db_path):
        console.print(f"  [cyan]{s.name}[/cyan] {s.attended}/{s.total_held} "
                      f"([dim]{s.cancelled} cancelled[/dim])")
    action = Prompt.ask("Action", choices=["add", "delete", "back"], default="back")
    if action == "add":
        name = Prompt.ask("Subject name")
        color = Prompt.ask("Color", default="#6366f1")
        subject = create_subject(db_path, name, color)
        console.print(f"[green]Added {subject.name}.[/green]")
    elif action == "delete":
        subject = pick_subject(db_path)
        if subject and Confirm.ask(f"Delete {subject.name} and all its history?", default=False):
            delete_subject(db_path, subject.id)
            console.print(f"[green]Deleted {subject.name}.[/green]")


def cmd_timetable(db_path: str):
    subjects = {s.id: s.name for s in list_subjects(db_path)}
    table = Table(title="Weekly Timetable")
    table.add_column("Day", style="cyan")
    table.add_column("Classes")
    timetable = get_timetable(db_path)
    for day in WEEKDAYS:
        slots = ", ".join(f"{s.start_time} {subjects.get(s.subject_id, '?')}" for s in timetable[day])
        table.add_row(day.title(), slots or "[dim]-[/dim]")
    console.print(table)
    action = Prompt.ask("Action", choices=["add", "remove", "back"], default="back")
    if action == "back":
        return
    day = Prompt.ask("Day", choices=list(WEEKDAYS))
    if action == "add":
        subject = pick_subject(db_path)
        if subject is None:
            return
        start = Prompt.ask("Start time (HH:MM)")
        end = Prompt.ask("End time (HH:MM, optional)", default="")
        add_recurring(db_path, day, subject.id, start, end or None)
        console.print("[green]Class added.[/green]")
    else:
        slots = timetable[day]
        if not slots:
            console.print("[yellow]Nothing scheduled that day.[/yellow]")
            return
        for i, s in enumerate(slots, 1):
            console.print(f"  [cyan]{i}[/cyan]) {s.start_time} {subjects.get(s.subject_id, '?')}")
        index = int(Prompt.ask("Remove which", choices=[str(i) for i in range(1, len(slots) + 1)]))
        remove_recurring(db_path, day, slots[index - 1].id)
        console.print("[green]Class removed.[/green]")


def cmd_extra(db_path: str, today: date):
    subject = pick_subject(db_path)
    if subject is None:
        return
    on_date = Prompt.ask("Date (YYYY-MM-DD)", default=today.isoformat())
    start = Prompt.ask("Start time (HH:MM)")
    end = Prompt.ask("End time (HH:MM, optional)", default="")
    session = add_one_off(db_path, on_date, subject.id, start, end or None)
    console.print(f"[green]Extra {subject.name} class on {session.date} at {session.start_time}.[/green]")


def cmd_settings(db_path: str):
    settings = get_settings(db_path)
    console.print(f"  Target attendance: [bold]{settings.target_attendance:g}%[/bold]")
    console.print(f"  Daily reminder: {'on' if settings.notifications_enabled else 'off'} "
                  f"at {settings.notification_time}")
    console.print(f"  Morning reminder: {'on' if settings.morning_reminder_enabled else 'off'} "
                  f"at {settings.morning_reminder_time}")
    if Confirm.ask("Change target attendance?", default=False):
        target = Prompt.ask("New target (%)", default=f"{settings.target_attendance:g}")
        update_setting(db_path, "target_attendance", target)
        console.print("[green]Target updated.[/green]")
    if Confirm.ask("Change reminders?", default=False):
        enabled = Confirm.ask("Reminders on?", default=settings.notifications_enabled)
        update_setting(db_path, "notifications_enabled", enabled)
        if enabled:
            daily = Prompt.ask("Daily reminder time (HH:MM)", default=settings.notification_time)
            update_setting(db_path, "notification_time", daily)
            morning = Confirm.ask("Morning reminder?", default=settings.morning_reminder_enabled)
            update_setting(db_path, "morning_reminder_enabled", morning)
            if morning:
                at = Prompt.ask("Morning reminder time (HH:MM)", default=settings.morning_reminder_time)
                update_setting(db_path, "morning_reminder_time", at)
        console.print("[green]Reminders updated.[/green]")


def cmd_export(db_path: str):
    default = f"attendo-backup-{datetime.now():%Y%m%d}.json"
    path = export_to_file(db_path, Prompt.ask("Backup file", default=default))
    console.print(f"[green]Saved backup to {path}[/green]")


def cmd_import(db_path: str):
    path = Prompt.ask("Backup file")
    if not Confirm.ask("This replaces ALL current data. Continue?", default=False):
        return
    if import_from_file(db_path, path):
        console.print("[green]Data restored.[/green]")
    else:
        console.print("[red]Import failed: not a valid backup file. Nothing was changed.[/red]")


def main():
    logging.basicConfig(
        level=os.getenv("ATTENDO_LOG_LEVEL", "WARNING").upper(),
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stderr,
    )
    db_path = DEFAULT_DB_PATH
    init_db(db_path)
    show_welcome()
    shown_reminders = set()

    while True:
        today = local_today()
        show_reminders(db_path, shown_reminders)
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="today").strip().lower()
        try:
            if choice == "today":
                cmd_today(db_path, today)
            elif choice == "mark":
                cmd_mark(db_path, today)
            elif choice == "dashboard":
                cmd_dashboard(db_path)
            elif choice == "whatif":
                cmd_whatif(db_path)
            elif choice == "history":
                cmd_history(db_path)
            elif choice == "subjects":
                cmd_subjects(db_path)
            elif choice == "timetable":
                cmd_timetable(db_path)
            elif choice == "extra":
                cmd_extra(db_path, today)
            elif choice == "settings":
                cmd_settings(db_path)
            elif choice == "export":
                cmd_export(db_path)
            elif choice == "import":
                cmd_import(db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]See you in class![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("[dim]Back to menu.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except AttendoError as e:
            console.print(f"[red]{e}[/red]")
        except Exception as e:
            logger.exception("Command %s failed", choice)
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
