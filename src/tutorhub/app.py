"""Interactive CLI application."""
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from tutorhub.auth import LocalIdentityProvider
from tutorhub.bookings import TIME_SLOTS, create_booking, list_bookings
from tutorhub.config import Settings, configure_logging, load_settings
from tutorhub.dashboard import get_progress_color, get_reviewer_metrics, get_student_overview
from tutorhub.db import init_db
from tutorhub.errors import TutorHubError, ValidationError
from tutorhub.feedback import ChatFeedbackClient, FeedbackOrchestrator
from tutorhub.gate import PrerequisiteGate
from tutorhub.identity import IdentityResolver
from tutorhub.lessons import (
    get_branches_by_subject, get_lesson_by_id, get_lessons_by_branch, get_subjects,
    is_branch_available,
)
from tutorhub.models import (
    REVIEWED, SUBJECTS, SUBMITTED, AnswerItem, Identity, Lesson, Principal, SingleAnswer,
    StructuredAnswer, Submission, numeric_grade,
)
from tutorhub.ratings import rate_lesson
from tutorhub.store import DocumentStore
from tutorhub.submissions import SubmissionStore
from tutorhub.workflow import SubmissionWorkflow

console = Console()


class Services:
    """Everything one terminal session needs, wired from settings."""

    def __init__(self, settings: Settings, feedback_service=None):
        self.settings = settings
        self.store = DocumentStore(settings.db_path)
        self.provider = LocalIdentityProvider(settings.db_path)
        self.resolver = IdentityResolver(self.store, admin_id=settings.admin_id)
        self.submissions = SubmissionStore(self.store)
        self.gate = PrerequisiteGate(self.submissions)
        self._owned_feedback = None
        if feedback_service is None:
            feedback_service = self._owned_feedback = ChatFeedbackClient.from_settings(settings)
        self.workflow = SubmissionWorkflow(
            self.submissions, self.gate, FeedbackOrchestrator(feedback_service, self.submissions),
        )
        self.identity: Optional[Identity] = None
        self.provider.on_auth_state_change(self._on_auth_change)

    def _on_auth_change(self, principal: Optional[Principal]) -> None:
        self.identity = self.resolver.resolve_or_none(principal)

    def close(self) -> None:
        if self._owned_feedback is not None:
            self._owned_feedback.close()


def show_welcome():
    console.print(Panel(
        "[bold]TutorHub Online Academy[/bold]\n[dim]Mathematics and Physics tutoring[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu(identity: Optional[Identity]):
    console.print("\n[bold]Commands:[/bold]")
    if identity is None:
        commands = [("register", "Create an account"), ("login", "Sign in")]
    else:
        commands = [("logout", f"Sign out ({identity.display_name or identity.email})")]
    commands += [
        ("lessons", "Browse subjects and lessons"),
        ("lesson", "Open a lesson and answer it"),
        ("dashboard", "Your progress"),
        ("book", "Book a tutoring session"),
        ("rate", "Rate a lesson"),
    ]
    if identity is not None and identity.is_privileged:
        commands.append(("review", "Review student submissions"))
    commands.append(("quit", "Exit"))
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_error(exc: TutorHubError) -> None:
    if isinstance(exc, ValidationError):
        for field, message in exc.errors.items():
            console.print(f"[yellow]{field}: {message}[/yellow]")
        return
    suffix = " Please try again." if exc.retriable else ""
    console.print(f"[red]{exc}{suffix}[/red]")


def _require_login(svc: Services) -> Optional[Identity]:
    if svc.identity is None:
        console.print("[yellow]Please login or register first.[/yellow]")
    return svc.identity


def cmd_register(svc: Services):
    name = Prompt.ask("Full name")
    email = Prompt.ask("Email")
    password = Prompt.ask("Password", password=True)
    cell = Prompt.ask("Cell number (optional)", default="")
    principal = svc.provider.sign_up(name, email, password)
    if cell.strip() and svc.identity is not None:
        svc.resolver.update_profile(principal.uid, cell_number=cell.strip())
    console.print(f"[green]Welcome, {name}! Your account is ready.[/green]")


def cmd_login(svc: Services):
    email = Prompt.ask("Email")
    password = Prompt.ask("Password", password=True)
    svc.provider.sign_in(email, password)
    if svc.identity is None:
        console.print("[red]Signed in, but your profile could not be loaded. Please try again.[/red]")
        return
    role = "tutor" if svc.identity.is_privileged else "student"
    console.print(f"[green]Signed in as {svc.identity.display_name} ({role}).[/green]")


def cmd_logout(svc: Services):
    svc.provider.sign_out()
    console.print("[dim]Signed out.[/dim]")


def cmd_lessons(svc: Services):
    for subject in get_subjects():
        table = Table(title=f"{subject['name']}: {subject['description']}")
        table.add_column("Lesson", style="cyan")
        table.add_column("Branch")
        table.add_column("Title")
        table.add_column("Access")
        for branch in get_branches_by_subject(subject["name"]):
            if not is_branch_available(subject["name"], branch["name"]):
                table.add_row("", branch["name"], "[dim]Coming soon[/dim]", "")
                continue
            for lesson in get_lessons_by_branch(subject["name"], branch["name"]):
                table.add_row(lesson.id, branch["name"], lesson.title, _access_label(svc, lesson))
        console.print(table)


def _access_label(svc: Services, lesson: Lesson) -> str:
    if svc.identity is None:
        return "[dim]login to answer[/dim]"
    decision = svc.gate.can_access(svc.identity, lesson)
    return "[green]open[/green]" if decision.allowed else "[red]locked[/red]"


def show_submission(sub: Submission) -> None:
    color = "green" if sub.status == REVIEWED else "yellow"
    lines = [f"Status: [{color}]{sub.status}[/{color}]  (last saved {sub.timestamp})"]
    if sub.grade is not None:
        lines.append(f"Grade: [bold]{sub.grade}[/bold]")
    if sub.tutor_feedback:
        lines.append(f"\n[bold]Tutor feedback[/bold]\n{sub.tutor_feedback}")
    if sub.ai_feedback:
        lines.append(f"\n[bold]AI feedback[/bold]\n{sub.ai_feedback}")
    console.print(Panel("\n".join(lines), title="Your Answer", border_style=color))


def prompt_answer(lesson: Lesson, previous: Optional[Submission] = None):
    if not lesson.is_structured:
        old = previous.answer if previous and isinstance(previous.answer, SingleAnswer) else None
        reasoning = Prompt.ask("Your reasoning", default=old.reasoning if old else "")
        answer = Prompt.ask("Your solution", default=old.answer if old else "")
        return SingleAnswer(reasoning=reasoning, answer=answer)
    old_items = {}
    if previous and isinstance(previous.answer, StructuredAnswer):
        old_items = {item.question_id: item for item in previous.answer.items}
    items = []
    for sq in lesson.sub_questions:
        marks = f" ({sq.marks})" if sq.marks else ""
        console.print(f"\n[bold]{sq.id}[/bold] {sq.text}{marks}")
        old = old_items.get(sq.id)
        reasoning = Prompt.ask("  Reasoning", default=old.reasoning if old else "")
        answer = Prompt.ask("  Solution", default=old.answer if old else "")
        items.append(AnswerItem(question_id=sq.id, question_text=sq.text, answer=answer, reasoning=reasoning))
    return StructuredAnswer(items=items)


def cmd_lesson(svc: Services):
    lesson = get_lesson_by_id(Prompt.ask("Lesson id").strip())
    if lesson is None:
        console.print("[red]No lesson with that id.[/red]")
        return
    console.print(Panel(lesson.content, title=f"{lesson.title} - {lesson.subject} / {lesson.branch}"))
    if lesson.video_id:
        console.print(f"[dim]Video: https://www.youtube.com/watch?v={lesson.video_id}[/dim]")
    if lesson.is_structured:
        for sq in lesson.sub_questions:
            console.print(f"  [bold]{sq.id}[/bold] {sq.text}")
    else:
        console.print(Panel(lesson.question, title="Question", border_style="blue"))

    identity = _require_login(svc)
    if identity is None:
        return
    decision = svc.gate.can_access(identity, lesson)
    if not decision.allowed:
        console.print(f"[red]Locked:[/red] {decision.reason}")
        return
    current = svc.workflow.current(identity, lesson)
    if current is not None:
        show_submission(current)

    action = Prompt.ask("Action", choices=["submit", "draft", "solution", "back"], default="submit")
    if action == "solution":
        console.print(Panel(lesson.example_solution, title="Example Solution", border_style="green"))
        return
    if action == "back":
        return
    answer = prompt_answer(lesson, current)
    if action == "draft":
        svc.workflow.save_draft(identity, lesson, answer)
        console.print("[green]Draft saved.[/green]")
        return
    with console.status("Submitting and generating AI feedback..."):
        result = svc.workflow.submit(identity, lesson, answer)
    console.print("[green]Answer submitted![/green]" if result.created else "[green]Answer updated![/green]")
    if result.feedback_error:
        console.print(f"[yellow]AI feedback unavailable: {result.feedback_error}[/yellow]")
    show_submission(result.submission)


def cmd_dashboard(svc: Services):
    identity = _require_login(svc)
    if identity is None:
        return
    if identity.is_privileged:
        metrics = get_reviewer_metrics(svc.submissions.find_all_for_review())
        console.print(Panel(
            f"Total Submissions: [bold]{metrics['total_submissions']}[/bold]  |  "
            f"Pending Reviews: [bold]{metrics['pending_reviews']}[/bold]  |  "
            f"Reviewed: [bold]{metrics['reviewed_count']}[/bold]  |  "
            f"Active Students: [bold]{metrics['active_students']}[/bold]",
            title="Tutor Dashboard", border_style="blue",
        ))
        return

    overview = get_student_overview(svc.submissions, identity.id)
    console.print(Panel(f"[bold]Welcome, {identity.display_name or 'Student'}![/bold]", border_style="blue"))
    for prog in overview["progress"]:
        color = get_progress_color(prog["percent"])
        filled = int(prog["percent"] / 5)
        bar = f"[{color}]{'█' * filled}{'░' * (20 - filled)}[/{color}]"
        console.print(f"  {prog['subject']:<12} {prog['completed']}/{prog['total']} {bar} [{color}]{prog['label']}[/{color}]")

    if overview["recent"]:
        table = Table(title="Recent Submissions")
        table.add_column("Lesson", style="cyan")
        table.add_column("Status")
        table.add_column("Grade", justify="right")
        for sub in overview["recent"]:
            table.add_row(sub.lesson_title, sub.status, "" if sub.grade is None else str(sub.grade))
        console.print(table)

    if overview["to_complete"]:
        console.print("\n[bold]Lessons to complete:[/bold]")
        for lesson in overview["to_complete"]:
            console.print(f"  [cyan]{lesson.id}[/cyan] {lesson.title} ({lesson.subject})")


def cmd_book(svc: Services):
    identity = _require_login(svc)
    if identity is None:
        return
    subject = Prompt.ask("Subject", choices=list(SUBJECTS))
    session_date = Prompt.ask("Date (YYYY-MM-DD)")
    time = Prompt.ask("Time slot", choices=list(TIME_SLOTS))
    booking = create_booking(svc.store, identity, subject, session_date, time)
    console.print(f"[green]Booking confirmed: {booking.subject} on {booking.date} at {booking.time}.[/green]")
    table = Table(title="Your Sessions")
    table.add_column("Date")
    table.add_column("Time")
    table.add_column("Subject")
    for b in list_bookings(svc.store, identity.id):
        table.add_row(b.date, b.time, b.subject)
    console.print(table)


def cmd_rate(svc: Services):
    identity = _require_login(svc)
    if identity is None:
        return
    lesson = get_lesson_by_id(Prompt.ask("Lesson id").strip())
    if lesson is None:
        console.print("[red]No lesson with that id.[/red]")
        return
    rating = IntPrompt.ask("Rating (1-5)", choices=["1", "2", "3", "4", "5"])
    comment = Prompt.ask("Comment (optional)", default="")
    rate_lesson(svc.store, identity, lesson.id, rating, comment)
    console.print("[green]Thank you for your feedback.[/green]")


def _parse_grade(raw: str):
    raw = raw.strip()
    if not raw:
        return None
    value = numeric_grade(raw)
    if value is None:
        return raw
    return int(value) if value.is_integer() else value


def cmd_review(svc: Services):
    identity = _require_login(svc)
    if identity is None:
        return
    if not identity.is_privileged:
        console.print("[red]Only tutors can review submissions.[/red]")
        return
    pending = [s for s in svc.submissions.find_all_for_review() if s.status == SUBMITTED]
    if not pending:
        console.print("[green]No submissions awaiting review.[/green]")
        return
    table = Table(title="Awaiting Review")
    table.add_column("#", justify="right")
    table.add_column("Student")
    table.add_column("Lesson", style="cyan")
    table.add_column("Submitted")
    for i, sub in enumerate(pending, 1):
        table.add_row(str(i), sub.student_name, sub.lesson_title, sub.timestamp or "")
    console.print(table)
    choice = IntPrompt.ask("Review which", choices=[str(i) for i in range(1, len(pending) + 1)])
    sub = pending[choice - 1]
    if isinstance(sub.answer, SingleAnswer):
        console.print(Panel(f"[bold]Reasoning[/bold]\n{sub.answer.reasoning}\n\n[bold]Solution[/bold]\n{sub.answer.answer}"))
    else:
        for item in sub.answer.items:
            console.print(Panel(f"{item.question_text}\n\n[bold]Reasoning[/bold]\n{item.reasoning}\n\n[bold]Solution[/bold]\n{item.answer}", title=item.question_id))
    if sub.ai_feedback:
        console.print(Panel(sub.ai_feedback, title="AI feedback", border_style="magenta"))
    feedback = Prompt.ask("Tutor feedback", default="")
    grade = _parse_grade(Prompt.ask("Grade (0-100 or letter, blank for none)", default=""))
    result = svc.workflow.review(identity, sub.id, tutor_feedback=feedback, grade=grade)
    console.print(f"[green]Feedback for {result.submission.lesson_title} saved.[/green]")
    if result.unlock is not None:
        color = "green" if result.unlock.unlock_next_lesson else "yellow"
        console.print(f"[{color}]{result.unlock.message}[/{color}]")


COMMANDS = {
    "register": cmd_register,
    "login": cmd_login,
    "logout": cmd_logout,
    "lessons": cmd_lessons,
    "lesson": cmd_lesson,
    "dashboard": cmd_dashboard,
    "book": cmd_book,
    "rate": cmd_rate,
    "review": cmd_review,
}


def run_command(svc: Services, choice: str) -> bool:
    """Run one menu command. Returns False when the user asked to quit."""
    if choice in ("quit", "exit", "q"):
        console.print("[dim]Goodbye![/dim]")
        return False
    command = COMMANDS.get(choice)
    if command is None:
        console.print("[red]Unknown command. Try again.[/red]")
        return True
    try:
        command(svc)
    except TutorHubError as exc:
        show_error(exc)
    return True


def main():
    settings = load_settings()
    configure_logging(settings.log_level)
    init_db(settings.db_path)
    svc = Services(settings)
    show_welcome()

    running = True
    try:
        while running:
            show_menu(svc.identity)
            choice = Prompt.ask("\n[bold]>[/bold]", default="lessons").strip().lower()
            try:
                running = run_command(svc, choice)
            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit.[/dim]")
            except Exception as e:
                console.print(f"[red]Error: {e}[/red]")
    finally:
        svc.close()


if __name__ == "__main__":
    main()
