"""Student progress and reviewer dashboard statistics."""
from tutorhub.lessons import get_lessons
from tutorhub.models import REVIEWED, SUBJECTS, SUBMITTED, Lesson, Submission
from tutorhub.submissions import SubmissionStore


def get_progress_label(percent: float) -> str:
    if percent >= 80:
        return "EXCELLENT"
    elif percent >= 50:
        return "ON TRACK"
    elif percent > 0:
        return "GETTING STARTED"
    return "NOT STARTED"


def get_progress_color(percent: float) -> str:
    if percent >= 80:
        return "green"
    elif percent >= 50:
        return "yellow"
    elif percent > 0:
        return "dark_orange"
    return "red"


def get_subject_progress(submissions: list[Submission], lessons: list[Lesson] = None) -> list[dict]:
    """Per subject: distinct lessons with a reviewed submission out of all lessons."""
    lessons = get_lessons() if lessons is None else lessons
    results = []
    for subject in SUBJECTS:
        total = sum(1 for l in lessons if l.subject == subject)
        completed = len({s.lesson_id for s in submissions if s.subject == subject and s.status == REVIEWED})
        percent = (completed / total * 100) if total else 0.0
        results.append({
            "subject": subject,
            "completed": completed,
            "total": total,
            "percent": round(percent, 1),
            "label": get_progress_label(percent),
        })
    return results


def get_lessons_to_complete(submissions: list[Submission], lessons: list[Lesson] = None, limit: int = 5) -> list[Lesson]:
    lessons = get_lessons() if lessons is None else lessons
    attempted = {s.lesson_id for s in submissions if s.status in (SUBMITTED, REVIEWED)}
    return [l for l in lessons if l.id not in attempted][:limit]


def get_grade_history(submissions: list[Submission]) -> dict[str, list[dict]]:
    """Reviewed numeric grades per subject, oldest review first."""
    history = {subject: [] for subject in SUBJECTS}
    reviewed = [s for s in submissions if s.status == REVIEWED and s.numeric_grade is not None]
    for s in sorted(reviewed, key=lambda s: s.reviewed_at or ""):
        history.setdefault(s.subject, []).append({
            "lesson_id": s.lesson_id,
            "lesson_title": s.lesson_title,
            "grade": s.numeric_grade,
            "reviewed_at": s.reviewed_at,
        })
    return history


def get_student_overview(store: SubmissionStore, student_id: str, recent: int = 5) -> dict:
    submissions = store.find_all_for_student(student_id)
    return {
        "progress": get_subject_progress(submissions),
        "to_complete": get_lessons_to_complete(submissions),
        "recent": submissions[:recent],
        "grades": get_grade_history(submissions),
    }


def get_reviewer_metrics(submissions: list[Submission]) -> dict:
    return {
        "total_submissions": len(submissions),
        "pending_reviews": sum(1 for s in submissions if s.status == SUBMITTED),
        "reviewed_count": sum(1 for s in submissions if s.status == REVIEWED),
        "active_students": len({s.student_id for s in submissions}),
    }
