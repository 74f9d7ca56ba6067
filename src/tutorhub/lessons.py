"""Static lesson catalogue, authored out-of-band in content/lessons.json."""
import json
from functools import lru_cache
from pathlib import Path

from tutorhub.models import SUBJECTS, Lesson, SubQuestion

CONTENT_DIR = Path(__file__).parent / "content"
LESSONS_FILE = CONTENT_DIR / "lessons.json"

# Branches listed in the catalogue but not yet open to students.
UNAVAILABLE_BRANCHES = {
    "Mathematics": {"Calculus", "Geometry", "Statistics"},
    "Physics": {"Mechanics", "Waves & Optics", "Thermodynamics", "Electromagnetism"},
}


def validate_lesson(lesson: Lesson) -> None:
    """Raise ValueError if the lesson breaks the question/solution invariant."""
    problems = []
    if lesson.subject not in SUBJECTS:
        problems.append(f"unknown subject {lesson.subject!r}")
    if not lesson.sub_questions:
        if not lesson.question.strip():
            problems.append("a lesson without sub-questions needs a question")
        if not lesson.example_solution.strip():
            problems.append("a lesson without sub-questions needs a reference solution")
    else:
        seen = set()
        for sq in lesson.sub_questions:
            if not sq.id.strip():
                problems.append("sub-question identifiers must be non-empty")
            elif sq.id in seen:
                problems.append(f"duplicate sub-question identifier {sq.id!r}")
            seen.add(sq.id)
    if problems:
        raise ValueError(f"Lesson {lesson.id}: " + "; ".join(problems))


def lesson_from_dict(data: dict) -> Lesson:
    lesson = Lesson(
        id=data["id"],
        subject=data["subject"],
        branch=data["branch"],
        title=data["title"],
        content=data.get("content", ""),
        example_solution=data.get("example_solution", ""),
        question=data.get("question", ""),
        sub_questions=[
            SubQuestion(id=str(sq["id"]), text=sq["text"], marks=sq.get("marks"))
            for sq in data.get("sub_questions", [])
        ],
        video_id=data.get("video_id", ""),
    )
    validate_lesson(lesson)
    return lesson


@lru_cache
def load_catalogue(path: str = str(LESSONS_FILE)) -> dict:
    data = json.loads(Path(path).read_text())
    lessons = tuple(lesson_from_dict(item) for item in data["lessons"])
    ids = [lesson.id for lesson in lessons]
    if len(ids) != len(set(ids)):
        raise ValueError("Lesson identifiers must be unique")
    return {
        "subjects": tuple(data["subjects"]),
        "branches": tuple(data["branches"]),
        "lessons": lessons,
    }


def get_subjects() -> list[dict]:
    return list(load_catalogue()["subjects"])


def get_lessons() -> list[Lesson]:
    return list(load_catalogue()["lessons"])


def get_lesson_by_id(lesson_id: str) -> Lesson | None:
    for lesson in load_catalogue()["lessons"]:
        if lesson.id == lesson_id:
            return lesson
    return None


def get_lessons_by_branch(subject: str, branch: str) -> list[Lesson]:
    return [l for l in load_catalogue()["lessons"] if l.subject == subject and l.branch == branch]


def get_branches_by_subject(subject: str) -> list[dict]:
    return [b for b in load_catalogue()["branches"] if b["subject"] == subject]


def is_branch_available(subject: str, branch: str) -> bool:
    return branch not in UNAVAILABLE_BRANCHES.get(subject, set())
