"""Data classes for the tutoring domain model."""
from dataclasses import dataclass, field
from typing import ClassVar, Optional, Union

SUBJECTS = ("Mathematics", "Physics")

STUDENT = "student"
TUTOR = "tutor"
ADMIN = "admin"
ROLES = (STUDENT, TUTOR, ADMIN)
PRIVILEGED_ROLES = (TUTOR, ADMIN)

DRAFT = "draft"
SUBMITTED = "submitted"
REVIEWED = "reviewed"
STATUSES = (DRAFT, SUBMITTED, REVIEWED)


@dataclass
class Principal:
    """An authenticated account as reported by the identity provider."""
    uid: str
    email: str
    display_name: Optional[str] = None


@dataclass
class Identity:
    id: str
    role: str
    is_privileged: bool
    display_name: str = ""
    email: str = ""


@dataclass
class UserProfile:
    id: str
    email: str
    display_name: str
    role: str = STUDENT
    cell_number: Optional[str] = None
    created_at: Optional[str] = None

    def to_doc(self) -> dict:
        return {
            "email": self.email,
            "display_name": self.display_name,
            "role": self.role,
            "cell_number": self.cell_number,
            "created_at": self.created_at,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> "UserProfile":
        return cls(
            id=doc["id"],
            email=doc.get("email", ""),
            display_name=doc.get("display_name", ""),
            role=doc.get("role", STUDENT),
            cell_number=doc.get("cell_number"),
            created_at=doc.get("created_at"),
        )


@dataclass
class SubQuestion:
    id: str
    text: str
    marks: Optional[int] = None


@dataclass
class Lesson:
    id: str
    subject: str
    branch: str
    title: str
    content: str
    example_solution: str
    question: str = ""
    sub_questions: list[SubQuestion] = field(default_factory=list)
    video_id: str = ""

    @property
    def is_structured(self) -> bool:
        return bool(self.sub_questions)


@dataclass
class SingleAnswer:
    kind: ClassVar[str] = "single"
    reasoning: str
    answer: str


@dataclass
class AnswerItem:
    question_id: str
    answer: str
    reasoning: str
    question_text: str = ""


@dataclass
class StructuredAnswer:
    kind: ClassVar[str] = "structured"
    items: list[AnswerItem] = field(default_factory=list)


Answer = Union[SingleAnswer, StructuredAnswer]


def answer_to_doc(answer: Answer) -> dict:
    """Flatten an answer into submission fields; the unused shape is nulled."""
    if isinstance(answer, SingleAnswer):
        return {
            "answer_kind": SingleAnswer.kind,
            "answer": answer.answer,
            "reasoning": answer.reasoning,
            "questions": None,
        }
    return {
        "answer_kind": StructuredAnswer.kind,
        "answer": None,
        "reasoning": None,
        "questions": [
            {
                "question_id": item.question_id,
                "question_text": item.question_text,
                "answer": item.answer,
                "reasoning": item.reasoning,
            }
            for item in answer.items
        ],
    }


def answer_from_doc(doc: dict) -> Answer:
    kind = doc.get("answer_kind", SingleAnswer.kind)
    if kind == StructuredAnswer.kind:
        return StructuredAnswer(items=[
            AnswerItem(
                question_id=q["question_id"],
                question_text=q.get("question_text", ""),
                answer=q.get("answer", ""),
                reasoning=q.get("reasoning", ""),
            )
            for q in doc.get("questions") or []
        ])
    if kind == SingleAnswer.kind:
        return SingleAnswer(reasoning=doc.get("reasoning") or "", answer=doc.get("answer") or "")
    raise ValueError(f"Unknown answer kind: {kind!r}")


def numeric_grade(grade) -> Optional[float]:
    """Return the grade as a number, or None when it is not numeric."""
    if isinstance(grade, bool) or grade is None:
        return None
    if isinstance(grade, (int, float)):
        return float(grade)
    if isinstance(grade, str):
        try:
            return float(grade.strip().rstrip("%"))
        except ValueError:
            return None
    return None


@dataclass
class Submission:
    id: Optional[str]
    student_id: str
    lesson_id: str
    lesson_title: str
    subject: str
    status: str
    answer: Answer
    student_name: str = ""
    ai_feedback: Optional[str] = None
    tutor_feedback: Optional[str] = None
    grade: Union[float, int, str, None] = None
    timestamp: Optional[str] = None
    reviewed_at: Optional[str] = None

    @property
    def numeric_grade(self) -> Optional[float]:
        return numeric_grade(self.grade)

    def to_doc(self) -> dict:
        doc = {
            "student_id": self.student_id,
            "student_name": self.student_name,
            "lesson_id": self.lesson_id,
            "lesson_title": self.lesson_title,
            "subject": self.subject,
            "status": self.status,
            "ai_feedback": self.ai_feedback,
            "tutor_feedback": self.tutor_feedback,
            "grade": self.grade,
            "timestamp": self.timestamp,
            "reviewed_at": self.reviewed_at,
        }
        doc.update(answer_to_doc(self.answer))
        return doc

    @classmethod
    def from_doc(cls, doc: dict) -> "Submission":
        return cls(
            id=doc.get("id"),
            student_id=doc["student_id"],
            lesson_id=doc["lesson_id"],
            lesson_title=doc.get("lesson_title", ""),
            subject=doc.get("subject", ""),
            status=doc.get("status", DRAFT),
            answer=answer_from_doc(doc),
            student_name=doc.get("student_name", ""),
            ai_feedback=doc.get("ai_feedback"),
            tutor_feedback=doc.get("tutor_feedback"),
            grade=doc.get("grade"),
            timestamp=doc.get("timestamp"),
            reviewed_at=doc.get("reviewed_at"),
        )


@dataclass
class Booking:
    id: Optional[str]
    user_id: str
    subject: str
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    confirmed: bool = True

    def to_doc(self) -> dict:
        return {
            "user_id": self.user_id,
            "subject": self.subject,
            "date": self.date,
            "time": self.time,
            "confirmed": self.confirmed,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> "Booking":
        return cls(
            id=doc.get("id"),
            user_id=doc["user_id"],
            subject=doc["subject"],
            date=doc["date"],
            time=doc["time"],
            confirmed=bool(doc.get("confirmed", False)),
        )


@dataclass
class LessonRating:
    id: Optional[str]
    lesson_id: str
    user_id: str
    rating: int
    comment: str = ""
    submitted_at: Optional[str] = None


@dataclass
class AccessDecision:
    allowed: bool
    reason: Optional[str] = None


@dataclass
class UnlockAdvice:
    unlock_next_lesson: bool
    message: str
