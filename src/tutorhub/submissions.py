"""Persistence boundary for the submissions collection."""
from typing import Callable, Optional

from tutorhub.models import Submission
from tutorhub.store import DocumentStore

SUBMISSIONS = "submissions"


class SubmissionStore:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _find(self, filters: dict, limit: Optional[int] = None) -> list[Submission]:
        docs = self.store.query(SUBMISSIONS, filters, order_by="timestamp", descending=True, limit=limit)
        return [Submission.from_doc(d) for d in docs]

    def get(self, submission_id: str) -> Optional[Submission]:
        doc = self.store.get(SUBMISSIONS, submission_id)
        return Submission.from_doc(doc) if doc else None

    def find_latest(self, student_id: str, lesson_id: str) -> Optional[Submission]:
        """Most recent submission by timestamp for one student and lesson."""
        found = self._find({"student_id": student_id, "lesson_id": lesson_id}, limit=1)
        return found[0] if found else None

    def find_for_student_lesson(self, student_id: str, lesson_id: str) -> list[Submission]:
        return self._find({"student_id": student_id, "lesson_id": lesson_id})

    def find_all_for_student(self, student_id: str) -> list[Submission]:
        return self._find({"student_id": student_id})

    def find_all_for_lesson(self, lesson_id: str) -> list[Submission]:
        return self._find({"lesson_id": lesson_id})

    def find_all_for_review(self) -> list[Submission]:
        """Every submission, newest first, for the reviewer dashboard."""
        return self._find({})

    def create(self, payload: dict) -> str:
        return self.store.add(SUBMISSIONS, payload)

    def update(self, submission_id: str, partial: dict) -> None:
        self.store.update(SUBMISSIONS, submission_id, partial)

    def subscribe(
        self,
        on_change: Callable[[list[Submission]], None],
        student_id: Optional[str] = None,
        lesson_id: Optional[str] = None,
        limit: Optional[int] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Callable[[], None]:
        filters = {}
        if student_id is not None:
            filters["student_id"] = student_id
        if lesson_id is not None:
            filters["lesson_id"] = lesson_id
        return self.store.subscribe(
            SUBMISSIONS,
            lambda docs: on_change([Submission.from_doc(d) for d in docs]),
            filters=filters,
            order_by="timestamp",
            descending=True,
            limit=limit,
            on_error=on_error,
        )
