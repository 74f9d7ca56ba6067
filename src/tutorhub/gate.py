"""Prerequisite gating: lessons that open only after a graded prerequisite."""
import logging
from dataclasses import dataclass

from tutorhub.errors import AccessDenied
from tutorhub.lessons import get_lesson_by_id
from tutorhub.models import REVIEWED, AccessDecision, Identity, Lesson
from tutorhub.submissions import SubmissionStore

logger = logging.getLogger(__name__)

UNLOCK_THRESHOLD = 75


@dataclass(frozen=True)
class Prerequisite:
    lesson_id: str
    min_grade: float = UNLOCK_THRESHOLD


# gated lesson id -> prerequisite
GATED_LESSONS = {
    "math-alg-002": Prerequisite("math-alg-001", UNLOCK_THRESHOLD),
}


def _describe(lesson_id: str) -> str:
    lesson = get_lesson_by_id(lesson_id)
    return f"{lesson.title} ({lesson_id})" if lesson else lesson_id


class PrerequisiteGate:
    def __init__(self, submissions: SubmissionStore, gated: dict = None):
        self.submissions = submissions
        self.gated = GATED_LESSONS if gated is None else gated

    def can_access(self, identity: Identity, lesson: Lesson) -> AccessDecision:
        """Decide whether the student may open the lesson.

        Always recomputes from stored grades. StoreUnavailable propagates so the
        caller denies access for now and can retry.
        """
        if identity.is_privileged:
            return AccessDecision(allowed=True)
        prereq = self.gated.get(lesson.id)
        if prereq is None:
            return AccessDecision(allowed=True)
        attempts = self.submissions.find_for_student_lesson(identity.id, prereq.lesson_id)
        for sub in attempts:
            grade = sub.numeric_grade
            if sub.status == REVIEWED and grade is not None and grade >= prereq.min_grade:
                return AccessDecision(allowed=True)
        reason = (
            f"{lesson.title} requires a reviewed grade of at least "
            f"{prereq.min_grade:g}% on {_describe(prereq.lesson_id)}."
        )
        return AccessDecision(allowed=False, reason=reason)

    def require_access(self, identity: Identity, lesson: Lesson) -> None:
        decision = self.can_access(identity, lesson)
        if not decision.allowed:
            logger.warning("Access to %s denied for %s", lesson.id, identity.id)
            raise AccessDenied(decision.reason)
