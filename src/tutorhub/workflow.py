"""Submission lifecycle: draft -> submitted -> reviewed, and resubmission.

Every transition persists first and only then reports the new state; when the
store write fails the caller still holds the pre-transition record.
"""
import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional

from tutorhub.errors import (
    AccessDenied, DocumentNotFound, FeedbackGenerationFailed, InvalidTransition,
    StoreUnavailable, ValidationError,
)
from tutorhub.feedback import FeedbackOrchestrator, check_lesson_unlock
from tutorhub.gate import PrerequisiteGate
from tutorhub.models import (
    DRAFT, REVIEWED, SUBMITTED, Answer, AnswerItem, Identity, Lesson, SingleAnswer,
    StructuredAnswer, Submission, UnlockAdvice, answer_to_doc, numeric_grade,
)
from tutorhub.store import server_timestamp
from tutorhub.submissions import SubmissionStore

logger = logging.getLogger(__name__)

MIN_REASONING_LENGTH = 10

# (event, from status) -> to status
TRANSITIONS = {
    ("submit", DRAFT): SUBMITTED,
    ("submit", SUBMITTED): SUBMITTED,
    ("submit", REVIEWED): SUBMITTED,
    ("review", SUBMITTED): REVIEWED,
}


@dataclass
class SubmitResult:
    submission: Submission
    created: bool
    ai_feedback: Optional[str] = None
    feedback_error: Optional[str] = None


@dataclass
class ReviewResult:
    submission: Submission
    unlock: Optional[UnlockAdvice] = None


def next_status(event: str, current: str) -> str:
    try:
        return TRANSITIONS[(event, current)]
    except KeyError:
        raise InvalidTransition(current, event) from None


def _check_shape(lesson: Lesson, answer: Answer) -> None:
    if lesson.is_structured and not isinstance(answer, StructuredAnswer):
        raise ValidationError({"answer": f"{lesson.title} expects an answer for each sub-question."})
    if not lesson.is_structured and not isinstance(answer, SingleAnswer):
        raise ValidationError({"answer": f"{lesson.title} expects a single answer."})


def normalize_answer(lesson: Lesson, answer: Answer) -> Answer:
    """Order structured items as in the lesson and snapshot the question text."""
    _check_shape(lesson, answer)
    if isinstance(answer, SingleAnswer):
        return answer
    known = {sq.id: sq for sq in lesson.sub_questions}
    unknown = [item.question_id for item in answer.items if item.question_id not in known]
    if unknown:
        raise ValidationError({f"questions.{qid}": "Not a question in this lesson." for qid in unknown})
    by_id = {item.question_id: item for item in answer.items}
    return StructuredAnswer(items=[
        AnswerItem(
            question_id=sq.id,
            question_text=sq.text,
            answer=by_id[sq.id].answer,
            reasoning=by_id[sq.id].reasoning,
        )
        for sq in lesson.sub_questions
        if sq.id in by_id
    ])


def validate_for_submission(lesson: Lesson, answer: Answer) -> Answer:
    """Check content before any transition into 'submitted'.

    Purely local: depends on nothing but the lesson and the answer text.
    """
    answer = normalize_answer(lesson, answer)
    errors = {}
    if isinstance(answer, SingleAnswer):
        if len(answer.reasoning.strip()) < MIN_REASONING_LENGTH:
            errors["reasoning"] = f"Reasoning must be at least {MIN_REASONING_LENGTH} characters."
        if not answer.answer.strip():
            errors["answer"] = "Solution cannot be empty."
    else:
        answered = {item.question_id: item for item in answer.items}
        for sq in lesson.sub_questions:
            item = answered.get(sq.id)
            if item is None:
                errors[f"questions.{sq.id}"] = "Answer every sub-question."
                continue
            if not item.reasoning.strip():
                errors[f"questions.{sq.id}.reasoning"] = "Reasoning cannot be empty."
            if not item.answer.strip():
                errors[f"questions.{sq.id}.answer"] = "Solution cannot be empty."
    if errors:
        raise ValidationError(errors)
    return answer


class SubmissionWorkflow:
    def __init__(
        self,
        submissions: SubmissionStore,
        gate: PrerequisiteGate,
        orchestrator: Optional[FeedbackOrchestrator] = None,
        clock: Callable[[], str] = server_timestamp,
    ):
        self.submissions = submissions
        self.gate = gate
        self.orchestrator = orchestrator
        self.clock = clock

    @staticmethod
    def _require_identity(identity: Optional[Identity]) -> Identity:
        if identity is None:
            raise AccessDenied("You must be logged in to work on a lesson.")
        return identity

    def _new_record(self, identity: Identity, lesson: Lesson, status: str, answer: Answer, now: str) -> dict:
        return Submission(
            id=None,
            student_id=identity.id,
            student_name=identity.display_name or identity.email or "Anonymous Student",
            lesson_id=lesson.id,
            lesson_title=lesson.title,
            subject=lesson.subject,
            status=status,
            answer=answer,
            timestamp=now,
        ).to_doc()

    def current(self, identity: Identity, lesson: Lesson) -> Optional[Submission]:
        return self.submissions.find_latest(identity.id, lesson.id)

    def save_draft(self, identity: Optional[Identity], lesson: Lesson, answer: Answer) -> Submission:
        """Save work in progress without validation.

        Reviewer-authored fields are never touched: a draft over a reviewed
        record starts a new record and leaves the old one as it was. A record
        awaiting review cannot take a draft; resubmit it instead.
        """
        identity = self._require_identity(identity)
        answer = normalize_answer(lesson, answer)
        self.gate.require_access(identity, lesson)
        latest = self.submissions.find_latest(identity.id, lesson.id)
        if latest is not None and latest.status == SUBMITTED:
            raise InvalidTransition(latest.status, "save a draft over")
        now = self.clock()
        if latest is not None and latest.status == DRAFT:
            self.submissions.update(latest.id, {**answer_to_doc(answer), "timestamp": now})
            logger.info("Updated draft %s", latest.id)
            return replace(latest, answer=answer, timestamp=now)
        record = self._new_record(identity, lesson, DRAFT, answer, now)
        draft_id = self.submissions.create(record)
        logger.info("Created draft %s for lesson %s", draft_id, lesson.id)
        return Submission.from_doc({**record, "id": draft_id})

    def submit(self, identity: Optional[Identity], lesson: Lesson, answer: Answer) -> SubmitResult:
        """Submit (or resubmit) an answer, then request AI feedback.

        Resubmitting clears any earlier AI feedback, tutor feedback, grade and
        review time. Feedback generation is best-effort: its failure is reported
        in the result and never undoes the submission.
        """
        identity = self._require_identity(identity)
        answer = validate_for_submission(lesson, answer)
        self.gate.require_access(identity, lesson)
        latest = self.submissions.find_latest(identity.id, lesson.id)
        now = self.clock()
        if latest is None:
            record = self._new_record(identity, lesson, SUBMITTED, answer, now)
            submission_id = self.submissions.create(record)
            submission = Submission.from_doc({**record, "id": submission_id})
            created = True
            logger.info("Created submission %s for lesson %s", submission_id, lesson.id)
        else:
            status = next_status("submit", latest.status)
            self.submissions.update(latest.id, {
                **answer_to_doc(answer),
                "status": status,
                "ai_feedback": None,
                "tutor_feedback": None,
                "grade": None,
                "reviewed_at": None,
                "timestamp": now,
            })
            submission = replace(
                latest, answer=answer, status=status, ai_feedback=None,
                tutor_feedback=None, grade=None, reviewed_at=None, timestamp=now,
            )
            created = False
            logger.info("Resubmitted %s (was %s)", latest.id, latest.status)

        result = SubmitResult(submission=submission, created=created)
        if self.orchestrator is not None:
            try:
                feedback = self.orchestrator.generate(lesson, submission)
            except (FeedbackGenerationFailed, StoreUnavailable) as exc:
                logger.warning("AI feedback for %s failed: %s", submission.id, exc)
                result.feedback_error = str(exc)
            else:
                result.ai_feedback = feedback
                result.submission = replace(submission, ai_feedback=feedback)
        return result

    def review(
        self,
        identity: Optional[Identity],
        submission_id: str,
        tutor_feedback: Optional[str] = None,
        grade=None,
    ) -> ReviewResult:
        """Record a reviewer's feedback and/or grade on a submitted answer."""
        identity = self._require_identity(identity)
        if not identity.is_privileged:
            raise AccessDenied("Only tutors can review submissions.")
        if isinstance(tutor_feedback, str) and not tutor_feedback.strip():
            tutor_feedback = None
        if isinstance(grade, str) and not grade.strip():
            grade = None
        if tutor_feedback is None and grade is None:
            raise ValidationError({"review": "Enter feedback, a grade, or both."})
        score = numeric_grade(grade)
        if score is not None and not 0 <= score <= 100:
            raise ValidationError({"grade": "Grade must be between 0 and 100."})

        submission = self.submissions.get(submission_id)
        if submission is None:
            raise DocumentNotFound("submissions", submission_id)
        status = next_status("review", submission.status)
        now = self.clock()
        partial = {"status": status, "reviewed_at": now}
        if tutor_feedback is not None:
            partial["tutor_feedback"] = tutor_feedback
        if grade is not None:
            partial["grade"] = grade
        self.submissions.update(submission_id, partial)
        reviewed = replace(submission, **partial)
        logger.info("Reviewed submission %s by %s", submission_id, identity.id)

        unlock = None
        if score is not None:
            unlock = check_lesson_unlock(reviewed.student_id, reviewed.lesson_id, score)
        return ReviewResult(submission=reviewed, unlock=unlock)
