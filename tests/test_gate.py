"""Tests for prerequisite gating."""
import pytest

from tutorhub.errors import AccessDenied, StoreUnavailable
from tutorhub.gate import Prerequisite, PrerequisiteGate
from tutorhub.lessons import get_lesson_by_id
from tutorhub.models import SingleAnswer, Submission
from tutorhub.store import DocumentStore
from tutorhub.submissions import SubmissionStore


def _record(submissions, student_id, lesson_id, status, grade, timestamp="2025-03-01T10:00:00+00:00"):
    sub = Submission(
        id=None, student_id=student_id, lesson_id=lesson_id, lesson_title="Lesson 1",
        subject="Mathematics", status=status, answer=SingleAnswer("reasoning text", "x"),
        grade=grade, timestamp=timestamp,
    )
    return submissions.create(sub.to_doc())


def test_ungated_lesson_always_allowed(gate, student):
    decision = gate.can_access(student, get_lesson_by_id("math-alg-003"))
    assert decision.allowed is True
    assert decision.reason is None


def test_reviewed_grade_above_threshold_unlocks(gate, submissions, student):
    _record(submissions, student.id, "math-alg-001", "reviewed", 80)
    assert gate.can_access(student, get_lesson_by_id("math-alg-002")).allowed is True


def test_grade_exactly_at_threshold_unlocks(gate, submissions, student):
    _record(submissions, student.id, "math-alg-001", "reviewed", 75)
    assert gate.can_access(student, get_lesson_by_id("math-alg-002")).allowed is True


def test_low_grade_denied_with_threshold_in_reason(gate, submissions, student):
    _record(submissions, student.id, "math-alg-001", "reviewed", 60)
    decision = gate.can_access(student, get_lesson_by_id("math-alg-002"))
    assert decision.allowed is False
    assert "75%" in decision.reason
    assert "math-alg-001" in decision.reason


def test_unreviewed_submission_does_not_unlock(gate, submissions, student):
    _record(submissions, student.id, "math-alg-001", "submitted", 90)
    assert gate.can_access(student, get_lesson_by_id("math-alg-002")).allowed is False


def test_non_numeric_grade_does_not_unlock(gate, submissions, student):
    _record(submissions, student.id, "math-alg-001", "reviewed", "A")
    assert gate.can_access(student, get_lesson_by_id("math-alg-002")).allowed is False


def test_any_passing_attempt_unlocks(gate, submissions, student):
    _record(submissions, student.id, "math-alg-001", "reviewed", 90, "2025-03-01T10:00:00+00:00")
    _record(submissions, student.id, "math-alg-001", "reviewed", 40, "2025-03-02T10:00:00+00:00")
    assert gate.can_access(student, get_lesson_by_id("math-alg-002")).allowed is True


def test_other_students_grades_do_not_count(gate, submissions, student):
    _record(submissions, "someone-else", "math-alg-001", "reviewed", 100)
    assert gate.can_access(student, get_lesson_by_id("math-alg-002")).allowed is False


def test_privileged_always_pass(gate, tutor):
    assert gate.can_access(tutor, get_lesson_by_id("math-alg-002")).allowed is True


def test_require_access_raises(gate, student):
    with pytest.raises(AccessDenied, match="75%"):
        gate.require_access(student, get_lesson_by_id("math-alg-002"))


def test_custom_gating_configuration(submissions, student):
    gate = PrerequisiteGate(submissions, gated={"phys-mech-002": Prerequisite("phys-mech-001", 50)})
    _record(submissions, student.id, "phys-mech-001", "reviewed", 55)
    assert gate.can_access(student, get_lesson_by_id("phys-mech-002")).allowed is True
    assert gate.can_access(student, get_lesson_by_id("math-alg-002")).allowed is True


def test_store_failure_is_retriable_error(tmp_path, student):
    gate = PrerequisiteGate(SubmissionStore(DocumentStore(str(tmp_path / "missing" / "x.db"))))
    with pytest.raises(StoreUnavailable) as excinfo:
        gate.can_access(student, get_lesson_by_id("math-alg-002"))
    assert excinfo.value.retriable
