"""Tests for the submission store adapter."""
from tutorhub.models import SingleAnswer, Submission


def _payload(student_id, lesson_id, timestamp, status="submitted"):
    return Submission(
        id=None, student_id=student_id, lesson_id=lesson_id, lesson_title="T", subject="Physics",
        status=status, answer=SingleAnswer("some reasoning", "4"), timestamp=timestamp,
    ).to_doc()


def test_create_and_get(submissions):
    sub_id = submissions.create(_payload("s1", "phys-mech-001", "2025-03-01T10:00:00+00:00"))
    sub = submissions.get(sub_id)
    assert sub.id == sub_id
    assert sub.answer == SingleAnswer("some reasoning", "4")
    assert submissions.get("missing") is None


def test_find_latest_by_timestamp(submissions):
    submissions.create(_payload("s1", "L", "2025-03-01T10:00:00+00:00"))
    newest = submissions.create(_payload("s1", "L", "2025-03-03T10:00:00+00:00"))
    submissions.create(_payload("s1", "L", "2025-03-02T10:00:00+00:00"))
    submissions.create(_payload("s2", "L", "2025-03-09T10:00:00+00:00"))
    assert submissions.find_latest("s1", "L").id == newest
    assert submissions.find_latest("s1", "other") is None


def test_find_all_for_lesson_and_review(submissions):
    submissions.create(_payload("s1", "A", "2025-03-01T10:00:00+00:00"))
    submissions.create(_payload("s2", "A", "2025-03-02T10:00:00+00:00"))
    submissions.create(_payload("s3", "B", "2025-03-03T10:00:00+00:00"))
    assert [s.student_id for s in submissions.find_all_for_lesson("A")] == ["s2", "s1"]
    assert [s.student_id for s in submissions.find_all_for_review()] == ["s3", "s2", "s1"]
    assert len(submissions.find_all_for_student("s1")) == 1


def test_update_is_partial(submissions):
    sub_id = submissions.create(_payload("s1", "A", "2025-03-01T10:00:00+00:00"))
    submissions.update(sub_id, {"ai_feedback": "good"})
    sub = submissions.get(sub_id)
    assert sub.ai_feedback == "good"
    assert sub.status == "submitted"


def test_subscribe_pushes_latest(submissions):
    seen = []
    unsubscribe = submissions.subscribe(seen.append, student_id="s1", lesson_id="A", limit=1)
    assert seen == [[]]
    sub_id = submissions.create(_payload("s1", "A", "2025-03-01T10:00:00+00:00"))
    submissions.update(sub_id, {"status": "reviewed", "grade": 90})
    assert seen[-1][0].status == "reviewed"
    assert seen[-1][0].grade == 90
    unsubscribe()
