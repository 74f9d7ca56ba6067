"""Tests for AI feedback generation and the unlock advisory."""
import json

import httpx
import pytest

from tutorhub.config import Settings
from tutorhub.errors import FeedbackGenerationFailed, ValidationError
from tutorhub.feedback import ChatFeedbackClient, FeedbackOrchestrator, check_lesson_unlock
from tutorhub.lessons import get_lesson_by_id
from tutorhub.models import AnswerItem, SingleAnswer, StructuredAnswer, Submission

REQUEST = {
    "lesson_title": "Forces",
    "subject": "Physics",
    "student_answer": "20 N",
    "student_reasoning": "F = ma with m = 4 and a = 5",
    "correct_solution": "F = 4 x 5 = 20 N",
}


def _client(handler, api_key="sk-test"):
    http = httpx.Client(base_url="https://llm.example/v1", transport=httpx.MockTransport(handler))
    return ChatFeedbackClient("https://llm.example/v1", api_key, "test-model", client=http)


def _reply(content):
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def test_generate_feedback_posts_chat_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return _reply("  Good use of Newton's second law.  ")

    feedback = _client(handler).generate_feedback(**REQUEST)

    assert feedback == "Good use of Newton's second law."
    assert seen["url"] == "https://llm.example/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "test-model"
    prompt = seen["body"]["messages"][0]["content"]
    assert "Subject: Physics" in prompt
    assert "Student's Answer: 20 N" in prompt
    assert "Correct Solution: F = 4 x 5 = 20 N" in prompt


def test_http_error_raises():
    client = _client(lambda request: httpx.Response(503, json={"error": "overloaded"}))
    with pytest.raises(FeedbackGenerationFailed):
        client.generate_feedback(**REQUEST)


def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FeedbackGenerationFailed, match="request failed"):
        _client(handler).generate_feedback(**REQUEST)


def test_unexpected_payload_raises():
    client = _client(lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(FeedbackGenerationFailed, match="unexpected payload"):
        client.generate_feedback(**REQUEST)


def test_empty_feedback_raises():
    with pytest.raises(FeedbackGenerationFailed, match="no feedback"):
        _client(lambda request: _reply("   ")).generate_feedback(**REQUEST)


def test_missing_api_key_raises_without_request():
    calls = []

    def handler(request):
        calls.append(request)
        return _reply("unused")

    with pytest.raises(FeedbackGenerationFailed, match="not configured"):
        _client(handler, api_key=None).generate_feedback(**REQUEST)
    assert calls == []


def test_from_settings():
    settings = Settings(feedback_base_url="https://llm.example/v1", feedback_api_key="k", feedback_model="m")
    client = ChatFeedbackClient.from_settings(settings)
    try:
        assert client.model == "m"
        assert client.api_key == "k"
    finally:
        client.close()


def _submission(answer):
    return Submission(
        id="sub-1", student_id="s1", lesson_id="math-alg-001", lesson_title="Lesson 1",
        subject="Mathematics", status="submitted", answer=answer,
    )


def test_build_request_structured_uses_first_item():
    lesson = get_lesson_by_id("math-alg-001")
    answer = StructuredAnswer(items=[
        AnswerItem("1.1.1", "x = 2 or 3", "zero product"),
        AnswerItem("1.1.2", "x = 0.26", "formula"),
    ])
    request = FeedbackOrchestrator.build_request(lesson, _submission(answer))
    assert request["student_answer"] == "x = 2 or 3"
    assert request["student_reasoning"] == "zero product"
    assert request["correct_solution"] == lesson.example_solution


def test_build_request_single():
    lesson = get_lesson_by_id("phys-mech-001")
    request = FeedbackOrchestrator.build_request(lesson, _submission(SingleAnswer("because", "20 N")))
    assert request["student_answer"] == "20 N"
    assert request["lesson_title"] == lesson.title
    assert request["subject"] == "Physics"


def test_orchestrator_stores_feedback(submissions, feedback_service):
    lesson = get_lesson_by_id("phys-mech-001")
    sub = _submission(SingleAnswer("because of F = ma", "20 N"))
    sub.id = submissions.create(sub.to_doc())
    text = FeedbackOrchestrator(feedback_service, submissions).generate(lesson, sub)
    assert text == feedback_service.reply
    assert submissions.get(sub.id).ai_feedback == feedback_service.reply


def test_orchestrator_failure_leaves_record(submissions, feedback_service):
    feedback_service.fail = True
    lesson = get_lesson_by_id("phys-mech-001")
    sub = _submission(SingleAnswer("because of F = ma", "20 N"))
    sub.id = submissions.create(sub.to_doc())
    with pytest.raises(FeedbackGenerationFailed):
        FeedbackOrchestrator(feedback_service, submissions).generate(lesson, sub)
    assert submissions.get(sub.id).ai_feedback is None


def test_unlock_at_threshold():
    advice = check_lesson_unlock("s1", "math-alg-001", 75)
    assert advice.unlock_next_lesson is True
    assert advice.message == "Great work! You've unlocked the next lesson."


def test_unlock_just_below_threshold():
    advice = check_lesson_unlock("s1", "math-alg-001", 74.9)
    assert advice.unlock_next_lesson is False
    assert "at least 75%" in advice.message


@pytest.mark.parametrize("grade", [-1, 100.5, "80", None, True])
def test_unlock_rejects_invalid_grade(grade):
    with pytest.raises(ValidationError):
        check_lesson_unlock("s1", "math-alg-001", grade)
