"""AI feedback generation and the post-grading unlock advisory."""
import logging
from typing import Optional

import httpx

from tutorhub.config import Settings
from tutorhub.errors import FeedbackGenerationFailed, ValidationError
from tutorhub.gate import UNLOCK_THRESHOLD
from tutorhub.models import Lesson, SingleAnswer, Submission, UnlockAdvice
from tutorhub.submissions import SubmissionStore

logger = logging.getLogger(__name__)

FEEDBACK_PROMPT = """You are an AI tutor giving feedback on a student's answer to a question.

Subject: {subject}
Lesson Title: {lesson_title}

Student's Answer: {student_answer}
Student's Reasoning: {student_reasoning}
Correct Solution: {correct_solution}

Give constructive feedback, highlighting areas for improvement and explaining any mistakes.
Focus on the student's reasoning and offer specific suggestions for improving their understanding.
Keep the feedback encouraging and helpful."""


class ChatFeedbackClient:
    """Feedback service backed by an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        model: str,
        *,
        client: httpx.Client | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        if client is None:
            self._client = httpx.Client(base_url=base_url, timeout=timeout)
            self._owns_client = True
        else:
            self._client = client
            self._owns_client = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ChatFeedbackClient":
        return cls(
            settings.feedback_base_url,
            settings.feedback_api_key,
            settings.feedback_model,
            timeout=settings.feedback_timeout,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def generate_feedback(
        self,
        lesson_title: str,
        subject: str,
        student_answer: str,
        student_reasoning: str,
        correct_solution: str,
    ) -> str:
        if not self.api_key:
            raise FeedbackGenerationFailed("AI feedback is not configured")
        prompt = FEEDBACK_PROMPT.format(
            subject=subject,
            lesson_title=lesson_title,
            student_answer=student_answer,
            student_reasoning=student_reasoning,
            correct_solution=correct_solution,
        )
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.2,
        }
        try:
            response = self._client.post(
                "/chat/completions",
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            feedback = response.json()["choices"][0]["message"]["content"].strip()
        except httpx.HTTPError as exc:
            raise FeedbackGenerationFailed(f"AI feedback request failed: {exc}") from exc
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as exc:
            raise FeedbackGenerationFailed("AI feedback service returned an unexpected payload") from exc
        if not feedback:
            raise FeedbackGenerationFailed("AI feedback service returned no feedback")
        return feedback


class FeedbackOrchestrator:
    def __init__(self, service, submissions: SubmissionStore):
        self.service = service
        self.submissions = submissions

    @staticmethod
    def build_request(lesson: Lesson, submission: Submission) -> dict:
        # Structured lessons send only the first sub-question's work.
        if isinstance(submission.answer, SingleAnswer):
            answer, reasoning = submission.answer.answer, submission.answer.reasoning
        elif submission.answer.items:
            first = submission.answer.items[0]
            answer, reasoning = first.answer, first.reasoning
        else:
            answer, reasoning = "", ""
        return {
            "lesson_title": lesson.title,
            "subject": lesson.subject,
            "student_answer": answer,
            "student_reasoning": reasoning,
            "correct_solution": lesson.example_solution,
        }

    def generate(self, lesson: Lesson, submission: Submission) -> str:
        """Generate feedback for a submitted answer and store it on the record.

        Raises FeedbackGenerationFailed if the service fails; the record's
        ai_feedback is then left untouched (null after a submit).
        """
        feedback = self.service.generate_feedback(**self.build_request(lesson, submission))
        self.submissions.update(submission.id, {"ai_feedback": feedback})
        logger.info("Stored AI feedback for submission %s", submission.id)
        return feedback


def check_lesson_unlock(student_id: str, lesson_id: str, grade: float) -> UnlockAdvice:
    """Advise whether a freshly recorded grade unlocks the next lesson.

    Purely advisory: the prerequisite gate recomputes from stored grades.
    """
    if isinstance(grade, bool) or not isinstance(grade, (int, float)) or not 0 <= grade <= 100:
        raise ValidationError({"grade": "Grade must be a number from 0 to 100."})
    logger.info("Unlock check for %s after %s: grade %s", student_id, lesson_id, grade)
    if grade >= UNLOCK_THRESHOLD:
        return UnlockAdvice(True, "Great work! You've unlocked the next lesson.")
    return UnlockAdvice(
        False,
        f"You need at least {UNLOCK_THRESHOLD}% to unlock the next lesson. "
        "Please revise and resubmit your work.",
    )
