from datetime import datetime, timedelta, timezone

import pytest

from tutorhub.db import init_db
from tutorhub.errors import FeedbackGenerationFailed
from tutorhub.gate import PrerequisiteGate
from tutorhub.models import Identity
from tutorhub.store import DocumentStore
from tutorhub.submissions import SubmissionStore
from tutorhub.feedback import FeedbackOrchestrator
from tutorhub.workflow import SubmissionWorkflow


class StepClock:
    """Returns a strictly increasing ISO timestamp on each call."""

    def __init__(self, start=datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> str:
        self.current += timedelta(minutes=1)
        return self.current.isoformat()


class FakeFeedbackService:
    def __init__(self, reply="Nice work, check your signs.", fail=False):
        self.reply = reply
        self.fail = fail
        self.calls = []

    def generate_feedback(self, **request):
        self.calls.append(request)
        if self.fail:
            raise FeedbackGenerationFailed("AI feedback service unavailable")
        return self.reply


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_tutorhub.db")
    return db_path


@pytest.fixture
def store(tmp_db):
    init_db(tmp_db)
    return DocumentStore(tmp_db)


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def submissions(store):
    return SubmissionStore(store)


@pytest.fixture
def gate(submissions):
    return PrerequisiteGate(submissions)


@pytest.fixture
def feedback_service():
    return FakeFeedbackService()


@pytest.fixture
def workflow(submissions, gate, feedback_service, clock):
    orchestrator = FeedbackOrchestrator(feedback_service, submissions)
    return SubmissionWorkflow(submissions, gate, orchestrator, clock=clock)


@pytest.fixture
def student():
    return Identity(id="student-1", role="student", is_privileged=False, display_name="Sam Student", email="sam@example.com")


@pytest.fixture
def tutor():
    return Identity(id="tutor-1", role="tutor", is_privileged=True, display_name="Tess Tutor", email="tess@example.com")
