"""Exceptions raised by the tutoring services."""


class TutorHubError(Exception):
    """Base class for all tutorhub errors."""

    retriable = False


class IdentityUnavailable(TutorHubError):
    """The identity provider could not be reached."""

    retriable = True


class StoreUnavailable(TutorHubError):
    """The document store could not complete a request."""

    retriable = True


class ValidationError(TutorHubError):
    """Local content checks failed. Nothing was written."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(f"{field}: {msg}" for field, msg in self.errors.items()))


class InvalidTransition(ValidationError):
    def __init__(self, current: str, event: str):
        self.current = current
        self.event = event
        super().__init__({"status": f"cannot {event} a submission that is {current}"})


class AccessDenied(TutorHubError):
    """A role check or the prerequisite gate refused the request."""


class FeedbackGenerationFailed(TutorHubError):
    """The AI feedback service failed. Never fatal to a submission."""


class InvalidCredentials(TutorHubError):
    pass


class DocumentNotFound(TutorHubError):
    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection}/{doc_id} does not exist")
