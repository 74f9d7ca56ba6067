"""Star ratings and comments left on lessons."""
import logging
from typing import Callable, Optional

from tutorhub.errors import AccessDenied, ValidationError
from tutorhub.models import Identity, LessonRating
from tutorhub.store import DocumentStore, server_timestamp

logger = logging.getLogger(__name__)

LESSON_RATINGS = "lesson_ratings"
MAX_COMMENT_LENGTH = 500


def rate_lesson(
    store: DocumentStore,
    identity: Optional[Identity],
    lesson_id: str,
    rating: int,
    comment: str = "",
    clock: Callable[[], str] = server_timestamp,
) -> LessonRating:
    if identity is None:
        raise AccessDenied("You must be logged in to submit feedback.")
    errors = {}
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        errors["rating"] = "Rating is required (1 to 5 stars)."
    if len(comment) > MAX_COMMENT_LENGTH:
        errors["comment"] = f"Comment cannot exceed {MAX_COMMENT_LENGTH} characters."
    if errors:
        raise ValidationError(errors)
    entry = LessonRating(
        id=None, lesson_id=lesson_id, user_id=identity.id,
        rating=rating, comment=comment.strip(), submitted_at=clock(),
    )
    entry.id = store.add(LESSON_RATINGS, {
        "lesson_id": entry.lesson_id,
        "user_id": entry.user_id,
        "rating": entry.rating,
        "comment": entry.comment,
        "submitted_at": entry.submitted_at,
    })
    logger.info("Lesson %s rated %d by %s", lesson_id, rating, identity.id)
    return entry


def get_average_rating(store: DocumentStore, lesson_id: str) -> float | None:
    docs = store.query(LESSON_RATINGS, {"lesson_id": lesson_id})
    if not docs:
        return None
    return round(sum(d["rating"] for d in docs) / len(docs), 1)
