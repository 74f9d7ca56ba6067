"""Tutoring session bookings."""
import logging
from datetime import date
from typing import Optional

from tutorhub.errors import AccessDenied, ValidationError
from tutorhub.models import SUBJECTS, Booking, Identity
from tutorhub.store import DocumentStore

logger = logging.getLogger(__name__)

BOOKINGS = "bookings"

TIME_SLOTS = (
    "09:00", "09:30", "10:00", "10:30", "11:00", "11:30",
    "14:00", "14:30", "15:00", "15:30", "16:00", "16:30",
)


def create_booking(
    store: DocumentStore,
    identity: Optional[Identity],
    subject: str,
    session_date: str,
    time: str,
    today: Optional[date] = None,
) -> Booking:
    if identity is None:
        raise AccessDenied("You must be logged in to book a session.")
    today = today or date.today()
    errors = {}
    if subject not in SUBJECTS:
        errors["subject"] = "Please select a subject."
    try:
        day = date.fromisoformat(session_date)
    except (TypeError, ValueError):
        errors["date"] = "Please select a date (YYYY-MM-DD)."
    else:
        if day < today:
            errors["date"] = "Sessions cannot be booked in the past."
    if time not in TIME_SLOTS:
        errors["time"] = "Please select one of the available time slots."
    if errors:
        raise ValidationError(errors)
    booking = Booking(id=None, user_id=identity.id, subject=subject, date=day.isoformat(), time=time, confirmed=True)
    booking.id = store.add(BOOKINGS, booking.to_doc())
    logger.info("Booked %s session %s %s for %s", subject, session_date, time, identity.id)
    return booking


def list_bookings(store: DocumentStore, user_id: str) -> list[Booking]:
    docs = store.query(BOOKINGS, {"user_id": user_id})
    bookings = [Booking.from_doc(d) for d in docs]
    return sorted(bookings, key=lambda b: (b.date, b.time))
