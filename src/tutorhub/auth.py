"""Local identity provider: email/password accounts in the SQLite database."""
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from passlib.context import CryptContext

from tutorhub.db import get_connection
from tutorhub.errors import IdentityUnavailable, InvalidCredentials, ValidationError
from tutorhub.models import Principal

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class LocalIdentityProvider:
    """Sign-up, sign-in and session state for one process.

    Listeners registered with on_auth_state_change receive the current
    principal (or None) immediately and after every sign-in/sign-out.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self._current: Optional[Principal] = None
        self._listeners: list[Callable[[Optional[Principal]], None]] = []

    def _query(self, sql: str, params: tuple, commit: bool = False):
        try:
            conn = get_connection(self.db_path)
            try:
                row = conn.execute(sql, params).fetchone()
                if commit:
                    conn.commit()
                return row
            finally:
                conn.close()
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            raise IdentityUnavailable(f"identity provider unreachable: {exc}") from exc

    def sign_up(self, display_name: str, email: str, password: str) -> Principal:
        errors = {}
        if not display_name.strip():
            errors["display_name"] = "Name is required."
        if "@" not in email:
            errors["email"] = "Enter a valid email address."
        if len(password) < MIN_PASSWORD_LENGTH:
            errors["password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
        if errors:
            raise ValidationError(errors)
        uid = uuid.uuid4().hex
        email = email.strip().lower()
        try:
            self._query(
                "INSERT INTO accounts (uid, email, password_hash, display_name, created_at) VALUES (?, ?, ?, ?, ?)",
                (uid, email, hash_password(password), display_name.strip(), datetime.now(timezone.utc).isoformat()),
                commit=True,
            )
        except sqlite3.IntegrityError as exc:
            raise InvalidCredentials(f"An account already exists for {email}") from exc
        principal = Principal(uid=uid, email=email, display_name=display_name.strip())
        self._set_current(principal)
        return principal

    def sign_in(self, email: str, password: str) -> Principal:
        row = self._query(
            "SELECT uid, email, password_hash, display_name FROM accounts WHERE email = ?",
            (email.strip().lower(),),
        )
        if row is None or not verify_password(password, row["password_hash"]):
            raise InvalidCredentials("Invalid email or password")
        principal = Principal(uid=row["uid"], email=row["email"], display_name=row["display_name"])
        self._set_current(principal)
        return principal

    def sign_out(self) -> None:
        self._set_current(None)

    def current_principal(self) -> Optional[Principal]:
        return self._current

    def on_auth_state_change(self, callback: Callable[[Optional[Principal]], None]) -> Callable[[], None]:
        self._listeners.append(callback)
        callback(self._current)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe

    def _set_current(self, principal: Optional[Principal]) -> None:
        self._current = principal
        logger.info("Auth state changed: %s", principal.uid if principal else "signed out")
        for callback in list(self._listeners):
            callback(principal)
