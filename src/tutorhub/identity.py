"""Map an authenticated principal to a role and privilege flag."""
import logging
from typing import Callable, Optional

from tutorhub.errors import IdentityUnavailable, StoreUnavailable
from tutorhub.models import PRIVILEGED_ROLES, STUDENT, TUTOR, Identity, Principal, UserProfile
from tutorhub.store import DocumentStore, server_timestamp

logger = logging.getLogger(__name__)

USERS = "users"
EDITABLE_PROFILE_FIELDS = ("display_name", "email", "cell_number")


class IdentityResolver:
    def __init__(
        self,
        store: DocumentStore,
        admin_id: str = "",
        clock: Callable[[], str] = server_timestamp,
    ):
        self.store = store
        self.admin_id = admin_id
        self.clock = clock

    def is_admin_id(self, uid: str) -> bool:
        return bool(self.admin_id) and uid == self.admin_id

    def resolve(
        self,
        principal: Principal,
        display_name: Optional[str] = None,
        cell_number: Optional[str] = None,
    ) -> Identity:
        """Return the principal's identity, creating a default profile if none exists.

        The stored role is authoritative. The configured administrator id is a
        bootstrap fallback: it gets the tutor role on first profile creation and
        is always treated as privileged.
        """
        try:
            doc = self.store.get(USERS, principal.uid)
            if doc is None:
                profile = UserProfile(
                    id=principal.uid,
                    email=principal.email,
                    display_name=display_name or principal.display_name or "New User",
                    role=TUTOR if self.is_admin_id(principal.uid) else STUDENT,
                    cell_number=cell_number,
                    created_at=self.clock(),
                )
                self.store.set(USERS, profile.id, profile.to_doc())
                logger.info("Created %s profile for %s", profile.role, profile.id)
            else:
                profile = UserProfile.from_doc(doc)
        except StoreUnavailable as exc:
            raise IdentityUnavailable(f"could not resolve identity: {exc}") from exc
        return Identity(
            id=profile.id,
            role=profile.role,
            is_privileged=profile.role in PRIVILEGED_ROLES or self.is_admin_id(profile.id),
            display_name=profile.display_name,
            email=profile.email,
        )

    def resolve_or_none(self, principal: Optional[Principal]) -> Optional[Identity]:
        """Resolve, treating an unreachable provider as 'not authenticated'."""
        if principal is None:
            return None
        try:
            return self.resolve(principal)
        except IdentityUnavailable as exc:
            logger.warning("Identity resolution failed for %s: %s", principal.uid, exc)
            return None

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        doc = self.store.get(USERS, user_id)
        return UserProfile.from_doc(doc) if doc else None

    def update_profile(self, user_id: str, **fields) -> None:
        """Update the attributes a user may change; the role is not one of them."""
        unknown = set(fields) - set(EDITABLE_PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Profile fields not editable: {', '.join(sorted(unknown))}")
        self.store.update(USERS, user_id, fields)
