"""Tests for resolving principals to roles."""
import pytest

from tutorhub.errors import IdentityUnavailable
from tutorhub.identity import IdentityResolver
from tutorhub.models import Principal
from tutorhub.store import DocumentStore


def test_first_resolve_creates_student_profile(store, clock):
    resolver = IdentityResolver(store, admin_id="admin-uid", clock=clock)
    identity = resolver.resolve(Principal(uid="u1", email="ann@example.com", display_name="Ann"))
    assert identity.role == "student"
    assert identity.is_privileged is False
    profile = resolver.get_profile("u1")
    assert profile.display_name == "Ann"
    assert profile.created_at is not None


def test_designated_id_bootstraps_as_tutor(store):
    resolver = IdentityResolver(store, admin_id="admin-uid")
    identity = resolver.resolve(Principal(uid="admin-uid", email="boss@example.com"))
    assert identity.role == "tutor"
    assert identity.is_privileged is True
    assert resolver.get_profile("admin-uid").display_name == "New User"


def test_stored_role_is_used(store):
    store.set("users", "u2", {"email": "t@example.com", "display_name": "Tess", "role": "admin"})
    identity = IdentityResolver(store).resolve(Principal(uid="u2", email="t@example.com"))
    assert identity.role == "admin"
    assert identity.is_privileged is True


def test_designated_id_privileged_even_with_student_profile(store):
    store.set("users", "admin-uid", {"email": "b@example.com", "display_name": "B", "role": "student"})
    identity = IdentityResolver(store, admin_id="admin-uid").resolve(Principal(uid="admin-uid", email="b@example.com"))
    assert identity.role == "student"
    assert identity.is_privileged is True


def test_empty_admin_id_never_matches(store):
    identity = IdentityResolver(store, admin_id="").resolve(Principal(uid="", email="x@example.com"))
    assert identity.is_privileged is False


def test_profile_fields_passed_at_registration(store):
    resolver = IdentityResolver(store)
    resolver.resolve(Principal(uid="u3", email="c@example.com"), display_name="Cara", cell_number="0821234567")
    profile = resolver.get_profile("u3")
    assert profile.display_name == "Cara"
    assert profile.cell_number == "0821234567"


def test_update_profile_refuses_role(store):
    resolver = IdentityResolver(store)
    resolver.resolve(Principal(uid="u4", email="d@example.com"))
    resolver.update_profile("u4", display_name="Dee")
    assert resolver.get_profile("u4").display_name == "Dee"
    with pytest.raises(ValueError):
        resolver.update_profile("u4", role="admin")


def test_unavailable_store_raises_identity_unavailable(tmp_path):
    resolver = IdentityResolver(DocumentStore(str(tmp_path / "missing" / "x.db")))
    principal = Principal(uid="u1", email="a@example.com")
    with pytest.raises(IdentityUnavailable):
        resolver.resolve(principal)
    assert resolver.resolve_or_none(principal) is None
    assert resolver.resolve_or_none(None) is None
