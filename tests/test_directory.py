"""
Tests for the database-backed identity provider.
"""
import pytest

from session_auth.directory import (IdentityDisabledError,
                                    IdentityNotFoundError, UserExistsError)
from session_auth.models import UserRecord


def test_create_user(provider, alice):
    """Test provisioning a user."""
    assert alice.username == "alice"
    assert alice.roles == frozenset({"admin"})
    assert alice.salt == "666"
    assert alice.subject_id


def test_create_user_generates_salt(provider, bob):
    """Test that a salt is generated when none is given."""
    assert bob.salt
    assert len(bob.salt) == 32
    assert provider.create_user("carol").salt != bob.salt


def test_create_duplicate_user(provider, alice):
    """Test that usernames are unique."""
    with pytest.raises(UserExistsError):
        provider.create_user("alice")


def test_create_user_with_empty_username(provider):
    """Test that a username is required."""
    with pytest.raises(ValueError):
        provider.create_user("")
    with pytest.raises(ValueError):
        provider.create_user("   ")


def test_resolve(provider, alice, bob):
    """Test resolving a username to its identity."""
    identity = provider.resolve("bob")

    assert identity == bob
    assert identity.roles == frozenset({"user", "auditor"})
    assert identity.salt == bob.salt


def test_resolve_unknown_user(provider):
    """Test resolving a username the directory does not know."""
    with pytest.raises(IdentityNotFoundError):
        provider.resolve("nobody")


def test_resolve_inactive_user(provider, alice):
    """Test that disabled users cannot be resolved."""
    provider.set_active("alice", False)

    with pytest.raises(IdentityDisabledError):
        provider.resolve("alice")

    provider.set_active("alice", True)
    assert provider.resolve("alice").username == "alice"


def test_set_active_unknown_user(provider):
    """Test toggling a user that does not exist."""
    with pytest.raises(IdentityNotFoundError):
        provider.set_active("nobody", False)


def test_get_roles(provider, bob):
    """Test looking up roles from the directory."""
    assert provider.get_roles("bob") == ["auditor", "user"]


def test_roles_column_round_trip(database, bob):
    """Test that the role set is stored as a sorted comma separated string."""
    with database.session_scope() as session:
        user = session.query(UserRecord).filter(UserRecord.username == "bob").first()
        assert user.roles == "auditor,user"
        assert user.role_set == frozenset({"auditor", "user"})
        assert user.is_active is True
