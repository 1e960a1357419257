"""
Tests for the session records.
"""
import datetime

from session_auth.models import CachedSession, Identity, SessionContext, SessionToken

NOW = datetime.datetime(2026, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
LATER = NOW + datetime.timedelta(hours=1)


def make_token(token="t1", issued_at=NOW, expires_at=LATER):
    return SessionToken(
        token=token,
        username="alice",
        effective_salt="e" * 64,
        issued_at=issued_at,
        expires_at=expires_at,
    )


def make_identity():
    return Identity(subject_id="1", username="alice", roles=frozenset({"user", "admin"}), salt="666")


def test_identity_hides_salt():
    """Test that the raw salt is kept out of dumps and reprs."""
    identity = make_identity()

    assert "salt" not in identity.model_dump()
    assert "666" not in repr(identity)
    assert identity.without_salt().salt is None
    assert identity.salt == "666"


def test_session_token_hides_effective_salt():
    """Test that the effective salt is not serialized."""
    token = make_token()

    assert "effective_salt" not in token.model_dump()
    assert token.effective_salt == "e" * 64


def test_session_token_rotated():
    """Test building the successor of a token."""
    token = make_token()
    successor = token.rotated("t2", LATER, LATER + datetime.timedelta(hours=1))

    assert successor.token == "t2"
    assert successor.username == token.username
    assert successor.effective_salt == token.effective_salt
    assert token.token == "t1"


def test_cached_session_from_login():
    """Test building the cache entry of a fresh login."""
    token = make_token()

    session = CachedSession.from_login(make_identity().without_salt(), token, "10.0.0.1", "pytest")

    assert session.token == "t1"
    assert session.effective_salt == token.effective_salt
    assert session.logged_in_at == NOW
    assert session.to_token() == token


def test_cached_session_with_token():
    """Test re-pointing a session at a rotated token."""
    session = CachedSession.from_login(make_identity(), make_token())
    rotated = make_token("t2", LATER, LATER + datetime.timedelta(hours=1))

    moved = session.with_token(rotated)

    assert moved.token == "t2"
    assert moved.expires_at == rotated.expires_at
    assert moved.logged_in_at == NOW
    assert moved.roles == session.roles


def test_public_view():
    """Test the client-facing projection of a session."""
    session = CachedSession.from_login(make_identity(), make_token(), "10.0.0.1")

    view = session.public_view()

    assert view["username"] == "alice"
    assert view["roles"] == ["admin", "user"]
    assert view["client_ip"] == "10.0.0.1"
    assert "effective_salt" not in view
    assert "token" not in view


def test_session_context():
    """Test the per-request session context accessors."""
    token = make_token()
    context = SessionContext(token=token, session=CachedSession.from_login(make_identity(), token))

    assert context.username == "alice"
    assert context.roles == ["admin", "user"]
