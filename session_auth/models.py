"""
Data models for the Session Authentication service.

This module defines the immutable records that flow through the token
lifecycle (identities, session tokens, cached sessions and the per-request
session context) and the SQLAlchemy model for the user directory.
"""
import datetime
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Boolean, Column, DateTime, Integer, String

from session_auth.database import Base


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Identity(BaseModel):
    """
    Authenticated identity as returned by the identity provider.

    The raw per-user salt never leaves the service: it is excluded from
    serialization and stripped with ``without_salt()`` right after the
    effective salt has been derived.
    """

    model_config = ConfigDict(frozen=True)

    subject_id: str
    username: str
    roles: FrozenSet[str] = frozenset()
    salt: Optional[str] = Field(default=None, exclude=True, repr=False)

    def without_salt(self) -> "Identity":
        """Return a copy of the identity with the raw salt cleared."""
        return self.model_copy(update={"salt": None})


class SessionToken(BaseModel):
    """
    A minted session token.

    Rotation never mutates a record; ``rotated()`` returns the successor,
    keeping the username and effective salt.
    """

    model_config = ConfigDict(frozen=True)

    token: str
    username: str
    effective_salt: str = Field(exclude=True, repr=False)
    issued_at: datetime.datetime
    expires_at: datetime.datetime

    def rotated(
        self,
        token: str,
        issued_at: datetime.datetime,
        expires_at: datetime.datetime,
    ) -> "SessionToken":
        return self.model_copy(
            update={"token": token, "issued_at": issued_at, "expires_at": expires_at}
        )


class CachedSession(BaseModel):
    """
    Value stored in the session cache under a token string.

    Holds a snapshot of the identity (without the raw salt) and everything
    needed to rebuild the ``SessionToken`` on refresh.
    """

    model_config = ConfigDict(frozen=True)

    subject_id: str
    username: str
    roles: FrozenSet[str] = frozenset()
    effective_salt: str = Field(repr=False)
    token: str = Field(repr=False)
    issued_at: datetime.datetime
    expires_at: datetime.datetime
    logged_in_at: datetime.datetime = Field(default_factory=_utcnow)
    client_ip: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def from_login(
        cls,
        identity: Identity,
        token: SessionToken,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> "CachedSession":
        return cls(
            subject_id=identity.subject_id,
            username=identity.username,
            roles=identity.roles,
            effective_salt=token.effective_salt,
            token=token.token,
            issued_at=token.issued_at,
            expires_at=token.expires_at,
            logged_in_at=token.issued_at,
            client_ip=client_ip,
            user_agent=user_agent,
        )

    def with_token(self, token: SessionToken) -> "CachedSession":
        """Return the session re-pointed at a rotated token."""
        return self.model_copy(
            update={
                "token": token.token,
                "issued_at": token.issued_at,
                "expires_at": token.expires_at,
            }
        )

    def to_token(self) -> SessionToken:
        return SessionToken(
            token=self.token,
            username=self.username,
            effective_salt=self.effective_salt,
            issued_at=self.issued_at,
            expires_at=self.expires_at,
        )

    def public_view(self) -> Dict[str, Any]:
        """Client-facing projection of the session, with secrets removed."""
        return self.model_dump(
            mode="json", exclude={"effective_salt", "token"}
        ) | {"roles": sorted(self.roles)}


class SessionContext(BaseModel):
    """Explicit per-request session: the presented token and its cache entry."""

    model_config = ConfigDict(frozen=True)

    token: SessionToken
    session: CachedSession

    @property
    def username(self) -> str:
        return self.session.username

    @property
    def roles(self) -> List[str]:
        return sorted(self.session.roles)


class UserRecord(Base):
    """
    User directory entry.

    Stores the per-user salt and the role set the identity provider hands
    out. Credentials are verified upstream and are not stored here.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    salt = Column(String(64), nullable=False)
    roles = Column(String(255), default="", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    @property
    def role_set(self) -> FrozenSet[str]:
        return frozenset(role for role in (self.roles or "").split(",") if role)

    @role_set.setter
    def role_set(self, roles) -> None:
        self.roles = ",".join(sorted(set(roles)))

    def to_identity(self) -> Identity:
        return Identity(
            subject_id=str(self.id),
            username=self.username,
            roles=self.role_set,
            salt=self.salt,
        )

    def __repr__(self) -> str:
        """String representation of the UserRecord object."""
        return f"<UserRecord(id={self.id}, username={self.username}, active={self.is_active})>"
