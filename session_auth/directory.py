"""
User directory for the Session Authentication service.

The identity provider resolves a username whose credentials were verified
upstream into an ``Identity`` carrying the role set and the raw per-user
salt. ``DatabaseIdentityProvider`` is the SQLAlchemy-backed implementation;
any object with a matching ``resolve`` method can stand in for it.
"""
import logging
from typing import Iterable, List, Optional, Protocol

from sqlalchemy.exc import IntegrityError

from session_auth.database import Database, get_database
from session_auth.models import Identity, UserRecord
from session_auth.security import generate_salt

# Configure logging
logger = logging.getLogger(__name__)


class IdentityError(Exception):
    """Base exception for identity resolution errors."""
    pass


class IdentityNotFoundError(IdentityError):
    """Exception raised when a username is not known to the directory."""
    pass


class IdentityDisabledError(IdentityError):
    """Exception raised when the user exists but is not allowed to log in."""
    pass


class UserExistsError(IdentityError):
    """Exception raised when trying to create a user that already exists."""
    pass


class IdentityProvider(Protocol):
    """Resolves a username into an authenticated identity."""

    def resolve(self, username: str) -> Identity:
        ...


class DatabaseIdentityProvider:
    """
    Identity provider backed by the ``users`` table.
    """

    def __init__(self, database: Optional[Database] = None):
        """
        Initialize the provider.

        Args:
            database: Database to read from. Defaults to the application database.
        """
        self._database = database

    @property
    def database(self) -> Database:
        return self._database or get_database()

    # PUBLIC_INTERFACE
    def resolve(self, username: str) -> Identity:
        """
        Resolve a username to its identity.

        Args:
            username: Username to look up.

        Returns:
            The identity, including the raw per-user salt.

        Raises:
            IdentityNotFoundError: If the user does not exist.
            IdentityDisabledError: If the user is inactive.
        """
        with self.database.session_scope() as session:
            user = session.query(UserRecord).filter(UserRecord.username == username).first()
            if user is None:
                raise IdentityNotFoundError(f"User {username} not found")
            if not user.is_active:
                raise IdentityDisabledError(f"User {username} is inactive")
            return user.to_identity()

    # PUBLIC_INTERFACE
    def get_roles(self, username: str) -> List[str]:
        """
        Look up a user's roles directly from the directory.

        Args:
            username: Username to look up.

        Returns:
            Sorted list of role names.
        """
        return sorted(self.resolve(username).roles)

    # PUBLIC_INTERFACE
    def create_user(self, username: str, roles: Iterable[str] = (), salt: Optional[str] = None) -> Identity:
        """
        Provision a new user with a fresh salt.

        Args:
            username: Username for the new user.
            roles: Roles granted to the user.
            salt: Per-user salt. Generated when omitted.

        Returns:
            The identity of the created user.

        Raises:
            UserExistsError: If the username is taken.
            ValueError: If the username is empty.
        """
        if not username or not username.strip():
            raise ValueError("Username cannot be empty")

        try:
            with self.database.session_scope() as session:
                user = UserRecord(username=username, salt=salt or generate_salt())
                user.role_set = roles
                session.add(user)
                session.flush()
                identity = user.to_identity()
        except IntegrityError:
            raise UserExistsError(f"User {username} already exists")

        logger.info(f"Created user {username}")
        return identity

    # PUBLIC_INTERFACE
    def set_active(self, username: str, active: bool) -> None:
        """
        Enable or disable a user.

        Args:
            username: Username to update.
            active: New active flag.

        Raises:
            IdentityNotFoundError: If the user does not exist.
        """
        with self.database.session_scope() as session:
            user = session.query(UserRecord).filter(UserRecord.username == username).first()
            if user is None:
                raise IdentityNotFoundError(f"User {username} not found")
            user.is_active = active
        logger.info(f"User {username} {'activated' if active else 'deactivated'}")
