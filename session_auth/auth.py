"""
Token lifecycle management for the Session Authentication service.

This module orchestrates login (mint a token and register its session),
per-request authentication, transparent refresh (rotate a token that is about
to expire) and logout (revoke the session). The session cache decides whether
a token is live; the signer only proves a token was issued by us.
"""
import enum
import logging
from typing import List, Optional, Tuple, Union

from session_auth.cache import SessionCache
from session_auth.config.jwt_config import JwtProperties
from session_auth.directory import IdentityError, IdentityProvider
from session_auth.models import CachedSession, SessionContext, SessionToken
from session_auth.security import derive_salt
from session_auth.token import (Clock, JwtSigner, TokenClaims, TokenError,
                                TokenExpiredError, TokenInvalidatedError,
                                TokenInvalidError, utc_now)

# Configure logging
logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Base exception for authentication-related errors."""
    pass


class LoginFailedError(AuthError):
    """Exception raised when the identity behind a login cannot be resolved."""
    pass


class TokenState(enum.Enum):
    """State of a token string as seen by the lifecycle manager."""
    ABSENT = "absent"
    LIVE = "live"
    STALE = "stale"
    EXPIRED = "expired"


class RefreshStatus(enum.Enum):
    """Outcome of a refresh attempt."""
    UNCHANGED = "unchanged"
    ROTATED = "rotated"
    INVALIDATED = "invalidated"


class RefreshResult:
    """
    Tagged result of ``TokenLifecycleManager.refresh``.

    ``token`` is the token the client should use from now on: the presented
    value, exactly as given, when UNCHANGED, the replacement when ROTATED and
    None when INVALIDATED, in which case ``error`` says why.
    """

    def __init__(
        self,
        status: RefreshStatus,
        token: Union[SessionToken, str, None] = None,
        error: Optional[TokenError] = None,
    ):
        self.status = status
        self.token = token
        self.error = error

    @classmethod
    def unchanged(cls, token: Union[SessionToken, str, None]) -> "RefreshResult":
        return cls(RefreshStatus.UNCHANGED, token=token)

    @classmethod
    def rotated(cls, token: SessionToken) -> "RefreshResult":
        return cls(RefreshStatus.ROTATED, token=token)

    @classmethod
    def invalidated(cls, error: TokenError) -> "RefreshResult":
        return cls(RefreshStatus.INVALIDATED, error=error)

    @property
    def is_rotated(self) -> bool:
        return self.status is RefreshStatus.ROTATED

    @property
    def is_invalidated(self) -> bool:
        return self.status is RefreshStatus.INVALIDATED

    def raise_for_status(self) -> None:
        """Raise the carried error if the token was invalidated."""
        if self.error is not None:
            raise self.error

    def __repr__(self) -> str:
        return f"<RefreshResult(status={self.status.value}, error={self.error!r})>"


class TokenLifecycleManager:
    """
    Lifecycle manager for session tokens.

    Holds only read-only configuration; all mutable state lives in the session
    cache, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        cache: SessionCache,
        properties: JwtProperties,
        signer: Optional[JwtSigner] = None,
        clock: Optional[Clock] = None,
    ):
        """
        Initialize the lifecycle manager.

        Args:
            provider: Resolves usernames into identities.
            cache: Authoritative registry of live sessions.
            properties: JWT configuration (secret, ttl, refresh window).
            signer: Token signer. Built from properties when omitted.
            clock: Callable returning the current aware UTC datetime.
        """
        self.provider = provider
        self.cache = cache
        self.properties = properties
        self.clock = clock or utc_now
        self.signer = signer or JwtSigner(properties, clock=self.clock)

    # PUBLIC_INTERFACE
    def login(
        self,
        username: str,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> SessionContext:
        """
        Log a user in and register the new session.

        Args:
            username: Username whose credentials were verified upstream.
            client_ip: Optional client address recorded with the session.
            user_agent: Optional client user agent recorded with the session.

        Returns:
            The context of the new session.

        Raises:
            LoginFailedError: If the identity cannot be resolved.
        """
        if not username or not username.strip():
            raise LoginFailedError("Username cannot be empty")

        try:
            identity = self.provider.resolve(username)
        except IdentityError as e:
            logger.error(f"Login failed for {username}: {str(e)}")
            raise LoginFailedError(str(e))

        effective_salt = derive_salt(self.properties.secret, identity.salt)
        identity = identity.without_salt()

        ttl = self.properties.expire_duration
        token = self._mint(identity.username, effective_salt)
        session = CachedSession.from_login(identity, token, client_ip, user_agent)

        self.cache.put_salt(identity.username, effective_salt, ttl)
        self.cache.put(token.token, session, ttl)

        logger.info(f"User {identity.username} logged in")
        return SessionContext(token=token, session=session)

    # PUBLIC_INTERFACE
    def authenticate(self, token: Optional[str]) -> SessionContext:
        """
        Validate a presented token and load its session.

        Args:
            token: Token string sent by the client.

        Returns:
            The context of the live session.

        Raises:
            TokenInvalidError: If the token is missing, malformed or forged.
            TokenExpiredError: If the token has expired.
            TokenInvalidatedError: If the token was revoked or rotated away.
        """
        self._verified_claims(token, verify_exp=True)
        session = self.cache.get(token)
        if session is None:
            raise TokenInvalidatedError("Token is no longer valid, use the refreshed token or log in again")
        return SessionContext(token=session.to_token(), session=session)

    # PUBLIC_INTERFACE
    def refresh(self, token: Union[SessionToken, str, None]) -> RefreshResult:
        """
        Rotate a token that is close to expiry.

        The checks run in a fixed order and each assumes the previous ones
        passed: blank token, refresh disabled, signature, refresh window,
        expiry, then the session cache.

        Args:
            token: The current session token, or its string.

        Returns:
            UNCHANGED, ROTATED with the replacement token, or INVALIDATED
            with the reason.
        """
        presented = token.token if isinstance(token, SessionToken) else token
        if not presented or not presented.strip():
            return RefreshResult.unchanged(token)

        if not self.properties.refresh_token:
            return RefreshResult.unchanged(token)

        try:
            claims = self._verified_claims(presented, verify_exp=False)
        except TokenError as e:
            logger.warning(f"Refusing to refresh token: {str(e)}")
            return RefreshResult.invalidated(e)

        now = self.clock()
        if now + self.properties.refresh_window < claims.expires_at:
            return RefreshResult.unchanged(token)

        if claims.expires_at < now:
            return RefreshResult.invalidated(TokenExpiredError("Token has expired"))

        session = self.cache.get(presented)
        if session is None:
            logger.warning(f"Refresh attempted with stale token {claims.token_id} for {claims.subject}")
            return RefreshResult.invalidated(
                TokenInvalidatedError("Token is no longer valid, use the refreshed token")
            )

        encoded, new_claims = self._sign(session.username, session.effective_salt)
        new_token = session.to_token().rotated(encoded, new_claims.issued_at, new_claims.expires_at)
        ttl = self.properties.expire_duration
        if not self.cache.rotate(presented, new_token.token, session.with_token(new_token), ttl):
            logger.warning(f"Token {claims.token_id} was rotated concurrently")
            return RefreshResult.invalidated(
                TokenInvalidatedError("Token is no longer valid, use the refreshed token")
            )
        self.cache.put_salt(session.username, session.effective_salt, ttl)

        logger.debug(f"Refreshed token {claims.token_id} for {session.username}")
        return RefreshResult.rotated(new_token)

    # PUBLIC_INTERFACE
    def logout(self, context: Optional[SessionContext]) -> None:
        """
        Revoke the session of the current request.

        Logging out twice, or without a session, is not an error.

        Args:
            context: Session context of the current request.
        """
        if context is None:
            return
        self.cache.delete(context.token.token)
        logger.info(f"User {context.username} logged out")

    # PUBLIC_INTERFACE
    def logout_all(self, context: SessionContext) -> int:
        """
        Revoke every session of the current user.

        Args:
            context: Session context of the current request.

        Returns:
            Number of sessions revoked.
        """
        count = self.cache.revoke_all(context.username)
        logger.info(f"User {context.username} logged out of {count} sessions")
        return count

    # PUBLIC_INTERFACE
    def get_roles(self, context: SessionContext) -> List[str]:
        """
        Get the roles of the current user from the session snapshot.

        Args:
            context: Session context of the current request.

        Returns:
            Sorted list of role names.
        """
        return context.roles

    # PUBLIC_INTERFACE
    def token_state(self, token: Optional[str]) -> TokenState:
        """
        Classify a token string.

        Args:
            token: Token string to classify.

        Returns:
            ABSENT for tokens we cannot verify, EXPIRED once the embedded
            expiry has passed, otherwise LIVE or STALE depending on the cache.
        """
        try:
            claims = self._verified_claims(token, verify_exp=False)
        except TokenExpiredError:
            return TokenState.EXPIRED
        except TokenError:
            return TokenState.ABSENT

        if claims.expires_at < self.clock():
            return TokenState.EXPIRED
        if self.cache.exists(token):
            return TokenState.LIVE
        return TokenState.STALE

    def _sign(self, username: str, effective_salt: str) -> Tuple[str, TokenClaims]:
        encoded = self.signer.mint(username, effective_salt, self.properties.expire_duration)
        return encoded, self.signer.verify(encoded, effective_salt)

    def _mint(self, username: str, effective_salt: str) -> SessionToken:
        encoded, claims = self._sign(username, effective_salt)
        return SessionToken(
            token=encoded,
            username=username,
            effective_salt=effective_salt,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
        )

    def _verified_claims(self, token: Optional[str], verify_exp: bool) -> TokenClaims:
        if not token:
            raise TokenInvalidError("Token cannot be empty")

        unverified = self.signer.peek(token)
        effective_salt = self.cache.get_salt(unverified.subject)
        if effective_salt is None:
            # Without the salt the signature cannot be checked
            if unverified.expires_at < self.clock():
                raise TokenExpiredError("Token has expired")
            raise TokenInvalidError(f"No signing key for {unverified.subject}")
        return self.signer.verify(token, effective_salt, verify_exp=verify_exp)
