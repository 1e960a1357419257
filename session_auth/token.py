"""
JWT token signing module for the Session Authentication service.

This module provides the stateless signer that mints and verifies
self-contained session tokens. A token is signed with the effective salt of
the login it belongs to; verification never consults the session cache, so a
token that verifies here is necessary but not sufficient proof of a live
session.
"""
import datetime
import logging
import uuid
from typing import Any, Callable, Dict, Optional

import jwt
from jwt.exceptions import InvalidTokenError
from pydantic import BaseModel, ConfigDict

from session_auth.config.jwt_config import JwtProperties

# Configure logger
logger = logging.getLogger(__name__)

Clock = Callable[[], datetime.datetime]

REQUIRED_CLAIMS = ["sub", "jti", "iat", "exp"]


def utc_now() -> datetime.datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


class TokenError(Exception):
    """Base exception for token-related errors."""
    pass


class TokenExpiredError(TokenError):
    """Exception raised when a token has expired."""
    pass


class TokenInvalidError(TokenError):
    """Exception raised when a token is malformed or its signature does not match."""
    pass


class TokenInvalidatedError(TokenError):
    """Exception raised when a well-formed token has been revoked or rotated away."""
    pass


class TokenClaims(BaseModel):
    """Claims carried by a session token."""

    model_config = ConfigDict(frozen=True)

    subject: str
    token_id: str
    issued_at: datetime.datetime
    expires_at: datetime.datetime


def _to_datetime(value: Any) -> datetime.datetime:
    try:
        return datetime.datetime.fromtimestamp(int(value), tz=datetime.timezone.utc)
    except (ValueError, TypeError, OverflowError, OSError) as e:
        raise TokenInvalidError(f"Invalid timestamp claim: {str(e)}")


def _claims_from_payload(payload: Dict[str, Any]) -> TokenClaims:
    missing = [claim for claim in REQUIRED_CLAIMS if payload.get(claim) in (None, "")]
    if missing:
        raise TokenInvalidError(f"Token is missing required claims: {', '.join(missing)}")

    return TokenClaims(
        subject=str(payload["sub"]),
        token_id=str(payload["jti"]),
        issued_at=_to_datetime(payload["iat"]),
        expires_at=_to_datetime(payload["exp"]),
    )


class JwtSigner:
    """
    Stateless signer for session tokens.

    Mints HMAC-signed JWTs keyed by an effective salt and verifies them against
    the same salt. Time is read from an injectable clock.
    """

    def __init__(self, properties: JwtProperties, clock: Optional[Clock] = None):
        """
        Initialize the signer.

        Args:
            properties: JWT configuration (algorithm, issuer, audience).
            clock: Callable returning the current aware UTC datetime.
        """
        self.properties = properties
        self.clock = clock or utc_now

    # PUBLIC_INTERFACE
    def mint(self, subject: str, effective_salt: str, ttl: datetime.timedelta) -> str:
        """
        Create a new signed token for a subject.

        Args:
            subject: Username the token is issued to.
            effective_salt: Derived salt used as the signing key.
            ttl: Lifetime of the token.

        Returns:
            Encoded JWT string.

        Raises:
            ValueError: If the subject or salt is empty, or ttl is not positive.
        """
        if not subject:
            raise ValueError("Subject cannot be empty")
        if not effective_salt:
            raise ValueError("Effective salt cannot be empty")
        if ttl.total_seconds() <= 0:
            raise ValueError("Token ttl must be positive")

        issued_at = self.clock().replace(microsecond=0)
        payload = {
            "sub": subject,
            "jti": str(uuid.uuid4()),
            "iss": self.properties.issuer,
            "aud": self.properties.audience,
            "iat": issued_at,
            "exp": issued_at + ttl,
        }
        token = jwt.encode(payload, effective_salt, algorithm=self.properties.algorithm)
        logger.debug(f"Minted token {payload['jti']} for {subject}")
        return token

    # PUBLIC_INTERFACE
    def verify(self, token: str, effective_salt: str, verify_exp: bool = True) -> TokenClaims:
        """
        Verify a token's structure and signature.

        Expiry is compared against the signer's clock rather than PyJWT's own
        wall clock.

        Args:
            token: Encoded JWT string.
            effective_salt: Salt the token is expected to be signed with.
            verify_exp: Whether to reject tokens whose expiry has passed.

        Returns:
            The verified token claims.

        Raises:
            TokenInvalidError: If the token is malformed or the signature is wrong.
            TokenExpiredError: If verify_exp is set and the token has expired.
        """
        if not token:
            raise TokenInvalidError("Token cannot be empty")
        if not effective_salt:
            raise TokenInvalidError("No signing key available for token")

        try:
            payload = jwt.decode(
                token,
                effective_salt,
                algorithms=[self.properties.algorithm],
                audience=self.properties.audience,
                issuer=self.properties.issuer,
                options={
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                    "require": REQUIRED_CLAIMS,
                },
            )
        except InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid token: {str(e)}")

        claims = _claims_from_payload(payload)
        if verify_exp and claims.expires_at < self.clock():
            raise TokenExpiredError("Token has expired")
        return claims

    # PUBLIC_INTERFACE
    def peek(self, token: str) -> TokenClaims:
        """
        Decode a token without verifying its signature or expiry.

        Only used to find out whose salt is needed to verify the token.

        Args:
            token: Encoded JWT string.

        Returns:
            The unverified token claims.

        Raises:
            TokenInvalidError: If the token cannot be decoded at all.
        """
        if not token:
            raise TokenInvalidError("Token cannot be empty")

        try:
            payload = jwt.decode(
                token,
                options={"verify_signature": False, "verify_exp": False},
            )
        except InvalidTokenError as e:
            raise TokenInvalidError(f"Invalid token format: {str(e)}")
        return _claims_from_payload(payload)
