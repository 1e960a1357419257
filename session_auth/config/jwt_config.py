"""
JWT configuration settings for the Session Authentication service.

This module freezes the JWT part of the application settings into an immutable
``JwtProperties`` object and defines the transport constants shared by the
lifecycle manager and the HTTP layer.
"""
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from session_auth.config.settings import Settings, settings

# Default header carrying the session token in both directions
JWT_TOKEN_NAME = "token"

# Response status telling the client the token was rotated and a new one is attached
JWT_REFRESH_TOKEN_CODE = 460

# Response status telling the client the token was rotated away or revoked
JWT_INVALID_TOKEN_CODE = 461


class JwtProperties(BaseModel):
    """Read-only JWT configuration used by the signer and the lifecycle manager."""

    model_config = ConfigDict(frozen=True)

    secret: str = Field(..., min_length=1, description="Process-wide secret mixed into every salt")
    algorithm: str = "HS256"
    issuer: str = "session-auth"
    audience: str = "web"
    expire_seconds: int = Field(3600, gt=0)
    refresh_token: bool = True
    refresh_token_countdown: int = Field(600, ge=0)
    token_name: str = JWT_TOKEN_NAME

    @property
    def expire_duration(self) -> timedelta:
        return timedelta(seconds=self.expire_seconds)

    @property
    def refresh_window(self) -> timedelta:
        return timedelta(seconds=self.refresh_token_countdown)


# PUBLIC_INTERFACE
def get_jwt_settings(source: Optional[Settings] = None) -> JwtProperties:
    """
    Get JWT configuration settings.

    Args:
        source: Settings to read from. Defaults to the global settings instance.

    Returns:
        Immutable JWT properties.
    """
    source = source or settings
    return JwtProperties(
        secret=source.JWT_SECRET,
        algorithm=source.JWT_ALGORITHM,
        issuer=source.JWT_ISSUER,
        audience=source.JWT_AUDIENCE,
        expire_seconds=source.JWT_EXPIRE_SECONDS,
        refresh_token=source.JWT_REFRESH_TOKEN,
        refresh_token_countdown=source.JWT_REFRESH_TOKEN_COUNTDOWN,
        token_name=source.JWT_TOKEN_NAME,
    )
