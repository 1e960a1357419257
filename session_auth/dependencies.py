"""
Dependency injection for the Session Authentication service.

This module wires the lifecycle manager from the settings and provides FastAPI
dependency functions that turn the token presented with a request into an
explicit ``SessionContext``, refreshing the token on the way when it is close
to expiry.
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status

from session_auth.auth import TokenLifecycleManager
from session_auth.cache import create_session_cache
from session_auth.config import JWT_INVALID_TOKEN_CODE, JWT_REFRESH_TOKEN_CODE
from session_auth.config.jwt_config import get_jwt_settings
from session_auth.config.settings import Settings
from session_auth.database import init_db
from session_auth.directory import DatabaseIdentityProvider
from session_auth.models import SessionContext
from session_auth.token import (TokenError, TokenExpiredError,
                                TokenInvalidatedError)

# Configure logging
logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def create_lifecycle_manager(source: Settings) -> TokenLifecycleManager:
    """
    Build a lifecycle manager from the application settings.

    Args:
        source: Application settings.

    Returns:
        Manager backed by the configured database and session cache.
    """
    database = init_db(source.DATABASE_URL)
    return TokenLifecycleManager(
        provider=DatabaseIdentityProvider(database),
        cache=create_session_cache(source),
        properties=get_jwt_settings(source),
    )


# PUBLIC_INTERFACE
def get_lifecycle_manager(request: Request) -> TokenLifecycleManager:
    """Get the lifecycle manager attached to the application."""
    return request.app.state.lifecycle_manager


# PUBLIC_INTERFACE
def get_token_from_request(
    request: Request,
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
) -> Optional[str]:
    """
    Extract the session token from a request.

    Looks at the token header first, then the token query parameter, then a
    bearer Authorization header.

    Args:
        request: FastAPI request object.
        manager: Lifecycle manager providing the token header name.

    Returns:
        The token string, or None if the request carries none.
    """
    token_name = manager.properties.token_name
    token = request.headers.get(token_name) or request.query_params.get(token_name)
    if token:
        return token

    authorization = request.headers.get("Authorization")
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            return credentials.strip()
    return None


def token_error_status(exc: TokenError) -> int:
    """Map a token error to the HTTP status reported to the client."""
    if isinstance(exc, TokenInvalidatedError):
        return JWT_INVALID_TOKEN_CODE
    return status.HTTP_401_UNAUTHORIZED


def _token_http_error(exc: TokenError) -> HTTPException:
    detail = "Token has expired" if isinstance(exc, TokenExpiredError) else str(exc)
    return HTTPException(
        status_code=token_error_status(exc),
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# PUBLIC_INTERFACE
def get_authenticated_context(
    token: Optional[str] = Depends(get_token_from_request),
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
) -> SessionContext:
    """
    Authenticate the request without refreshing its token.

    Raises:
        HTTPException: 401 when no valid token is presented, or the invalid
            token status when the token was revoked or rotated away.
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return manager.authenticate(token)
    except TokenError as e:
        raise _token_http_error(e)


# PUBLIC_INTERFACE
def get_optional_context(
    token: Optional[str] = Depends(get_token_from_request),
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
) -> Optional[SessionContext]:
    """
    Get the session context if the request carries a live token, or None.
    """
    if not token:
        return None
    try:
        return manager.authenticate(token)
    except TokenError:
        return None


# PUBLIC_INTERFACE
def get_session_context(
    response: Response,
    context: SessionContext = Depends(get_authenticated_context),
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
) -> SessionContext:
    """
    Authenticate the request and transparently refresh its token.

    When the token is rotated the response carries the refreshed status code
    and the new token in the token header.

    Args:
        response: Response whose status and headers are adjusted.
        context: Context of the authenticated session.
        manager: Lifecycle manager.

    Returns:
        The session context, pointing at the new token after a rotation.

    Raises:
        HTTPException: The invalid token status when the token was rotated
            away concurrently.
    """
    result = manager.refresh(context.token)
    if result.is_invalidated:
        raise _token_http_error(result.error)
    if not result.is_rotated:
        return context

    new_token = result.token
    response.status_code = JWT_REFRESH_TOKEN_CODE
    response.headers[manager.properties.token_name] = new_token.token
    return SessionContext(token=new_token, session=context.session.with_token(new_token))
