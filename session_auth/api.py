"""
API router and Pydantic models for the Session Authentication service.

This module provides the FastAPI router with the login, logout and session
endpoints and the Pydantic models for request/response validation.
"""
import enum
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from session_auth.auth import LoginFailedError, TokenLifecycleManager
from session_auth.config import JWT_INVALID_TOKEN_CODE, JWT_REFRESH_TOKEN_CODE
from session_auth.dependencies import (get_authenticated_context,
                                       get_lifecycle_manager,
                                       get_optional_context,
                                       get_session_context)
from session_auth.models import SessionContext

# Create API router
router = APIRouter(tags=["authentication"])


class ApiCode(enum.IntEnum):
    """Machine-readable result codes carried in every response body."""
    SUCCESS = 200
    UNAUTHORIZED = 401
    LOGIN_FAILED = 4000


# Pydantic models for request/response
class LoginRequest(BaseModel):
    """Request model for user login."""
    username: str = Field(..., min_length=1, max_length=50, description="Username verified by the upstream credential check")


class ApiResult(BaseModel):
    """Response envelope for all authentication endpoints."""
    code: int = Field(..., description="Machine-readable result code")
    success: bool = Field(..., description="Whether the operation succeeded")
    message: str = Field("", description="Human readable message")
    data: Optional[Any] = Field(None, description="Operation payload")

    @classmethod
    def ok(cls, data: Any = None, message: str = "OK") -> "ApiResult":
        return cls(code=int(ApiCode.SUCCESS), success=True, message=message, data=data)

    @classmethod
    def fail(cls, code: ApiCode, message: str) -> "ApiResult":
        return cls(code=int(code), success=False, message=message)


class ErrorResponse(BaseModel):
    """Response model for errors."""
    detail: str = Field(..., description="Error detail")


_session_responses: Dict[int, Dict[str, Any]] = {
    JWT_REFRESH_TOKEN_CODE: {"model": ApiResult, "description": "Token refreshed, new token in the token header"},
    401: {"model": ErrorResponse, "description": "Not authenticated or token expired"},
    JWT_INVALID_TOKEN_CODE: {"model": ErrorResponse, "description": "Token revoked or already refreshed"},
}


# API endpoints
@router.post(
    "/login",
    response_model=ApiResult,
    status_code=status.HTTP_200_OK,
    responses={
        401: {"model": ApiResult, "description": "Login failed"},
    },
    summary="Log in and get a session token",
    description="Resolve the user's identity, mint a session token and return it in the token header and body.",
)
def login(
    request: Request,
    response: Response,
    login_data: LoginRequest,
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
):
    """
    Log a user in.

    Args:
        request: FastAPI request object.
        response: Response receiving the token header.
        login_data: Login request data.
        manager: Lifecycle manager.

    Returns:
        ApiResult with the token and the public view of the session.
    """
    try:
        context = manager.login(
            login_data.username,
            client_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
    except LoginFailedError:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content=ApiResult.fail(ApiCode.LOGIN_FAILED, "Login failed").model_dump(),
        )

    response.headers[manager.properties.token_name] = context.token.token
    return ApiResult.ok(
        {"token": context.token.token, "user": context.session.public_view()},
        "Login succeeded",
    )


@router.post(
    "/logout",
    response_model=ApiResult,
    status_code=status.HTTP_200_OK,
    summary="Log out",
    description="Revoke the session of the presented token. Succeeds even if the session is already gone.",
)
def logout(
    context: Optional[SessionContext] = Depends(get_optional_context),
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
):
    """
    Log out the current session.

    Returns:
        ApiResult confirming the logout.
    """
    manager.logout(context)
    return ApiResult.ok(message="Logged out")


@router.post(
    "/logout/all",
    response_model=ApiResult,
    status_code=status.HTTP_200_OK,
    responses={
        401: {"model": ErrorResponse, "description": "Not authenticated"},
        JWT_INVALID_TOKEN_CODE: {"model": ErrorResponse, "description": "Token revoked or already refreshed"},
    },
    summary="Log out everywhere",
    description="Revoke every session of the current user.",
)
def logout_all(
    context: SessionContext = Depends(get_authenticated_context),
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
):
    """
    Log the current user out of all sessions.

    Returns:
        ApiResult with the number of revoked sessions.
    """
    revoked = manager.logout_all(context)
    return ApiResult.ok({"sessions_revoked": revoked}, "Logged out from all sessions")


@router.get(
    "/roles",
    response_model=ApiResult,
    status_code=status.HTTP_200_OK,
    responses=_session_responses,
    summary="Get the current user's roles",
)
def roles(
    context: SessionContext = Depends(get_session_context),
    manager: TokenLifecycleManager = Depends(get_lifecycle_manager),
):
    """Return the role set captured with the current session."""
    role_list: List[str] = manager.get_roles(context)
    return ApiResult.ok(role_list)


@router.get(
    "/session",
    response_model=ApiResult,
    status_code=status.HTTP_200_OK,
    responses=_session_responses,
    summary="Get the current session",
)
def current_session(context: SessionContext = Depends(get_session_context)):
    """Return the public view of the current session."""
    return ApiResult.ok(context.session.public_view())
