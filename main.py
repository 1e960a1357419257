"""
Session Authentication service - FastAPI Application.

This is the main entry point for the Session Authentication service,
providing a FastAPI application with the authentication endpoints.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

# Third-party imports
import uvicorn
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Local application imports
from session_auth import __version__
from session_auth.api import router as auth_router
from session_auth.auth import TokenLifecycleManager
from session_auth.cache import RedisSessionCache
from session_auth.config import settings
from session_auth.dependencies import (create_lifecycle_manager,
                                       token_error_status)
from session_auth.token import TokenError

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format=settings.LOG_FORMAT,
)
logger = logging.getLogger("session_auth")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check the session cache on startup and log shutdown."""
    logger.info("Initializing Session Authentication API")
    cache = app.state.lifecycle_manager.cache
    if isinstance(cache, RedisSessionCache):
        cache.verify_connection()
    logger.info("Session Authentication API initialized")
    yield
    logger.info("Shutting down Session Authentication API")


# PUBLIC_INTERFACE
def create_app(manager: Optional[TokenLifecycleManager] = None) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        manager: Lifecycle manager to serve. Built from settings when omitted.

    Returns:
        The configured application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.lifecycle_manager = manager or create_lifecycle_manager(settings)

    # Configure CORS, exposing the token header so browsers can read refreshed tokens
    token_name = app.state.lifecycle_manager.properties.token_name
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[token_name],
    )

    # Exception handlers
    @app.exception_handler(TokenError)
    async def token_error_handler(request: Request, exc: TokenError):
        """Handle token-related errors."""
        return JSONResponse(
            status_code=token_error_status(exc),
            content={"detail": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # Health check endpoint
    @app.get(
        "/health",
        tags=["health"],
        summary="Health check",
        description="Check if the API is running.",
    )
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "version": __version__}

    # Include authentication router
    app.include_router(auth_router, prefix="/auth")
    return app


# Run the application if executed directly
if __name__ == "__main__":
    uvicorn.run(
        "main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
        log_level=settings.LOG_LEVEL.lower(),
    )
