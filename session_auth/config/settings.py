"""
Centralized configuration management for the Session Authentication service.

This module provides a centralized configuration system using Pydantic BaseSettings
for managing all application settings including JWT, session cache, database, and
API settings. Every value can be overridden through the environment or a ``.env``
file.
"""
import json
import os
import secrets
from typing import Annotated, Any, List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


class Settings(BaseSettings):
    """
    Settings class for all application configuration.

    This class uses Pydantic's BaseSettings to manage all application configuration
    settings with environment variable overrides and validation.
    """
    # Application settings
    APP_NAME: str = "Session Authentication"
    APP_DESCRIPTION: str = "Token-based session authentication with cache-backed revocation and rotation"
    APP_VERSION: str = "0.1.0"
    APP_ENV: str = "development"
    DEBUG: bool = False

    # API settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    RELOAD: bool = False

    # CORS settings
    CORS_ORIGINS: Annotated[List[str], NoDecode] = ["*"]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse CORS_ORIGINS from string to list."""
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, str):
            return json.loads(v)
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    # JWT settings
    JWT_SECRET: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = "HS256"
    JWT_ISSUER: str = "session-auth"
    JWT_AUDIENCE: str = "web"
    JWT_EXPIRE_SECONDS: int = Field(default=3600, gt=0)
    JWT_TOKEN_NAME: str = "token"

    # Token refresh settings
    JWT_REFRESH_TOKEN: bool = True
    JWT_REFRESH_TOKEN_COUNTDOWN: int = Field(default=600, ge=0)

    # Session cache settings
    REDIS_URL: Optional[str] = None
    REDIS_SOCKET_TIMEOUT: float = 5.0

    # Database settings
    DATABASE_URL: Optional[str] = None
    DATABASE_ECHO: bool = False

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def assemble_db_url(cls, v: Optional[str]) -> Any:
        """Set default SQLite database URL if not provided."""
        if isinstance(v, str):
            return v

        # Default to SQLite database in project root
        base_dir = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
        return f"sqlite:///{os.path.join(base_dir, 'users.db')}"

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
        "validate_default": True,
    }


# Create a global settings instance
settings = Settings()
