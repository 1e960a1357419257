"""
Configuration module for the Session Authentication service.

This module provides configuration settings for the Session Authentication service.
"""

from session_auth.config.jwt_config import (
    JWT_INVALID_TOKEN_CODE,
    JWT_REFRESH_TOKEN_CODE,
    JWT_TOKEN_NAME,
    JwtProperties,
    get_jwt_settings,
)
from session_auth.config.settings import Settings, settings

__all__ = [
    "JWT_INVALID_TOKEN_CODE",
    "JWT_REFRESH_TOKEN_CODE",
    "JWT_TOKEN_NAME",
    "JwtProperties",
    "get_jwt_settings",
    "Settings",
    "settings",
]
