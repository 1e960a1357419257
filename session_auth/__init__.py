"""
Session Authentication service.

This package provides token-based session authentication including:
- Signed session tokens bound to a per-login effective salt
- A session cache that is the authority on which tokens are live
- Transparent token rotation shortly before expiry, safe against replay
- Revocation on logout
"""

__version__ = "0.1.0"

# Export config constants first to avoid circular imports
from session_auth.config import (
    JWT_INVALID_TOKEN_CODE,
    JWT_REFRESH_TOKEN_CODE,
    JWT_TOKEN_NAME,
    JwtProperties,
)

# Export models next as they're needed by the cache and the manager
from session_auth.models import (
    CachedSession,
    Identity,
    SessionContext,
    SessionToken,
)

from session_auth.security import derive_salt, generate_salt

from session_auth.token import (
    JwtSigner,
    TokenClaims,
    TokenError,
    TokenExpiredError,
    TokenInvalidError,
    TokenInvalidatedError,
)

from session_auth.cache import (
    MemorySessionCache,
    RedisSessionCache,
    SessionCache,
)

from session_auth.directory import (
    DatabaseIdentityProvider,
    IdentityNotFoundError,
    IdentityProvider,
)

# Export the lifecycle manager last as it depends on the above modules
from session_auth.auth import (
    AuthError,
    LoginFailedError,
    RefreshResult,
    RefreshStatus,
    TokenLifecycleManager,
    TokenState,
)

__all__ = [
    # Models
    "CachedSession",
    "Identity",
    "SessionContext",
    "SessionToken",

    # Salt
    "derive_salt",
    "generate_salt",

    # Signer
    "JwtSigner",
    "TokenClaims",
    "TokenError",
    "TokenExpiredError",
    "TokenInvalidError",
    "TokenInvalidatedError",

    # Session cache
    "MemorySessionCache",
    "RedisSessionCache",
    "SessionCache",

    # Identity provider
    "DatabaseIdentityProvider",
    "IdentityNotFoundError",
    "IdentityProvider",

    # Lifecycle
    "AuthError",
    "LoginFailedError",
    "RefreshResult",
    "RefreshStatus",
    "TokenLifecycleManager",
    "TokenState",

    # Config constants
    "JWT_INVALID_TOKEN_CODE",
    "JWT_REFRESH_TOKEN_CODE",
    "JWT_TOKEN_NAME",
    "JwtProperties",
]
