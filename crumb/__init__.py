"""
Crumb - Signed cookie sessions for async Python web apps

Complete integration of:
- Sessions: Client-side session state in a signed (or encrypted) cookie
- Cookies: Signed cookie jar with key rotation
- Middleware: Composable async middleware with an ASGI adapter
- Faults: Structured error handling with fault domains
- Config: Layered configuration from .env files and the environment
"""

__version__ = "0.1.0"

# ============================================================================
# Core
# ============================================================================

from .config import ConfigLoader, ConfigError
from .request import Request
from .response import Response
from ._datastructures import Headers
from .cookies import Cookies, CookieOptions, CookieError, KeyRing

# ============================================================================
# Middleware
# ============================================================================

from .middleware import (
    RequestCtx,
    MiddlewareStack,
    ExceptionMiddleware,
    LoggingMiddleware,
)
from .middleware_ext import (
    CookieSessionMiddleware,
    SessionMiddleware,
    cookie_session,
)
from .asgi import ASGIAdapter, create_app

# ============================================================================
# Sessions
# ============================================================================

from .sessions import (
    Session,
    SessionConfig,
    SessionOptions,
    SessionSlot,
    ConfigurationError,
    DecodeError,
    InvalidAssignmentError,
    PersistError,
    SessionNotConfiguredError,
)

# ============================================================================
# Faults
# ============================================================================

from .faults import Fault, FaultDomain, Severity


__all__ = [
    "__version__",
    # Core
    "ConfigLoader",
    "ConfigError",
    "Request",
    "Response",
    "Headers",
    "Cookies",
    "CookieOptions",
    "CookieError",
    "KeyRing",
    # Middleware
    "RequestCtx",
    "MiddlewareStack",
    "ExceptionMiddleware",
    "LoggingMiddleware",
    "CookieSessionMiddleware",
    "SessionMiddleware",
    "cookie_session",
    "ASGIAdapter",
    "create_app",
    # Sessions
    "Session",
    "SessionConfig",
    "SessionOptions",
    "SessionSlot",
    "ConfigurationError",
    "DecodeError",
    "InvalidAssignmentError",
    "PersistError",
    "SessionNotConfiguredError",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
]
