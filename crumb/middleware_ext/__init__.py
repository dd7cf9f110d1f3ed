"""
Extended middleware components for Crumb.

This module provides middleware beyond the core middleware.py:

Sessions:
- CookieSessionMiddleware: one named cookie session
- SessionMiddleware: several named cookie sessions composed in order
- cookie_session: factory for SessionMiddleware
"""

from .session_middleware import (
    CookieSessionMiddleware,
    SessionMiddleware,
    cookie_session,
)

__all__ = [
    "CookieSessionMiddleware",
    "SessionMiddleware",
    "cookie_session",
]
