"""
Crumb Sessions - Fault definitions.

All session errors are structured Faults in the SESSION domain:

- ConfigurationError: bad setup, raised before any request is served
- DecodeError: unreadable cookie payload, recovered by the accessor
- InvalidAssignmentError: handler misuse, propagates to the pipeline
- PersistError: write failure at finalization, logged and dropped
"""

from __future__ import annotations

from typing import Any

from crumb.faults import Fault, FaultDomain, Severity


class SessionFault(Fault):
    """Base class for session-related faults."""

    domain = FaultDomain.SESSION


class ConfigurationError(SessionFault):
    """
    Session middleware was configured incorrectly.

    Examples:
    - ``signed=True`` without ``keys`` or ``secret``
    - two configurations sharing a cookie name or accessor key
    """

    code = "SESSION_CONFIG_INVALID"
    message = "Invalid session configuration"
    severity = Severity.FATAL
    public = False

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, **kwargs)


class DecodeError(SessionFault):
    """
    Cookie payload could not be decoded.

    Raised by codecs for payloads that are not base64, not UTF-8, not JSON,
    not a JSON object, or (for the encrypted codec) not a valid token.
    """

    code = "SESSION_DECODE_FAILED"
    message = "Session cookie could not be decoded"
    severity = Severity.WARN
    public = False

    def __init__(self, cause: str | None = None, **kwargs):
        super().__init__(**kwargs)
        self.cause = cause
        if cause:
            self.message = f"Session cookie could not be decoded: {cause}"
            self.args = (self.message,)


class InvalidAssignmentError(SessionFault):
    """
    Session was assigned something other than None or a mapping.
    """

    code = "SESSION_INVALID_ASSIGNMENT"
    message = "session can only be set to None or a mapping"
    severity = Severity.ERROR
    public = True

    def __init__(self, value: Any = None, **kwargs):
        super().__init__(**kwargs)
        self.value_type = type(value).__name__
        self.metadata.setdefault("value_type", self.value_type)


class PersistError(SessionFault):
    """
    Session could not be written to the response.

    Never raised past finalization: the response is sent regardless.
    """

    code = "SESSION_PERSIST_FAILED"
    message = "Session could not be persisted"
    severity = Severity.ERROR
    public = False

    def __init__(self, cookie_name: str, cause: str, **kwargs):
        super().__init__(**kwargs)
        self.cookie_name = cookie_name
        self.cause = cause
        self.message = f"Session cookie '{cookie_name}' could not be persisted: {cause}"
        self.args = (self.message,)


class SessionNotConfiguredError(SessionFault):
    """No session middleware is installed under the requested accessor key."""

    code = "SESSION_NOT_CONFIGURED"
    message = "No session configured"
    severity = Severity.ERROR
    public = False

    def __init__(self, session_name: str, **kwargs):
        super().__init__(**kwargs)
        self.session_name = session_name
        self.message = f"No session configured under '{session_name}'"
        self.args = (self.message,)


__all__ = [
    "SessionFault",
    "ConfigurationError",
    "DecodeError",
    "InvalidAssignmentError",
    "PersistError",
    "SessionNotConfiguredError",
]
