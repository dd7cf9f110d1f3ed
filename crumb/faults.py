"""
Crumb Faults - Core fault types.

Defines:
- Severity levels
- FaultDomain (explicit fault domains)
- Fault base class (structured fault objects)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines logging level and recovery strategy.
    """
    INFO = "info"       # Informational, no action needed
    WARN = "warn"       # Warning, should be reviewed
    ERROR = "error"     # Error, immediate attention
    FATAL = "fatal"     # Fatal, unrecoverable, abort


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the functional area where a fault occurred.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name  # For compatibility with Enum consumers
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


# Standard Domains
FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")
FaultDomain.IO = FaultDomain("io", "I/O operations")
FaultDomain.SECURITY = FaultDomain("security", "Security and auth")
FaultDomain.SESSION = FaultDomain("session", "Cookie session lifecycle")
FaultDomain.SYSTEM = FaultDomain("system", "System level faults")


DOMAIN_DEFAULTS = {
    FaultDomain.CONFIG: {"severity": Severity.FATAL, "retryable": False},
    FaultDomain.IO: {"severity": Severity.WARN, "retryable": False},
    FaultDomain.SECURITY: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.SESSION: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.SYSTEM: {"severity": Severity.FATAL, "retryable": False},
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    A fault is NOT a bare exception. It is a first-class value with:
    - Stable machine-readable code
    - Human-readable message
    - Severity level
    - Domain classification
    - Public exposure control

    Subclasses usually pin ``code``, ``message`` and ``domain`` as class
    attributes and only pass per-instance details.

    Example:
        ```python
        raise Fault(
            code="COOKIE_TOO_LARGE",
            message="Cookie 'session' exceeds 4096 bytes",
            domain=FaultDomain.IO,
        )
        ```
    """

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        public: Optional[bool] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        # Fallback to class attributes if not provided
        self.code = code if code is not None else getattr(self, "code", None)
        self.message = message if message is not None else getattr(self, "message", None)
        self.domain = domain if domain is not None else getattr(self, "domain", None)

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        # Class-level severity/retryable win over domain defaults
        defaults = DOMAIN_DEFAULTS.get(self.domain, {"severity": Severity.ERROR, "retryable": False})
        self.severity = severity or getattr(type(self), "severity", None) or defaults["severity"]
        if retryable is None:
            retryable = getattr(type(self), "retryable", defaults["retryable"])
        self.retryable = retryable

        if public is None:
            public = getattr(type(self), "public", False)
        self.public = public

        self.metadata = metadata or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"Fault(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value}, public={self.public})"
        )

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize fault to dictionary.

        Returns:
            Dictionary representation suitable for logging/serialization
        """
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "public": self.public,
            "metadata": self.metadata,
        }


__all__ = [
    "Severity",
    "FaultDomain",
    "DOMAIN_DEFAULTS",
    "Fault",
]
