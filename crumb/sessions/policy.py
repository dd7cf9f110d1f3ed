"""
Crumb Sessions - Configuration types.

Defines:
- SessionConfig: immutable configuration of one named cookie session
- SessionOptions: mutable per-request copy of the cookie attributes
- normalize_configs: flatten and validate several configurations
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional, Tuple, Union, TYPE_CHECKING

from crumb.cookies import CookieOptions, _COOKIE_NAME_RE
from crumb.request import DEFAULT_SESSION_NAME

from .faults import ConfigurationError

if TYPE_CHECKING:
    from crumb.config import ConfigLoader


DEFAULT_COOKIE_NAME = "session"

_SAMESITE_VALUES = ("strict", "lax", "none")


# ============================================================================
# SessionOptions - per request
# ============================================================================

@dataclass
class SessionOptions(CookieOptions):
    """
    Cookie attributes for one request.

    Handlers may change them (e.g. ``request.session_options.max_age``);
    the values in effect when headers are sent are the ones written.
    """

    name: str = DEFAULT_COOKIE_NAME
    session_name: str = DEFAULT_SESSION_NAME


# ============================================================================
# SessionConfig
# ============================================================================

@dataclass(frozen=True)
class SessionConfig:
    """
    Configuration of one named cookie session.

    Attributes:
        name: Cookie name on the wire
        session_name: Accessor key handlers use (``request.get_session``)
        keys: Signing secrets, newest first
        secret: Shorthand for ``keys=[secret]``
        overwrite: Replace same-named cookies already staged on the response
        httponly: Send the HttpOnly attribute
        signed: Sign the cookie (requires keys or secret)
        max_age: Cookie lifetime in seconds (None = browser session)
        expires: Absolute expiry (ignored when max_age is set)
        path: Cookie path
        domain: Cookie domain
        secure: Only send over HTTPS; refused on plain HTTP requests
        samesite: SameSite policy (strict, lax, none)
        encrypted: Encrypt the payload instead of signing it

    Example:
        >>> config = SessionConfig(name="prefs", session_name="prefs", secret="s3cret")
        >>> config.resolved_keys()
        ('s3cret',)

    Raises:
        ConfigurationError: on any invalid combination, at construction
    """

    name: str = DEFAULT_COOKIE_NAME
    session_name: str = DEFAULT_SESSION_NAME
    keys: Optional[Tuple[str, ...]] = None
    secret: Optional[str] = None
    overwrite: bool = True
    httponly: bool = True
    signed: bool = True
    max_age: Optional[int] = None
    expires: Optional[datetime] = None
    path: Optional[str] = "/"
    domain: Optional[str] = None
    secure: bool = False
    samesite: Optional[str] = None
    encrypted: bool = False

    def __post_init__(self):
        if self.keys is not None and not isinstance(self.keys, tuple):
            if isinstance(self.keys, (str, bytes)):
                raise ConfigurationError("keys must be a list of secrets, not a single string")
            object.__setattr__(self, "keys", tuple(self.keys))

        if not isinstance(self.name, str) or not _COOKIE_NAME_RE.match(self.name):
            raise ConfigurationError(f"Invalid cookie name: {self.name!r}")

        if not isinstance(self.session_name, str) or not self.session_name:
            raise ConfigurationError(f"Invalid session name: {self.session_name!r}")

        if self.max_age is not None:
            if isinstance(self.max_age, bool) or not isinstance(self.max_age, int) or self.max_age < 0:
                raise ConfigurationError(f"max_age must be a non-negative int, got {self.max_age!r}")

        if self.samesite is not None and str(self.samesite).lower() not in _SAMESITE_VALUES:
            raise ConfigurationError(f"samesite must be one of {_SAMESITE_VALUES}, got {self.samesite!r}")

        if self.encrypted:
            if not self.resolved_keys():
                raise ConfigurationError(".keys required for encrypted sessions")
            # The payload is confidential; no separate signature cookie
            object.__setattr__(self, "signed", False)
        elif self.signed and not self.resolved_keys():
            raise ConfigurationError(".keys required.")

    def resolved_keys(self) -> Tuple[str, ...]:
        """Effective secret list (``keys``, or ``secret`` as a one-item list)."""
        if self.keys:
            return self.keys
        if self.secret:
            return (self.secret,)
        return ()

    def options(self) -> SessionOptions:
        """Fresh mutable cookie options for one request."""
        return SessionOptions(
            max_age=self.max_age,
            expires=self.expires,
            path=self.path,
            domain=self.domain,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
            overwrite=self.overwrite,
            signed=self.signed,
            name=self.name,
            session_name=self.session_name,
        )

    # ========================================================================
    # Construction helpers
    # ========================================================================

    @classmethod
    def from_options(cls, options: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> SessionConfig:
        """
        Build a config from loose options.

        Accepts ``key`` as a legacy alias for ``name`` and ignores ``None``
        values so defaults apply.
        """
        merged = dict(options or {})
        merged.update(kwargs)

        if "key" in merged:
            legacy = merged.pop("key")
            merged.setdefault("name", legacy)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(merged) - known)
        if unknown:
            raise ConfigurationError(f"Unknown session option(s): {', '.join(unknown)}")

        return cls(**{k: v for k, v in merged.items() if v is not None})

    @classmethod
    def from_config(cls, loader: "ConfigLoader", path: str = "sessions.default") -> SessionConfig:
        """
        Build a config from a loaded configuration section.

        Example:
            ``CRUMB_SESSIONS__DEFAULT__SECRET=s3cret`` in the environment
            becomes ``SessionConfig(secret="s3cret")``.
        """
        section = loader.get(path, {})
        if not isinstance(section, Mapping):
            raise ConfigurationError(f"Config section '{path}' must be a mapping")
        options = dict(section)
        # Environment values are type-sniffed; secrets and names take the unparsed text
        raw = loader.get(path, {}, raw=True)
        for key in ("name", "session_name", "secret", "path", "domain", "samesite"):
            value = raw.get(key, options.get(key))
            if value is not None:
                options[key] = value if isinstance(value, str) else str(value)
        keys = options.get("keys")
        if isinstance(keys, list):
            options["keys"] = [str(k) for k in keys]
        elif keys is not None:
            text = str(raw.get("keys", keys))
            options["keys"] = [k.strip() for k in text.split(",") if k.strip()]
        return cls.from_options(options)


ConfigLike = Union[SessionConfig, Mapping[str, Any], Iterable[Any]]


def _flatten(items: Iterable[Any]) -> Iterable[Union[SessionConfig, Mapping[str, Any]]]:
    for item in items:
        if isinstance(item, (SessionConfig, Mapping)):
            yield item
        elif isinstance(item, (list, tuple)):
            yield from _flatten(item)
        else:
            raise ConfigurationError(f"Unsupported session configuration: {type(item).__name__}")


def normalize_configs(*items: ConfigLike) -> list[SessionConfig]:
    """
    Flatten configurations and enforce uniqueness.

    Accepts SessionConfig instances, option mappings, or (nested) lists of
    either. No arguments means one default session.

    Raises:
        ConfigurationError: duplicate cookie name or accessor key
    """
    configs = [
        item if isinstance(item, SessionConfig) else SessionConfig.from_options(item)
        for item in _flatten(items)
    ]
    if not configs:
        configs = [SessionConfig()]

    seen_names: set[str] = set()
    seen_accessors: set[str] = set()
    for config in configs:
        if config.name in seen_names:
            raise ConfigurationError(f"Duplicate session cookie name: {config.name!r}")
        if config.session_name in seen_accessors:
            raise ConfigurationError(f"Duplicate session accessor key: {config.session_name!r}")
        seen_names.add(config.name)
        seen_accessors.add(config.session_name)

    return configs


__all__ = [
    "DEFAULT_COOKIE_NAME",
    "SessionOptions",
    "SessionConfig",
    "normalize_configs",
]
