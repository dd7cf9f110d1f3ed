"""
Cookies - signed cookie reader/writer.

Reads cookies from a :class:`~crumb.request.Request`, writes ``Set-Cookie``
headers onto a :class:`~crumb.response.Response`, and optionally signs
values with a rotatable :class:`KeyRing`.

Signatures travel in a companion cookie named ``<name>.sig`` holding an
HMAC of ``"<name>=<value>"``. The first key signs; every key verifies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
from base64 import urlsafe_b64encode
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Optional, Sequence, Union

from .faults import Fault, FaultDomain, Severity

if TYPE_CHECKING:
    from .request import Request
    from .response import Response


logger = logging.getLogger("crumb.cookies")

# RFC 6265 token / cookie-octet rules
_COOKIE_NAME_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_COOKIE_VALUE_RE = re.compile(r"^[\x21\x23-\x2B\x2D-\x3A\x3C-\x5B\x5D-\x7E]*$")

SIGNATURE_SUFFIX = ".sig"


class CookieError(Fault):
    """Cookie could not be read or written."""
    code = "COOKIE_ERROR"
    message = "Cookie error"
    domain = FaultDomain.IO
    severity = Severity.ERROR

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, **kwargs)


# ============================================================================
# KeyRing - rotatable signing keys
# ============================================================================

class KeyRing:
    """
    Ordered list of signing secrets.

    ``sign`` always uses the first key, so new keys are rotated in at the
    front and old ones are kept behind it until their cookies expire.

    Example:
        >>> ring = KeyRing(["new-secret", "old-secret"])
        >>> digest = ring.sign("session=abc")
        >>> ring.verify("session=abc", digest)
        True
    """

    def __init__(self, keys: Sequence[Union[str, bytes]], algorithm: str = "sha1"):
        if not keys:
            raise ValueError("KeyRing requires at least one key")
        self.keys = [k.encode("utf-8") if isinstance(k, str) else k for k in keys]
        self.algorithm = algorithm
        self._hash_func = getattr(hashlib, algorithm)

    def _digest(self, data: str, key: bytes) -> str:
        mac = hmac.new(key, data.encode("utf-8"), self._hash_func).digest()
        return urlsafe_b64encode(mac).decode("ascii").rstrip("=")

    def sign(self, data: str) -> str:
        return self._digest(data, self.keys[0])

    def index(self, data: str, digest: str) -> int:
        """Index of the key that produced ``digest``, or -1."""
        for i, key in enumerate(self.keys):
            if hmac.compare_digest(self._digest(data, key), digest):
                return i
        return -1

    def verify(self, data: str, digest: str) -> bool:
        return self.index(data, digest) > -1

    def __len__(self) -> int:
        return len(self.keys)


# ============================================================================
# CookieOptions
# ============================================================================

@dataclass
class CookieOptions:
    """
    Attributes applied to a written cookie.

    ``max_age`` is in seconds and also produces an ``Expires`` attribute.
    ``overwrite`` drops any same-named cookie already staged on the
    response. ``signed`` stages a ``<name>.sig`` companion cookie.
    """

    max_age: Optional[int] = None
    expires: Optional[datetime] = None
    path: Optional[str] = "/"
    domain: Optional[str] = None
    secure: bool = False
    httponly: bool = True
    samesite: Optional[str] = None
    overwrite: bool = False
    signed: bool = False


# ============================================================================
# Cookies
# ============================================================================

class Cookies:
    """
    Cookie jar bound to one request (and, once built, its response).

    Args:
        request: Incoming request (source of ``Cookie`` header)
        keys: Signing keys, or a ready KeyRing
        response: Outgoing response; may be attached later via ``response``
    """

    def __init__(
        self,
        request: "Request",
        keys: Optional[Union[KeyRing, Sequence[Union[str, bytes]]]] = None,
        *,
        response: Optional["Response"] = None,
    ):
        self.request = request
        self.response = response
        if keys is None or isinstance(keys, KeyRing):
            self.keys = keys
        else:
            self.keys = KeyRing(keys) if keys else None

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get(self, name: str, signed: bool = False) -> Optional[str]:
        """
        Read a request cookie.

        With ``signed``, the value is returned only when ``<name>.sig``
        carries a valid signature from one of the keys.
        """
        value = self.request.cookie(name)
        if not signed or value is None:
            return value

        if not self.keys:
            raise CookieError(".keys required for signed cookies")

        remote = self.request.cookie(name + SIGNATURE_SUFFIX)
        if remote is None:
            logger.debug("cookie %s has no signature", name)
            return None

        if self.keys.index(f"{name}={value}", remote) < 0:
            logger.debug("cookie %s signature mismatch", name)
            return None

        return value

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def set(self, name: str, value: Optional[str], options: Optional[CookieOptions] = None) -> None:
        """
        Stage a ``Set-Cookie`` header on the response.

        An empty (or None) value writes an already-expired cookie, which is
        how a browser is told to forget it.

        Raises:
            CookieError: no response attached, secure cookie over plain
                HTTP, signed without keys, or an invalid name/value
        """
        opts = options or CookieOptions()
        if self.response is None:
            raise CookieError("No response attached to cookie jar")

        if opts.secure and not self.request.is_secure:
            raise CookieError("Cannot send secure cookie over unencrypted connection")

        if opts.signed and not self.keys:
            raise CookieError(".keys required for signed cookies")

        value = value or ""
        self._stage(name, value, opts)

        if opts.signed:
            # The signature expires together with the value it signs
            self._stage(
                name + SIGNATURE_SUFFIX,
                self.keys.sign(f"{name}={value}"),
                opts,
                expired=not value,
            )

    def _stage(self, name: str, value: str, opts: CookieOptions, expired: bool = False) -> None:
        if not _COOKIE_NAME_RE.match(name):
            raise CookieError(f"Invalid cookie name: {name!r}")
        if not _COOKIE_VALUE_RE.match(value):
            raise CookieError(f"Invalid cookie value for {name!r}")

        response = self.response
        if opts.overwrite:
            prefix = name + "="
            kept = [h for h in response.get_header_list("set-cookie") if not h.startswith(prefix)]
            if kept:
                response.set_header("set-cookie", kept)
            else:
                response.unset_header("set-cookie")

        if value and not expired:
            max_age = opts.max_age
            expires = opts.expires
            if max_age is not None:
                expires = datetime.now(timezone.utc) + timedelta(seconds=max_age)
        else:
            max_age = 0
            expires = datetime.fromtimestamp(0, tz=timezone.utc)

        response.set_cookie(
            name,
            value,
            max_age=max_age,
            expires=expires,
            path=opts.path,
            domain=opts.domain,
            secure=opts.secure,
            httponly=opts.httponly,
            samesite=opts.samesite,
        )


__all__ = [
    "CookieError",
    "CookieOptions",
    "Cookies",
    "KeyRing",
    "SIGNATURE_SUFFIX",
]
