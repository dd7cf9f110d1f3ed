"""
Crumb Sessions - Cookie payload codecs.

A codec turns a session mapping into a cookie-safe string and back:

- JSONCodec: base64 of compact UTF-8 JSON (default)
- EncryptedCodec: Fernet token (``cryptography``), with key rotation
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import json
from typing import Any, Mapping, Protocol, Sequence, Union, TYPE_CHECKING

from cryptography.fernet import Fernet, InvalidToken, MultiFernet

from .faults import ConfigurationError, DecodeError

if TYPE_CHECKING:
    from .policy import SessionConfig


def _dumps(data: Mapping[str, Any]) -> str:
    return json.dumps(dict(data), separators=(",", ":"), ensure_ascii=False)


def _loads(body: str) -> dict[str, Any]:
    try:
        obj = json.loads(body)
    except (ValueError, RecursionError) as e:
        # Over-nested payloads exhaust the parser's recursion limit
        raise DecodeError(f"invalid JSON ({e})") from e
    if not isinstance(obj, dict):
        raise DecodeError(f"expected a JSON object, got {type(obj).__name__}")
    return obj


def encode(data: Mapping[str, Any]) -> str:
    """
    Encode a mapping as base64(UTF-8 JSON).

    Only the mapping's items are encoded; a Session's context never is.
    """
    return base64.b64encode(_dumps(data).encode("utf-8")).decode("ascii")


def decode(string: str) -> dict[str, Any]:
    """
    Decode a base64(UTF-8 JSON) string back to a dict.

    Raises:
        DecodeError: not base64, not UTF-8, not JSON, or not a JSON object
    """
    try:
        raw = base64.b64decode(string.encode("ascii"), validate=True)
        body = raw.decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise DecodeError(str(e)) from e
    return _loads(body)


# ============================================================================
# Codec objects
# ============================================================================

class SessionCodec(Protocol):
    """Encode/decode contract used by session accessors."""

    def encode(self, data: Mapping[str, Any]) -> str:
        ...

    def decode(self, string: str) -> dict[str, Any]:
        ...

    def matches(self, data: Mapping[str, Any], serialized: str) -> bool:
        """Whether ``data`` is what ``serialized`` already carries."""
        ...


class JSONCodec:
    """base64(JSON) codec. Stateless."""

    def encode(self, data: Mapping[str, Any]) -> str:
        return encode(data)

    def decode(self, string: str) -> dict[str, Any]:
        return decode(string)

    def matches(self, data: Mapping[str, Any], serialized: str) -> bool:
        return encode(data) == serialized

    def __repr__(self) -> str:
        return "JSONCodec()"


class EncryptedCodec:
    """
    Symmetric-cipher codec.

    Each secret is stretched to a Fernet key with SHA-256. The first key
    encrypts, all keys decrypt, so secrets rotate the same way signing
    keys do.

    Example:
        >>> codec = EncryptedCodec(["s3cret"])
        >>> codec.decode(codec.encode({"user": 1}))
        {'user': 1}
    """

    def __init__(self, keys: Sequence[Union[str, bytes]]):
        if not keys:
            raise ConfigurationError("EncryptedCodec requires at least one key")
        self._fernet = MultiFernet([Fernet(self.derive_key(k)) for k in keys])

    @staticmethod
    def derive_key(secret: Union[str, bytes]) -> bytes:
        if isinstance(secret, str):
            secret = secret.encode("utf-8")
        return base64.urlsafe_b64encode(hashlib.sha256(secret).digest())

    def encode(self, data: Mapping[str, Any]) -> str:
        return self._fernet.encrypt(_dumps(data).encode("utf-8")).decode("ascii")

    def decode(self, string: str) -> dict[str, Any]:
        try:
            body = self._fernet.decrypt(string.encode("ascii")).decode("utf-8")
        except (InvalidToken, UnicodeError, ValueError) as e:
            raise DecodeError("invalid encrypted token") from e
        return _loads(body)

    def matches(self, data: Mapping[str, Any], serialized: str) -> bool:
        # Tokens embed a timestamp and IV, so compare the plaintext
        try:
            return _dumps(self.decode(serialized)) == _dumps(data)
        except DecodeError:
            return False

    def __repr__(self) -> str:
        return "EncryptedCodec(<keys>)"


def create_codec(config: "SessionConfig") -> SessionCodec:
    """Pick the codec for a session configuration."""
    if config.encrypted:
        return EncryptedCodec(config.resolved_keys())
    return JSONCodec()


__all__ = [
    "encode",
    "decode",
    "SessionCodec",
    "JSONCodec",
    "EncryptedCodec",
    "create_codec",
]
