"""
Crumb Sessions - Core types.

Defines:
- SessionContext: per-request metadata used for change detection
- Session: the mutable mapping handed to request handlers
"""

from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any, Iterator, Mapping, Optional

from . import codec as _codec


# ============================================================================
# SessionContext
# ============================================================================

@dataclass
class SessionContext:
    """
    Bookkeeping owned by exactly one Session.

    Attributes:
        is_fresh: True unless the session was decoded from an incoming cookie
        last_serialized: Raw cookie string the session was decoded from
    """

    is_fresh: bool = True
    last_serialized: Optional[str] = None

    @classmethod
    def fresh(cls) -> SessionContext:
        return cls(is_fresh=True, last_serialized=None)

    @classmethod
    def from_cookie(cls, raw: str) -> SessionContext:
        return cls(is_fresh=False, last_serialized=raw)


# ============================================================================
# Session
# ============================================================================

class Session(MutableMapping):
    """
    Cookie-backed session state.

    A plain ``str -> JSON value`` mapping. Change detection is lazy: nothing
    is tracked on write, ``is_changed`` re-encodes and compares against the
    cookie the session was loaded from.

    Example:
        >>> session = Session({"views": 1})
        >>> session["views"] += 1
        >>> session.is_new, session.is_populated
        (True, True)
    """

    __slots__ = ("_data", "context", "_codec")

    def __init__(
        self,
        data: Optional[Mapping[str, Any]] = None,
        context: Optional[SessionContext] = None,
        *,
        codec: Optional[_codec.SessionCodec] = None,
    ):
        self._data: dict[str, Any] = dict(data) if data else {}
        self.context = context if context is not None else SessionContext.fresh()
        self._codec = codec

    # ========================================================================
    # Mapping protocol
    # ========================================================================

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if not isinstance(key, str):
            raise TypeError(f"Session keys must be str, not {type(key).__name__}")
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Session):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    __hash__ = None

    # ========================================================================
    # Derived state
    # ========================================================================

    @property
    def is_new(self) -> bool:
        """True until a valid existing cookie was decoded into this session."""
        return self.context.is_fresh

    @property
    def length(self) -> int:
        """Number of data keys."""
        return len(self._data)

    @property
    def is_populated(self) -> bool:
        return len(self._data) > 0

    @property
    def is_changed(self) -> bool:
        """New, or re-encodes differently from the cookie it was read from."""
        if self.context.is_fresh or self.context.last_serialized is None:
            return True
        if self._codec is not None:
            return not self._codec.matches(self._data, self.context.last_serialized)
        return _codec.encode(self._data) != self.context.last_serialized

    # ========================================================================
    # Serialization
    # ========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Shallow copy of the session data (never the context)."""
        return dict(self._data)

    to_json = to_dict

    def encode(self) -> str:
        """Encode the data with this session's codec (base64 JSON by default)."""
        if self._codec is not None:
            return self._codec.encode(self._data)
        return _codec.encode(self._data)

    def __repr__(self) -> str:
        state = "new" if self.is_new else "existing"
        return f"<Session {state} {self._data!r}>"
