"""
Crumb Sessions - Per-request session accessor.

A SessionSlot holds the state of one named session for one request:

    UNSET ──get──▶ READ_NEW | READ_EXISTING
      │
      ├──set(None)──▶ CLEARED
      └──set({...})─▶ REASSIGNED

The cookie is read and decoded lazily on the first ``get``. ``finalize``
runs once, from the response's on-headers hook, and decides whether to
write, clear, or leave the cookie alone based on the final state.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Optional

from .codec import SessionCodec
from .core import Session, SessionContext
from .faults import DecodeError, InvalidAssignmentError, PersistError
from .policy import SessionConfig, SessionOptions

if TYPE_CHECKING:
    from crumb.cookies import Cookies
    from crumb.response import Response


logger = logging.getLogger("crumb.sessions")


class SlotState(str, Enum):
    """Observable states of a per-request session accessor."""

    UNSET = "unset"
    READ_NEW = "read_new"
    READ_EXISTING = "read_existing"
    CLEARED = "cleared"
    REASSIGNED = "reassigned"


class SessionSlot:
    """
    Lazy accessor for one named session within one request.

    Args:
        config: Session configuration
        cookies: Cookie jar of the current request
        codec: Payload codec for this configuration
        options: Per-request cookie options (defaults to a fresh copy)
    """

    __slots__ = ("config", "cookies", "codec", "options", "state", "_session", "_finalized")

    def __init__(
        self,
        config: SessionConfig,
        cookies: "Cookies",
        codec: SessionCodec,
        options: Optional[SessionOptions] = None,
    ):
        self.config = config
        self.cookies = cookies
        self.codec = codec
        self.options = options if options is not None else config.options()
        self.state = SlotState.UNSET
        self._session: Optional[Session] = None
        self._finalized = False

    @property
    def cookie_name(self) -> str:
        return self.config.name

    @property
    def session_name(self) -> str:
        return self.config.session_name

    @property
    def finalized(self) -> bool:
        return self._finalized

    # ========================================================================
    # Access
    # ========================================================================

    def get(self) -> Optional[Session]:
        """
        Current session, loading it from the cookie on first call.

        Returns None once the session has been cleared.
        """
        if self._session is not None:
            return self._session

        if self.state is SlotState.CLEARED:
            return None

        raw = self.cookies.get(self.cookie_name, signed=self.config.signed)
        if raw:
            logger.debug("parse %s cookie", self.cookie_name)
            try:
                data = self.codec.decode(raw)
            except DecodeError as e:
                # Foreign or corrupted payload: start over with a new session
                logger.debug("discarding %s cookie: %s", self.cookie_name, e.message)
            else:
                self._session = Session(data, SessionContext.from_cookie(raw), codec=self.codec)
                self.state = SlotState.READ_EXISTING
                return self._session

        logger.debug("new %s session", self.session_name)
        self._session = Session(context=SessionContext.fresh(), codec=self.codec)
        self.state = SlotState.READ_NEW
        return self._session

    def set(self, value: Optional[Mapping[str, Any]]) -> None:
        """
        Replace or clear the session.

        Args:
            value: None to clear, or a mapping whose items become the data
                of a new session

        Raises:
            InvalidAssignmentError: value is neither None nor a mapping
        """
        if value is None:
            self._session = None
            self.state = SlotState.CLEARED
            return

        if isinstance(value, Mapping):
            self._session = Session(dict(value), SessionContext.fresh(), codec=self.codec)
            self.state = SlotState.REASSIGNED
            return

        raise InvalidAssignmentError(value)

    # ========================================================================
    # Finalization
    # ========================================================================

    def finalize(self, response: Optional["Response"] = None) -> None:
        """
        Persist the final state onto the response.

        Runs at most once. Errors are logged as PersistError and never
        propagate, so the response is still sent.
        """
        if self._finalized:
            return
        self._finalized = True

        if self.state is SlotState.UNSET:
            # not accessed
            return

        name = self.cookie_name
        try:
            if response is not None:
                self.cookies.response = response

            if self.state is SlotState.CLEARED:
                logger.debug("clear %s cookie", name)
                self.cookies.set(name, "", self.options)
                return

            session = self._session
            if session.is_new and not session.is_populated:
                # new and not populated
                return

            if session.is_changed:
                logger.debug("save %s cookie", name)
                self.cookies.set(name, session.encode(), self.options)
        except Exception as e:
            fault = PersistError(name, str(e))
            logger.error("%s", fault, exc_info=True)

    def __repr__(self) -> str:
        return f"<SessionSlot {self.session_name} ({self.cookie_name}) {self.state.value}>"
