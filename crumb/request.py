"""
Request - ASGI request wrapper.

Provides:
- Typed request object wrapping ASGI scope/receive
- Lazy header and cookie parsing
- Secure-connection detection with optional proxy trust
- Per-request ``state`` and the cookie session accessors
"""

from __future__ import annotations

from http.cookies import CookieError as _SimpleCookieError, SimpleCookie
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from ._datastructures import Headers


# Reserved accessor key backing the single-session alias (request.session)
DEFAULT_SESSION_NAME = "session"


class Request:
    """
    Request object for Crumb.

    Features:
    - Typed header/cookie parsing
    - Client and scheme helpers
    - Session access through ``session`` / ``get_session`` / ``set_session``
    """

    def __init__(
        self,
        scope: Mapping[str, Any],
        receive: Optional[Callable[..., Awaitable[dict]]] = None,
        *,
        trust_proxy: Union[bool, List[str]] = False,
    ):
        """
        Initialize Request.

        Args:
            scope: ASGI scope dict
            receive: ASGI receive callable
            trust_proxy: Trust proxy headers (True/False or list of IPs)
        """
        self.scope = scope
        self._receive = receive
        self.trust_proxy = trust_proxy

        # State
        self.state: Dict[str, Any] = {}

        # Cached values
        self._headers: Optional[Headers] = None
        self._cookies: Optional[Dict[str, str]] = None

        # Moved onto whichever response is finally sent
        self._headers_hooks: List[Callable[[Any], None]] = []

    # ========================================================================
    # Basic Properties
    # ========================================================================

    @property
    def method(self) -> str:
        """HTTP method (GET, POST, etc.)."""
        return self.scope.get("method", "GET")

    @property
    def path(self) -> str:
        """Request path (decoded)."""
        return self.scope.get("path", "/")

    @property
    def scheme(self) -> str:
        """URL scheme reported by the server."""
        return self.scope.get("scheme", "http")

    @property
    def client(self) -> Optional[tuple]:
        """Client address (host, port)."""
        return self.scope.get("client")

    # ========================================================================
    # Headers
    # ========================================================================

    @property
    def headers(self) -> Headers:
        """Get parsed headers."""
        if self._headers is None:
            self._headers = Headers(raw=list(self.scope.get("headers", [])))
        return self._headers

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single header (case-insensitive)."""
        return self.headers.get(name, default)

    # ========================================================================
    # Cookies
    # ========================================================================

    @property
    def cookies(self) -> Mapping[str, str]:
        """Get parsed cookies."""
        if self._cookies is None:
            cookie_header = self.header("cookie", "")
            self._cookies = {}
            if cookie_header:
                cookie = SimpleCookie()
                try:
                    cookie.load(cookie_header)
                except _SimpleCookieError:
                    # Malformed header: keep whatever parsed cleanly
                    pass
                self._cookies = {key: morsel.value for key, morsel in cookie.items()}
        return self._cookies

    def cookie(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get single cookie value."""
        return self.cookies.get(name, default)

    # ========================================================================
    # Transport
    # ========================================================================

    def _proxy_trusted(self) -> bool:
        if not self.trust_proxy:
            return False
        if self.trust_proxy is True:
            return True
        client = self.client
        return bool(client) and client[0] in self.trust_proxy

    @property
    def is_secure(self) -> bool:
        """
        Whether the request arrived over an encrypted connection.

        ``X-Forwarded-Proto`` is honoured only when the proxy is trusted.
        """
        if self._proxy_trusted():
            forwarded_proto = self.header("x-forwarded-proto")
            if forwarded_proto:
                return forwarded_proto.split(",")[0].strip().lower() == "https"
        return self.scheme in ("https", "wss")

    # ========================================================================
    # Response hooks
    # ========================================================================

    def on_headers(self, hook: Callable[[Any], None]) -> None:
        """
        Register an on-headers hook for this request's eventual response.

        Unlike ``Response.on_headers``, this works before any response
        exists, so the hook also runs on error responses built by the
        exception handling.
        """
        self._headers_hooks.append(hook)

    def bind_response(self, response: Any) -> None:  # Response
        """Move registered hooks onto the response about to be sent."""
        hooks, self._headers_hooks = self._headers_hooks, []
        for hook in hooks:
            response.on_headers(hook)

    # ========================================================================
    # Session Integration
    # ========================================================================

    def _session_slot(self, name: str):
        slots = self.state.get("sessions") or {}
        slot = slots.get(name)
        if slot is None:
            from .sessions.faults import SessionNotConfiguredError
            raise SessionNotConfiguredError(name)
        return slot

    def get_session(self, name: str = DEFAULT_SESSION_NAME) -> Optional[Any]:  # Session | None
        """
        Read the named session (set up by CookieSessionMiddleware).

        The session is loaded from its cookie on first access and cached for
        the rest of the request.

        Raises:
            SessionNotConfiguredError: no session is configured under ``name``
        """
        return self._session_slot(name).get()

    def set_session(self, name: str, value: Optional[Mapping[str, Any]]) -> None:
        """
        Replace the named session with a copy of ``value``, or clear it with None.

        Raises:
            InvalidAssignmentError: ``value`` is neither None nor a mapping
        """
        self._session_slot(name).set(value)

    @property
    def session(self) -> Optional[Any]:  # Session | None
        """
        Default session alias.

        Returns None when no session is configured under the reserved
        ``"session"`` accessor key, or when the session was cleared.
        """
        slot = self.state.get("session_slot")
        return slot.get() if slot is not None else None

    @session.setter
    def session(self, value: Optional[Mapping[str, Any]]) -> None:
        slot = self.state.get("session_slot")
        if slot is None:
            from .sessions.faults import SessionNotConfiguredError
            raise SessionNotConfiguredError(DEFAULT_SESSION_NAME)
        slot.set(value)

    @property
    def session_options(self) -> Optional[Any]:  # SessionOptions | None
        """Per-request cookie options of the default session (mutable)."""
        slot = self.state.get("session_slot")
        return slot.options if slot is not None else None

    @property
    def session_cookies(self) -> Optional[Any]:  # Cookies | None
        """Cookie jar used by the default session."""
        slot = self.state.get("session_slot")
        return slot.cookies if slot is not None else None

    @property
    def session_key(self) -> Optional[str]:
        """Cookie name of the default session."""
        slot = self.state.get("session_slot")
        return slot.cookie_name if slot is not None else None

    def __repr__(self) -> str:
        return f"<Request {self.method} {self.path}>"
