"""
Response - HTTP response builder for ASGI.

Provides:
- ASGI 3 compliant response sending
- Support for bytes, str and dict/list (JSON) bodies
- Multi-value headers (Set-Cookie) with injection validation
- RFC-compliant cookie helpers
- On-headers hooks: callbacks run right before ``http.response.start``
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from email.utils import formatdate
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .faults import Fault, FaultDomain, Severity


HeadersHook = Callable[["Response"], None]


# ============================================================================
# Response Faults
# ============================================================================

class InvalidHeaderError(Fault):
    """Invalid header name or value (injection attempt)."""
    code = "INVALID_HEADER"
    domain = FaultDomain.SECURITY
    severity = Severity.WARN


class HeadersAlreadySentError(Fault):
    """Headers were mutated after http.response.start went out."""
    code = "HEADERS_ALREADY_SENT"
    message = "Response headers have already been sent"
    domain = FaultDomain.IO
    severity = Severity.ERROR


# ============================================================================
# Main Response Class
# ============================================================================

class Response:
    """
    HTTP response with ASGI 3 support.

    Hooks registered with :meth:`on_headers` run once, in registration
    order, immediately before the status line and headers are handed to the
    server. They are the last point at which headers (cookies) may change.
    """

    def __init__(
        self,
        content: Union[bytes, str, Mapping, Sequence] = b"",
        status: int = 200,
        headers: Optional[Mapping[str, Union[str, Sequence[str]]]] = None,
        media_type: Optional[str] = None,
        *,
        encoding: str = "utf-8",
        validate_headers: bool = True,
    ):
        """
        Initialize Response.

        Args:
            content: Response body (bytes, str, dict, list)
            status: HTTP status code
            headers: Response headers (supports multi-value)
            media_type: Content-Type override
            encoding: Text encoding (default utf-8)
            validate_headers: Validate headers against injection attacks
        """
        self.status = status
        self._content = content
        self.encoding = encoding
        self.validate_headers = validate_headers

        self._headers: Dict[str, Union[str, List[str]]] = {}
        if headers:
            for key, value in headers.items():
                if isinstance(value, (list, tuple)):
                    self._headers[key.lower()] = list(value)
                else:
                    self._headers[key.lower()] = value

        if media_type:
            self._headers["content-type"] = media_type
        elif "content-type" not in self._headers:
            self._headers["content-type"] = self._detect_media_type(content)

        self._headers_hooks: List[HeadersHook] = []
        self._headers_sent = False

    @property
    def headers(self) -> Dict[str, Union[str, List[str]]]:
        """Get response headers."""
        return self._headers

    @property
    def headers_sent(self) -> bool:
        return self._headers_sent

    def _detect_media_type(self, content: Any) -> str:
        if isinstance(content, (dict, list)):
            return "application/json; charset=utf-8"
        elif isinstance(content, str):
            return "text/plain; charset=utf-8"
        return "application/octet-stream"

    # ========================================================================
    # Factory Methods
    # ========================================================================

    @classmethod
    def json(
        cls,
        obj: Any,
        status: int = 200,
        *,
        headers: Optional[Mapping[str, str]] = None,
    ) -> "Response":
        """Create JSON response."""
        return cls(
            content=json.dumps(obj, separators=(",", ":")),
            status=status,
            headers=headers,
            media_type="application/json; charset=utf-8",
        )

    @classmethod
    def text(cls, content: str, status: int = 200, **kwargs) -> "Response":
        """Create plain text response."""
        return cls(
            content=content,
            status=status,
            media_type="text/plain; charset=utf-8",
            **kwargs
        )

    # ========================================================================
    # Cookie Helpers
    # ========================================================================

    def set_cookie(
        self,
        name: str,
        value: str,
        *,
        max_age: Optional[int] = None,
        expires: Optional[datetime] = None,
        path: Optional[str] = "/",
        domain: Optional[str] = None,
        secure: bool = False,
        httponly: bool = True,
        samesite: Optional[str] = None,
    ) -> None:
        """
        Set a cookie.

        Args:
            name: Cookie name
            value: Cookie value (must already be cookie-safe)
            max_age: Max age in seconds
            expires: Expiration datetime
            path: Cookie path
            domain: Cookie domain
            secure: Secure flag
            httponly: HttpOnly flag
            samesite: SameSite policy (Strict, Lax, None)
        """
        cookie_parts = [f"{name}={value}"]

        if path:
            cookie_parts.append(f"Path={path}")

        if expires:
            cookie_parts.append(f"Expires={formatdate(expires.timestamp(), usegmt=True)}")

        if max_age is not None:
            cookie_parts.append(f"Max-Age={max_age}")

        if domain:
            cookie_parts.append(f"Domain={domain}")

        if samesite:
            cookie_parts.append(f"SameSite={samesite.capitalize()}")

        if secure:
            cookie_parts.append("Secure")

        if httponly:
            cookie_parts.append("HttpOnly")

        # Support multiple Set-Cookie headers
        self.add_header("set-cookie", "; ".join(cookie_parts))

    def delete_cookie(
        self,
        name: str,
        path: Optional[str] = "/",
        domain: Optional[str] = None,
    ) -> None:
        """Delete a cookie by setting Max-Age=0 and an expiry in the past."""
        self.set_cookie(
            name,
            "",
            max_age=0,
            expires=datetime.fromtimestamp(0, tz=timezone.utc),
            path=path,
            domain=domain,
            httponly=False,
        )

    # ========================================================================
    # Header Helpers
    # ========================================================================

    def set_header(self, name: str, value: Union[str, List[str]]) -> None:
        """Set header (replaces existing)."""
        values = value if isinstance(value, list) else [value]
        if self.validate_headers:
            for v in values:
                self._validate_header(name, v)
        self._check_writable()
        self._headers[name.lower()] = value

    def add_header(self, name: str, value: str) -> None:
        """Add header (supports multiple values)."""
        if self.validate_headers:
            self._validate_header(name, value)
        self._check_writable()

        name_lower = name.lower()
        if name_lower in self._headers:
            existing = self._headers[name_lower]
            if isinstance(existing, list):
                existing.append(value)
            else:
                self._headers[name_lower] = [existing, value]
        else:
            self._headers[name_lower] = value

    def get_header_list(self, name: str) -> List[str]:
        """All values of a header, as a list."""
        value = self._headers.get(name.lower())
        if value is None:
            return []
        return list(value) if isinstance(value, list) else [value]

    def unset_header(self, name: str) -> None:
        """Remove header."""
        self._check_writable()
        self._headers.pop(name.lower(), None)

    def _check_writable(self) -> None:
        if self._headers_sent:
            raise HeadersAlreadySentError()

    def _validate_header(self, name: str, value: str) -> None:
        """
        Validate header name and value against injection attacks.

        Raises InvalidHeaderError if header contains control characters.
        """
        for char in name:
            if ord(char) < 32 or char in ("\r", "\n"):
                raise InvalidHeaderError(
                    message=f"Invalid header name: {name!r}",
                    metadata={"header_name": name},
                )

        for char in value:
            if char in ("\r", "\n"):
                raise InvalidHeaderError(
                    message=f"Invalid header value: {value!r}",
                    metadata={"header_name": name, "header_value": value},
                )

    # ========================================================================
    # On-headers hooks
    # ========================================================================

    def on_headers(self, hook: HeadersHook) -> None:
        """Register a callback to run just before headers are sent."""
        self._headers_hooks.append(hook)

    def run_headers_hooks(self) -> None:
        """Run every registered on-headers hook exactly once."""
        hooks, self._headers_hooks = self._headers_hooks, []
        for hook in hooks:
            hook(self)

    # ========================================================================
    # ASGI Send
    # ========================================================================

    async def send_asgi(self, send: Callable[[dict], Any]) -> None:
        """Send response via ASGI."""
        body = self._encode_body(self._content)

        # Last mutation point for headers
        self.run_headers_hooks()

        if "content-length" not in self._headers:
            self._headers["content-length"] = str(len(body))

        headers_list = self._prepare_headers()
        self._headers_sent = True

        await send({
            "type": "http.response.start",
            "status": self.status,
            "headers": headers_list,
        })
        await send({
            "type": "http.response.body",
            "body": body,
            "more_body": False,
        })

    def _prepare_headers(self) -> List[tuple]:
        """Prepare headers for ASGI (convert to list of byte tuples)."""
        headers_list = []
        _append = headers_list.append

        for name, value in self._headers.items():
            name_bytes = name.encode("latin1")
            if isinstance(value, list):
                # Multiple values (e.g., Set-Cookie)
                for v in value:
                    _append((name_bytes, v.encode("latin1")))
            else:
                _append((name_bytes, value.encode("latin1")))

        return headers_list

    def _encode_body(self, content: Any) -> bytes:
        """Encode content to bytes."""
        if isinstance(content, bytes):
            return content
        elif isinstance(content, str):
            return content.encode(self.encoding)
        elif isinstance(content, (dict, list)):
            return json.dumps(content, separators=(",", ":")).encode(self.encoding)
        return str(content).encode(self.encoding)

    def __repr__(self) -> str:
        return f"<Response [{self.status}]>"


def InternalError(message: str = "Internal Server Error", **kwargs) -> Response:
    """500 Internal Server Error response."""
    return Response.json({"error": message}, status=500, **kwargs)
