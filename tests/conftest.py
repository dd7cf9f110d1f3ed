"""
Shared test fixtures and helpers for the Crumb test suite.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import json

import pytest

from crumb.asgi import create_app
from crumb.cookies import KeyRing
from crumb.middleware_ext import cookie_session
from crumb.request import Request
from crumb.response import Response
from crumb.sessions import encode


SECRET = "keyboard cat"


# ============================================================================
# Request Helpers
# ============================================================================


def make_scope(
    method: str = "GET",
    path: str = "/",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
) -> dict:
    """Build a minimal ASGI HTTP scope."""
    raw_headers = []
    if headers:
        for name, value in headers:
            raw_headers.append(
                (name.encode("latin-1") if isinstance(name, str) else name,
                 value.encode("latin-1") if isinstance(value, str) else value)
            )
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": b"",
        "headers": raw_headers,
        "scheme": scheme,
        "server": ("127.0.0.1", 8000),
        "client": client or ("127.0.0.1", 12345),
        "root_path": "",
    }


def make_receive(body: bytes = b""):
    """Create an ASGI receive callable from body bytes."""
    messages = [{"type": "http.request", "body": body, "more_body": False}]

    async def receive():
        if messages:
            return messages.pop(0)
        return {"type": "http.disconnect"}

    return receive


def make_request(
    method: str = "GET",
    path: str = "/",
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
    cookie: Optional[str] = None,
    **kwargs,
) -> Request:
    """Build a full Request object for testing."""
    headers = list(headers or [])
    if cookie:
        headers.append(("cookie", cookie))
    scope = make_scope(method=method, path=path, headers=headers, scheme=scheme, client=client)
    return Request(scope, make_receive(), **kwargs)


# ============================================================================
# Cookie Helpers
# ============================================================================


def parse_set_cookie(header: str) -> Tuple[str, str, Dict[str, Any]]:
    """Split a Set-Cookie header into (name, value, attributes)."""
    first, *rest = header.split("; ")
    name, _, value = first.partition("=")
    attrs: Dict[str, Any] = {}
    for part in rest:
        key, sep, val = part.partition("=")
        attrs[key.lower()] = val if sep else True
    return name, value, attrs


def signed_cookie(name: str, data: dict, secret: str = SECRET) -> str:
    """Cookie header carrying ``data`` as a valid signed session."""
    value = encode(data)
    sig = KeyRing([secret]).sign(f"{name}={value}")
    return f"{name}={value}; {name}.sig={sig}"


# ============================================================================
# ASGI Driver
# ============================================================================


@dataclass
class Result:
    """Everything an ASGI app sent back for one request."""

    status: int = 0
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def header_list(self, name: str) -> List[str]:
        return [v for k, v in self.headers if k == name.lower()]

    @property
    def set_cookies(self) -> List[str]:
        return self.header_list("set-cookie")

    def cookies(self) -> Dict[str, Tuple[str, Dict[str, Any]]]:
        """Staged cookies by name: (value, attributes)."""
        parsed = {}
        for header in self.set_cookies:
            name, value, attrs = parse_set_cookie(header)
            parsed[name] = (value, attrs)
        return parsed

    def cookie_header(self) -> str:
        """Cookie header a browser would send back (expired cookies dropped)."""
        return "; ".join(
            f"{name}={value}"
            for name, (value, attrs) in self.cookies().items()
            if value and attrs.get("max-age") != "0"
        )

    def json(self) -> Any:
        return json.loads(self.body)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


async def call(
    app,
    path: str = "/",
    *,
    method: str = "GET",
    cookie: Optional[str] = None,
    headers: Optional[List[tuple]] = None,
    scheme: str = "http",
    client: Optional[tuple] = None,
) -> Result:
    """Drive an ASGI app through one HTTP request."""
    headers = list(headers or [])
    if cookie:
        headers.append(("cookie", cookie))
    scope = make_scope(method=method, path=path, headers=headers, scheme=scheme, client=client)
    result = Result()

    async def send(message):
        if message["type"] == "http.response.start":
            result.status = message["status"]
            result.headers = [
                (k.decode("latin-1").lower(), v.decode("latin-1"))
                for k, v in message["headers"]
            ]
        elif message["type"] == "http.response.body":
            result.body += message.get("body", b"")

    await app(scope, make_receive(), send)
    return result


def session_app(handler, *configs, debug: bool = False, trust_proxy=False, **options):
    """App with cookie sessions installed around ``handler``."""
    if not configs and "secret" not in options and "keys" not in options:
        options.setdefault("secret", SECRET)
    return create_app(
        handler,
        [cookie_session(*configs, **options)],
        debug=debug,
        trust_proxy=trust_proxy,
    )


@pytest.fixture
def ok_handler():
    """Handler that touches nothing."""
    async def handler(request, ctx):
        return Response.text("ok")
    return handler
