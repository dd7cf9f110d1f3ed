"""
Tests for Request parsing and Response header/cookie handling.
"""

import pytest

from crumb.response import HeadersAlreadySentError, InvalidHeaderError, Response
from crumb.sessions import SessionNotConfiguredError

from tests.conftest import make_request


class TestRequest:

    def test_basic_properties(self):
        request = make_request(method="POST", path="/login")
        assert request.method == "POST"
        assert request.path == "/login"
        assert request.scheme == "http"
        assert request.client == ("127.0.0.1", 12345)
        assert repr(request) == "<Request POST /login>"

    def test_headers_case_insensitive(self):
        request = make_request(headers=[("X-Custom", "a"), ("x-custom", "b")])
        assert request.header("x-custom") == "a"
        assert request.headers.get_all("X-CUSTOM") == ["a", "b"]
        assert "x-custom" in request.headers
        assert request.header("missing", "d") == "d"

    def test_cookies(self):
        request = make_request(cookie="a=1; b=two; c.sig=xyz")
        assert request.cookies == {"a": "1", "b": "two", "c.sig": "xyz"}
        assert request.cookie("b") == "two"
        assert request.cookie("missing") is None

    def test_no_cookie_header(self):
        assert make_request().cookies == {}

    def test_is_secure(self):
        assert make_request(scheme="https").is_secure
        assert not make_request().is_secure

    def test_forwarded_proto_requires_trust(self):
        headers = [("x-forwarded-proto", "https")]
        assert not make_request(headers=headers).is_secure
        assert make_request(headers=headers, trust_proxy=True).is_secure

    def test_forwarded_proto_trusted_ips(self):
        headers = [("x-forwarded-proto", "https, http")]
        assert make_request(headers=headers, trust_proxy=["127.0.0.1"]).is_secure
        assert not make_request(headers=headers, trust_proxy=["10.0.0.1"]).is_secure

    def test_headers_hooks_move_to_response(self):
        request = make_request()
        calls = []
        request.on_headers(lambda resp: calls.append(("first", resp.status)))
        request.on_headers(lambda resp: calls.append(("second", resp.status)))

        response = Response.text("failed", status=500)
        request.bind_response(response)
        request.bind_response(Response.text("other"))
        response.run_headers_hooks()
        assert calls == [("first", 500), ("second", 500)]

    def test_session_without_middleware(self):
        request = make_request()
        assert request.session is None
        assert request.session_options is None
        assert request.session_key is None
        with pytest.raises(SessionNotConfiguredError):
            request.get_session()
        with pytest.raises(SessionNotConfiguredError):
            request.session = {"a": 1}


class TestResponse:

    def test_media_type_detection(self):
        assert Response({"a": 1}).headers["content-type"].startswith("application/json")
        assert Response("text").headers["content-type"].startswith("text/plain")
        assert Response(b"raw").headers["content-type"] == "application/octet-stream"

    def test_set_cookie_attributes(self):
        response = Response()
        response.set_cookie("a", "1", max_age=10, domain="example.com", secure=True, samesite="strict")
        [header] = response.get_header_list("set-cookie")
        assert header == "a=1; Path=/; Max-Age=10; Domain=example.com; SameSite=Strict; Secure; HttpOnly"

    def test_multiple_set_cookie(self):
        response = Response()
        response.set_cookie("a", "1")
        response.set_cookie("b", "2")
        assert len(response.get_header_list("set-cookie")) == 2

    def test_delete_cookie(self):
        response = Response()
        response.delete_cookie("a")
        [header] = response.get_header_list("set-cookie")
        assert header.startswith("a=; Path=/; Expires=Thu, 01 Jan 1970 00:00:00 GMT; Max-Age=0")

    def test_header_injection_rejected(self):
        response = Response()
        with pytest.raises(InvalidHeaderError):
            response.add_header("x-test", "a\r\nSet-Cookie: evil=1")

    def test_unset_header(self):
        response = Response(headers={"x-test": "1"})
        response.unset_header("X-Test")
        assert response.get_header_list("x-test") == []

    @pytest.mark.asyncio
    async def test_hooks_run_before_start(self):
        response = Response.text("ok")
        order = []

        def first(resp):
            order.append("first")
            resp.set_cookie("late", "1")

        response.on_headers(first)
        response.on_headers(lambda resp: order.append("second"))

        messages = []

        async def send(message):
            messages.append(message)

        await response.send_asgi(send)
        assert order == ["first", "second"]
        start = messages[0]
        assert start["type"] == "http.response.start"
        assert (b"set-cookie", b"late=1; Path=/; HttpOnly") in start["headers"]
        assert (b"content-length", b"2") in start["headers"]
        assert messages[1]["body"] == b"ok"

    @pytest.mark.asyncio
    async def test_headers_frozen_after_send(self):
        response = Response.text("ok")

        async def send(message):
            pass

        await response.send_asgi(send)
        assert response.headers_sent
        with pytest.raises(HeadersAlreadySentError):
            response.set_cookie("a", "1")

    def test_hooks_run_once(self):
        response = Response.text("ok")
        calls = []
        response.on_headers(lambda resp: calls.append(1))
        response.run_headers_hooks()
        response.run_headers_hooks()
        assert calls == [1]
